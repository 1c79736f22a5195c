"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from modules.billing.exceptions import UnauthorizedError
from modules.billing.routes import router as booth_router
from shared.config import get_settings
from shared.exceptions import AuthenticationError, BoothError
from shared.logging import configure_logging

from .dependencies import ServiceContainer
from .models.errors import ErrorResponse, ValidationErrorResponse
from .routes import health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the service container unless one was supplied to create_app.
    """
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level)
    if getattr(app.state, "container", None) is None:
        app.state.container = ServiceContainer.from_settings(settings)
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


async def booth_error_handler(request: Request, exc: BoothError) -> JSONResponse:
    """Render domain errors as ``{"error": ..., "code": ...}``."""
    content = ErrorResponse(
        error=exc.message,
        code=exc.code,
        require_auth=True if isinstance(exc, UnauthorizedError) and exc.require_auth else None,
    ).render()

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client input errors (400)."""
    content = ValidationErrorResponse(
        detail=[
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
            for error in exc.errors()
        ]
    )
    return JSONResponse(status_code=400, content=content.model_dump())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything not mapped above is a 500 with a fixed message."""
    logger.exception(f"{request.method} {request.url.path} failed: {exc}")
    content = ErrorResponse(error="Internal server error", code="INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=content.render())


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: Pre-built services; when omitted the container is
            built from settings at startup

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Credit purchases and Stripe reconciliation for the meme booth",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    app.state.container = container

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_exception_handler(BoothError, booth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(booth_router, prefix="/api/booth", tags=["booth"])

    return app


# Application instance for uvicorn
app = create_app()
