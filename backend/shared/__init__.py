"""
Shared infrastructure for the Meme Booth backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- logging: Logging setup and purchase events

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import create_supabase_client
from .exceptions import (
    BoothError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
)
from .logging import configure_logging, log_purchase_event
from .models import AuthenticatedUser

__all__ = [
    "Settings",
    "get_settings",
    "create_supabase_client",
    "BoothError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ExternalServiceError",
    "configure_logging",
    "log_purchase_event",
    "AuthenticatedUser",
]
