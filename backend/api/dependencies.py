"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its collaborators through an
interface, and this file creates the concrete implementations.

The container is built exactly once, when the application starts, and
stored on ``app.state``. Nothing here constructs a client lazily on first
use; tests build their own container from in-memory parts and pass it to
``create_app``.
"""

import logging
from typing import Optional

from fastapi import Request

from modules.auth.interfaces import IAuthService
from modules.auth.service import AuthService
from modules.billing.checkout import CheckoutService
from modules.billing.gateway import StripeGateway
from modules.billing.interfaces import (
    ICreditLedger,
    IPaymentGateway,
    IPurchaseRepository,
    IRateLimiter,
)
from modules.billing.ledger import SupabaseCreditLedger
from modules.billing.memory import InMemoryDatastore
from modules.billing.rate_limit import FailedPaymentLimiter, SupabaseRateLimiter
from modules.billing.reconciler import WebhookReconciler
from modules.billing.repository import SupabasePurchaseRepository
from shared.config import Settings
from shared.database import create_supabase_client

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Container for all service instances.

    Collaborators are passed in fully constructed; the services that
    depend on them are built here so every request shares one instance
    of each.
    """

    def __init__(
        self,
        settings: Settings,
        auth: IAuthService,
        gateway: IPaymentGateway,
        purchases: IPurchaseRepository,
        ledger: ICreditLedger,
        rate_limiter: IRateLimiter,
    ) -> None:
        self.settings = settings
        self._auth = auth
        self._gateway = gateway
        self._purchases = purchases
        self._ledger = ledger
        self._rate_limiter = rate_limiter

        self._limiter = FailedPaymentLimiter(
            rate_limiter,
            max_attempts=settings.failed_payment_max_attempts,
            window_minutes=settings.failed_payment_window_minutes,
        )
        self._checkout = CheckoutService(
            gateway=gateway,
            purchases=purchases,
            limiter=self._limiter,
            app_url=settings.app_url,
        )
        self._reconciler = WebhookReconciler(
            gateway=gateway,
            purchases=purchases,
            ledger=ledger,
            limiter=self._limiter,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        """
        Build the production container.

        Raises:
            RuntimeError: If Stripe or Supabase configuration is missing
        """
        gateway = StripeGateway.from_settings(settings)
        auth = AuthService(settings.supabase_jwt_secret)

        if settings.datastore_backend == "memory":
            logger.warning("Using the in-memory datastore; purchases are not persisted")
            store = InMemoryDatastore()
            return cls(
                settings,
                auth=auth,
                gateway=gateway,
                purchases=store.purchases,
                ledger=store.ledger,
                rate_limiter=store.rate_limiter,
            )

        client = create_supabase_client(settings)
        return cls(
            settings,
            auth=auth,
            gateway=gateway,
            purchases=SupabasePurchaseRepository(client),
            ledger=SupabaseCreditLedger(client),
            rate_limiter=SupabaseRateLimiter(client),
        )

    @property
    def auth(self) -> IAuthService:
        """Get the auth service instance."""
        return self._auth

    @property
    def gateway(self) -> IPaymentGateway:
        return self._gateway

    @property
    def purchases(self) -> IPurchaseRepository:
        return self._purchases

    @property
    def ledger(self) -> ICreditLedger:
        return self._ledger

    @property
    def limiter(self) -> FailedPaymentLimiter:
        return self._limiter

    @property
    def checkout(self) -> CheckoutService:
        """Get the checkout initiator."""
        return self._checkout

    @property
    def reconciler(self) -> WebhookReconciler:
        """Get the webhook reconciler."""
        return self._reconciler


def get_container(request: Request) -> ServiceContainer:
    """Get the container built at application startup."""
    container: Optional[ServiceContainer] = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container not initialised; was the app started?")
    return container


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_service(request: Request) -> IAuthService:
    """FastAPI dependency for auth service."""
    return get_container(request).auth


def get_checkout_service(request: Request) -> CheckoutService:
    """FastAPI dependency for the checkout initiator."""
    return get_container(request).checkout


def get_webhook_reconciler(request: Request) -> WebhookReconciler:
    """FastAPI dependency for the webhook reconciler."""
    return get_container(request).reconciler


def get_credit_ledger(request: Request) -> ICreditLedger:
    """FastAPI dependency for the credit ledger."""
    return get_container(request).ledger
