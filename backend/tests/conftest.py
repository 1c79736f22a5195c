"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
JWT helpers, a scriptable payment gateway, and an application wired to the
in-memory datastore.
"""

import json
import threading
from datetime import datetime, timezone, timedelta
from typing import Any, Mapping, Optional

import jwt  # PyJWT
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import ServiceContainer
from modules.auth.service import AuthService
from modules.billing.exceptions import PaymentProviderError, WebhookVerificationError
from modules.billing.memory import InMemoryDatastore
from modules.billing.models import CreditPack, PaymentHandle, PaymentKind
from shared.config import Settings


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"

# The only signature FakeGateway accepts
VALID_SIGNATURE = "t=1700000000,v1=valid"


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expired: bool = False,
    email_verified: bool = True,
    app_role: Optional[str] = None,
    secret: str = TEST_JWT_SECRET,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: User ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified
        app_role: Optional ``app_metadata.role`` claim (e.g. "admin")
        secret: Signing secret

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_confirmed_at": now.isoformat() if email_verified else None,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
        "app_metadata": {"role": app_role} if app_role else {},
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def make_event(
    event_type: str,
    obj: Mapping[str, Any],
    event_id: str = "evt_test_1",
) -> dict[str, Any]:
    """Build a Stripe-shaped event payload."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": dict(obj)},
    }


def checkout_completed(
    session_id: str = "cs_test_123",
    user_id: str = "test-user-123",
    credits: int = 10,
    pack_id: str = "starter",
    payment_status: str = "paid",
    amount_total: int = 499,
    event_id: str = "evt_completed_1",
) -> dict[str, Any]:
    return make_event(
        "checkout.session.completed",
        {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": payment_status,
            "amount_total": amount_total,
            "metadata": {"user_id": user_id, "pack_id": pack_id, "credits": str(credits)},
        },
        event_id=event_id,
    )


def checkout_expired(
    session_id: str = "cs_test_123",
    user_id: str = "test-user-123",
    event_id: str = "evt_expired_1",
) -> dict[str, Any]:
    return make_event(
        "checkout.session.expired",
        {
            "id": session_id,
            "object": "checkout.session",
            "metadata": {"user_id": user_id, "pack_id": "starter", "credits": "10"},
        },
        event_id=event_id,
    )


def payment_intent_succeeded(
    intent_id: str = "pi_test_123",
    user_id: str = "test-user-123",
    credits: int = 10,
    amount: int = 999,
    event_id: str = "evt_pi_1",
) -> dict[str, Any]:
    return make_event(
        "payment_intent.succeeded",
        {
            "id": intent_id,
            "object": "payment_intent",
            "status": "succeeded",
            "amount": amount,
            "amount_received": amount,
            "metadata": {"user_id": user_id, "pack_id": "quick-buy", "credits": str(credits)},
        },
        event_id=event_id,
    )


class FakeGateway:
    """
    Scriptable IPaymentGateway.

    Hands out sequential references, records every call, and accepts
    exactly one webhook signature.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = 0
        self.fail_create = False
        self.fail_cancel = False
        self.created: list[dict[str, Any]] = []
        self.cancelled: list[PaymentHandle] = []

    @property
    def create_calls(self) -> int:
        return len(self.created)

    def _next(self, prefix: str) -> str:
        with self._lock:
            self._counter += 1
            return f"{prefix}_test_{self._counter}"

    def create_checkout_session(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> PaymentHandle:
        if self.fail_create:
            raise PaymentProviderError("Failed to create checkout session")
        reference = self._next("cs")
        self.created.append(
            {
                "kind": PaymentKind.CHECKOUT_SESSION,
                "pack": pack,
                "metadata": dict(metadata),
                "success_url": success_url,
                "cancel_url": cancel_url,
                "customer_email": customer_email,
            }
        )
        return PaymentHandle(
            kind=PaymentKind.CHECKOUT_SESSION,
            reference=reference,
            url=f"https://checkout.stripe.test/{reference}",
        )

    def create_payment_intent(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
    ) -> PaymentHandle:
        if self.fail_create:
            raise PaymentProviderError("Failed to create payment")
        reference = self._next("pi")
        self.created.append(
            {"kind": PaymentKind.PAYMENT_INTENT, "pack": pack, "metadata": dict(metadata)}
        )
        return PaymentHandle(
            kind=PaymentKind.PAYMENT_INTENT,
            reference=reference,
            client_secret=f"{reference}_secret_abc",
        )

    def cancel_payment(self, handle: PaymentHandle) -> None:
        if self.fail_cancel:
            raise PaymentProviderError(f"Failed to cancel {handle.reference}")
        self.cancelled.append(handle)

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise WebhookVerificationError()
        try:
            return json.loads(payload)
        except ValueError:
            raise WebhookVerificationError("Webhook payload is not valid JSON")


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an app wired to fakes."""
    return Settings(
        supabase_jwt_secret=TEST_JWT_SECRET,
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret="whsec_fake",
        app_url="https://booth.test",
        datastore_backend="memory",
    )


@pytest.fixture
def datastore() -> InMemoryDatastore:
    return InMemoryDatastore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def container(test_settings, datastore, gateway) -> ServiceContainer:
    """Service container over the in-memory datastore and fake gateway."""
    return ServiceContainer(
        test_settings,
        auth=AuthService(TEST_JWT_SECRET),
        gateway=gateway,
        purchases=datastore.purchases,
        ledger=datastore.ledger,
        rate_limiter=datastore.rate_limiter,
    )


@pytest.fixture
def app(container):
    """Create a fresh app for each test."""
    return create_app(container=container)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def test_user_email() -> str:
    """Provide a consistent test user email."""
    return "test@example.com"


@pytest.fixture
def auth_token(test_user_id: str, test_user_email: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id, email=test_user_email)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Authorization headers for an operator."""
    token = create_test_token(user_id="admin-1", email="ops@example.com", app_role="admin")
    return {"Authorization": f"Bearer {token}"}
