"""
Typed Stripe webhook events.

Verified payloads are decoded once at the boundary into one model per
event kind the reconciler acts on, plus ``UnrecognizedEvent`` for
everything else. Reconciliation logic never reads raw event dicts.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
CHECKOUT_SESSION_EXPIRED = "checkout.session.expired"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"


class PaymentMetadata(BaseModel):
    """
    Metadata attached to the provider object at checkout time.

    Stripe stores metadata values as strings; ``credits`` is coerced.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    user_id: str = Field(..., min_length=1)
    credits: int = Field(..., gt=0)
    pack_id: Optional[str] = None

    @classmethod
    def parse(cls, raw: Optional[Mapping[str, Any]]) -> Optional["PaymentMetadata"]:
        """Return parsed metadata, or None when it is missing or malformed."""
        if not raw:
            return None
        try:
            return cls.model_validate(dict(raw))
        except ValidationError:
            return None


class ProviderEvent(BaseModel):
    """Fields common to every decoded event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    type: str


class CheckoutSessionCompleted(ProviderEvent):
    """Customer finished Stripe Checkout (redirect flow)."""

    session_id: str
    payment_status: Optional[str] = None
    payment_intent: Optional[str] = None
    amount_total: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str:
        return self.session_id

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def amount(self) -> int:
        return self.amount_total or 0


class CheckoutSessionExpired(ProviderEvent):
    """Checkout session expired without payment."""

    session_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str:
        return self.session_id


class PaymentIntentSucceeded(ProviderEvent):
    """Quick-buy PaymentIntent captured."""

    payment_intent_id: str
    amount_received: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str:
        return self.payment_intent_id

    @property
    def is_paid(self) -> bool:
        return True

    @property
    def amount(self) -> int:
        return self.amount_received or 0


class PaymentIntentFailed(ProviderEvent):
    """A PaymentIntent attempt was declined."""

    payment_intent_id: str
    failure_message: Optional[str] = None

    @property
    def reference(self) -> str:
        return self.payment_intent_id


class UnrecognizedEvent(ProviderEvent):
    """Any event kind this service does not act on."""

    pass


PaymentConfirmedEvent = Union[CheckoutSessionCompleted, PaymentIntentSucceeded]

StripeEvent = Union[
    CheckoutSessionCompleted,
    CheckoutSessionExpired,
    PaymentIntentSucceeded,
    PaymentIntentFailed,
    UnrecognizedEvent,
]


def decode_event(raw: Mapping[str, Any]) -> StripeEvent:
    """
    Decode a verified Stripe event payload.

    Known kinds whose object is malformed fall back to
    ``UnrecognizedEvent`` so a bad payload is logged, not retried forever.

    Args:
        raw: Parsed JSON body of a verified webhook

    Returns:
        One of the StripeEvent variants
    """
    event_id = str(raw.get("id") or "")
    event_type = str(raw.get("type") or "")
    try:
        obj = (raw.get("data") or {}).get("object") or {}
        if event_type == CHECKOUT_SESSION_COMPLETED:
            return CheckoutSessionCompleted(
                event_id=event_id,
                type=event_type,
                session_id=obj["id"],
                payment_status=obj.get("payment_status"),
                payment_intent=_as_id(obj.get("payment_intent")),
                amount_total=obj.get("amount_total"),
                metadata=obj.get("metadata") or {},
            )
        if event_type == CHECKOUT_SESSION_EXPIRED:
            return CheckoutSessionExpired(
                event_id=event_id,
                type=event_type,
                session_id=obj["id"],
                metadata=obj.get("metadata") or {},
            )
        if event_type == PAYMENT_INTENT_SUCCEEDED:
            return PaymentIntentSucceeded(
                event_id=event_id,
                type=event_type,
                payment_intent_id=obj["id"],
                amount_received=obj.get("amount_received", obj.get("amount")),
                metadata=obj.get("metadata") or {},
            )
        if event_type == PAYMENT_INTENT_FAILED:
            last_error = obj.get("last_payment_error") or {}
            return PaymentIntentFailed(
                event_id=event_id,
                type=event_type,
                payment_intent_id=obj["id"],
                failure_message=last_error.get("message"),
            )
    except (AttributeError, KeyError, TypeError, ValidationError) as e:
        logger.warning(f"Malformed {event_type} event {event_id}: {e}")

    return UnrecognizedEvent(event_id=event_id, type=event_type)


def _as_id(value: Any) -> Optional[str]:
    """Stripe may expand a reference into an object; keep only its id."""
    if isinstance(value, Mapping):
        return value.get("id")
    return value
