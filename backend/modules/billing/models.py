"""
Billing module data models.

These models define the data structures used by the billing module
and exposed to other modules through the interface.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PurchaseStatus(str, Enum):
    """Lifecycle of a purchase record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a purchase ended up failed."""

    EXPIRED = "expired"                          # Provider expired the session
    CREDIT_GRANT_FAILED = "credit_grant_failed"  # Paid, ledger call failed
    UNMATCHED_PAYMENT = "unmatched_payment"      # Paid, no local purchase row

    @property
    def requires_review(self) -> bool:
        """Whether money was taken without credits being granted."""
        return self in (FailureReason.CREDIT_GRANT_FAILED, FailureReason.UNMATCHED_PAYMENT)


class TransactionType(str, Enum):
    """Types of credit ledger transactions."""

    PURCHASE = "purchase"  # User bought credits
    USAGE = "usage"        # Credit spent on a generation
    REFUND = "refund"      # Credit returned after a failed generation


class PaymentKind(str, Enum):
    """Provider object backing a purchase."""

    CHECKOUT_SESSION = "checkout_session"
    PAYMENT_INTENT = "payment_intent"


class CreditPack(BaseModel):
    """
    A purchasable credit pack.

    Prices are integer minor currency units (cents).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Pack ID")
    name: str = Field(..., description="Display name")
    credits: int = Field(..., gt=0, description="Credits granted")
    price: int = Field(..., gt=0, description="Price in cents")


class Purchase(BaseModel):
    """
    Persisted tracking row for one payment attempt.

    ``reference`` is the Stripe Checkout Session id or PaymentIntent id and
    is the idempotency key for reconciliation.
    """

    id: Optional[str] = Field(None, description="Purchase ID (UUID)")
    user_id: str = Field(..., description="Owning user ID")
    reference: str = Field(..., description="External payment reference")
    pack_id: Optional[str] = Field(None, description="Catalog pack ID")
    credits: int = Field(..., ge=0, description="Credits in the pack")
    amount_paid: int = Field(..., ge=0, description="Amount charged in cents")
    status: PurchaseStatus = Field(default=PurchaseStatus.PENDING)
    failure_reason: Optional[FailureReason] = Field(None)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def requires_review(self) -> bool:
        """Paid but not credited; needs an operator."""
        return (
            self.status == PurchaseStatus.FAILED
            and self.failure_reason is not None
            and self.failure_reason.requires_review
        )


class PaymentHandle(BaseModel):
    """What the client needs to complete a payment."""

    kind: PaymentKind
    reference: str
    url: Optional[str] = None
    client_secret: Optional[str] = None


class Transaction(BaseModel):
    """A credit ledger entry."""

    id: str = Field(..., description="Transaction ID (UUID)")
    user_id: str = Field(..., description="User ID")
    amount: int = Field(..., description="Positive for grants, negative for spend")
    type: TransactionType = Field(..., description="Transaction type")
    reference_id: Optional[str] = Field(None, description="Originating payment reference")
    balance_after: Optional[int] = Field(None, description="Balance after the entry")
    created_at: datetime = Field(..., description="Transaction timestamp")


class RateLimitDecision(BaseModel):
    """Result of a rate-limit check."""

    allowed: bool


class WebhookOutcome(str, Enum):
    """Terminal state of processing one provider event."""

    HANDLED = "handled"
    IGNORED = "ignored"
    REJECTED = "rejected"


class WebhookResult(BaseModel):
    """Summary of one processed webhook delivery."""

    outcome: WebhookOutcome
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    detail: Optional[str] = None
    new_balance: Optional[int] = None


# -----------------------------------------------------------------------------
# API request / response models
# -----------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    """Body of POST /checkout."""

    model_config = ConfigDict(populate_by_name=True)

    pack_id: str = Field(..., alias="packId", min_length=1, max_length=64)


class CheckoutResponse(BaseModel):
    """Redirect URL for Stripe Checkout."""

    url: str


class QuickBuyResponse(BaseModel):
    """Client secret for confirming a PaymentIntent in the browser."""

    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(..., alias="clientSecret")


class WebhookAck(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True


class CreditsResponse(BaseModel):
    """Caller's credit balance."""

    credits: Optional[int] = None
    authenticated: bool


class PackListResponse(BaseModel):
    """Public catalog."""

    packs: list[CreditPack]
    quick_buy: CreditPack


class TransactionListResponse(BaseModel):
    """API response for transaction history."""

    transactions: list[Transaction] = Field(..., description="Transaction list")
    limit: int
    offset: int
    has_more: bool = Field(..., description="Whether more transactions may exist")


class PurchaseListResponse(BaseModel):
    """Operator review queue."""

    purchases: list[Purchase]
