"""
Billing module.

Credit pack purchases through Stripe and webhook-driven reconciliation
into the credit ledger.

Public API:
- CheckoutService: starts Checkout Session and quick-buy purchases
- WebhookReconciler: applies verified Stripe events idempotently
- IPaymentGateway, IPurchaseRepository, ICreditLedger, IRateLimiter
- Catalog: CREDIT_PACKS, QUICK_BUY_PACK, get_pack
- Billing exceptions: InvalidPackError, RateLimitedError, etc.

Routes live in ``modules.billing.routes`` and are imported by the API
application, not from here.
"""

from .catalog import CREDIT_PACKS, QUICK_BUY_PACK, get_pack, list_packs
from .checkout import CheckoutService
from .events import StripeEvent, decode_event
from .exceptions import (
    BillingError,
    CreditGrantError,
    DuplicateTransactionError,
    InvalidPackError,
    PaymentProviderError,
    PurchaseNotFoundError,
    PurchaseNotReviewableError,
    PurchaseRecordError,
    RateLimitedError,
    UnauthorizedError,
    WebhookVerificationError,
)
from .interfaces import ICreditLedger, IPaymentGateway, IPurchaseRepository, IRateLimiter
from .models import (
    CreditPack,
    FailureReason,
    PaymentHandle,
    Purchase,
    PurchaseStatus,
    Transaction,
    TransactionType,
    WebhookOutcome,
    WebhookResult,
)
from .rate_limit import FailedPaymentLimiter
from .reconciler import WebhookReconciler

__all__ = [
    # Services
    "CheckoutService",
    "WebhookReconciler",
    "FailedPaymentLimiter",
    # Interfaces
    "IPaymentGateway",
    "IPurchaseRepository",
    "ICreditLedger",
    "IRateLimiter",
    # Catalog
    "CREDIT_PACKS",
    "QUICK_BUY_PACK",
    "get_pack",
    "list_packs",
    # Events
    "StripeEvent",
    "decode_event",
    # Models
    "CreditPack",
    "FailureReason",
    "PaymentHandle",
    "Purchase",
    "PurchaseStatus",
    "Transaction",
    "TransactionType",
    "WebhookOutcome",
    "WebhookResult",
    # Exceptions
    "BillingError",
    "CreditGrantError",
    "DuplicateTransactionError",
    "InvalidPackError",
    "PaymentProviderError",
    "PurchaseNotFoundError",
    "PurchaseNotReviewableError",
    "PurchaseRecordError",
    "RateLimitedError",
    "UnauthorizedError",
    "WebhookVerificationError",
]
