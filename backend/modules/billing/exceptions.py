"""
Billing module exceptions.

These exceptions are raised by the billing module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from typing import Optional

from shared.exceptions import (
    AuthenticationError,
    BoothError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


class BillingError(BoothError):
    """Base exception for billing-related errors."""

    pass


class InvalidPackError(ValidationError):
    """Raised when a requested pack is not in the catalog."""

    def __init__(self, pack_id: object):
        super().__init__(
            "Invalid pack selected",
            code="INVALID_PACK",
            details={"pack_id": str(pack_id)},
        )


class UnauthorizedError(AuthenticationError):
    """
    Raised when a purchase is attempted without a signed-in user.

    Quick-buy callers get ``require_auth`` so the UI can open sign-in.
    """

    def __init__(self, message: str = "Unauthorized", require_auth: bool = False):
        super().__init__(message, code="UNAUTHORIZED")
        self.require_auth = require_auth


class RateLimitedError(BillingError):
    """Raised when a user has too many recent failed payments."""

    status_code = 429

    def __init__(self, user_id: str, window_minutes: int):
        super().__init__(
            "Too many failed payment attempts. Please try again later.",
            code="RATE_LIMITED",
            details={"user_id": user_id, "window_minutes": window_minutes},
        )


class PaymentProviderError(ExternalServiceError):
    """
    Raised when the payment provider cannot be reached or rejects a call.

    Retryable: nothing was persisted locally.
    """

    status_code = 500

    def __init__(self, message: str, provider_error: Optional[str] = None):
        super().__init__(
            message,
            service="stripe",
            code="PAYMENT_PROVIDER_ERROR",
            details={"provider_error": provider_error} if provider_error else {},
        )


class PurchaseRecordError(BillingError):
    """Raised when a purchase row cannot be written."""

    def __init__(self, reference: str, reason: str):
        super().__init__(
            "Failed to record purchase",
            code="PURCHASE_RECORD_FAILED",
            details={"reference": reference, "reason": reason},
        )


class PurchaseNotFoundError(NotFoundError):
    """Raised when no purchase exists for a payment reference."""

    def __init__(self, reference: str):
        super().__init__(
            f"Purchase not found: {reference}",
            code="PURCHASE_NOT_FOUND",
            details={"reference": reference},
        )


class PurchaseNotReviewableError(ValidationError):
    """Raised when an operator retry targets a purchase that is not awaiting review."""

    def __init__(self, reference: str, status: str):
        super().__init__(
            f"Purchase {reference} is not awaiting review (status: {status})",
            code="PURCHASE_NOT_REVIEWABLE",
            details={"reference": reference, "status": status},
        )


class WebhookVerificationError(BillingError):
    """Raised when Stripe webhook signature verification fails."""

    status_code = 400

    def __init__(self, message: str = "Webhook signature verification failed"):
        super().__init__(message, code="WEBHOOK_VERIFICATION_FAILED")


class DuplicateTransactionError(BillingError):
    """Raised when the ledger already holds a grant for a payment reference."""

    status_code = 409

    def __init__(self, payment_reference: str, user_id: Optional[str] = None):
        super().__init__(
            f"Transaction already processed: {payment_reference}",
            code="DUPLICATE_TRANSACTION",
            details={"payment_reference": payment_reference},
        )
        if user_id:
            self.details["user_id"] = user_id


class CreditGrantError(BillingError):
    """Raised when the ledger could not apply a grant."""

    def __init__(self, user_id: str, payment_reference: str, reason: str):
        super().__init__(
            f"Failed to add credits for {payment_reference}",
            code="CREDIT_GRANT_FAILED",
            details={
                "user_id": user_id,
                "payment_reference": payment_reference,
                "reason": reason,
            },
        )
