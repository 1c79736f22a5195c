"""
Billing module interfaces.

The checkout initiator and webhook reconciler depend on these protocols,
not on Stripe or Supabase directly. Production wiring lives in
api/dependencies.py; tests substitute in-memory implementations.

All methods are synchronous I/O; services call them through the
threadpool so the event loop is never blocked.
"""

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .models import (
    CreditPack,
    FailureReason,
    PaymentHandle,
    Purchase,
    PurchaseStatus,
    RateLimitDecision,
    Transaction,
    TransactionType,
)


@runtime_checkable
class IPaymentGateway(Protocol):
    """Contract with the card-payment provider."""

    def create_checkout_session(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> PaymentHandle:
        """
        Create a redirect-based hosted checkout session.

        Raises:
            PaymentProviderError: If the provider call fails
        """
        ...

    def create_payment_intent(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
    ) -> PaymentHandle:
        """
        Create a PaymentIntent confirmed client-side.

        Raises:
            PaymentProviderError: If the provider call fails
        """
        ...

    def cancel_payment(self, handle: PaymentHandle) -> None:
        """Expire or cancel a provider object so it can no longer be paid."""
        ...

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook signature and return the parsed event.

        Raises:
            WebhookVerificationError: If the signature or payload is invalid
        """
        ...


@runtime_checkable
class IPurchaseRepository(Protocol):
    """Persistence for purchase records, keyed by external reference."""

    def create_pending(self, purchase: Purchase) -> Purchase:
        """
        Insert a new ``pending`` purchase.

        Raises:
            PurchaseRecordError: If the row cannot be written
        """
        ...

    def record_unmatched(self, purchase: Purchase) -> Purchase:
        """
        Insert a ``failed`` row for a payment with no local record.

        An existing row for the same reference is left untouched.
        """
        ...

    def get_by_reference(self, reference: str) -> Optional[Purchase]:
        """Fetch a purchase by its external payment reference."""
        ...

    def transition(
        self,
        reference: str,
        expected: PurchaseStatus,
        new_status: PurchaseStatus,
        failure_reason: Optional[FailureReason] = None,
    ) -> bool:
        """
        Conditionally move a purchase between states.

        The update only applies when the stored status equals ``expected``,
        in a single statement. This is the idempotency gate: of any number
        of concurrent callers, at most one sees True.

        Returns:
            True if this call performed the transition
        """
        ...

    def list_requiring_review(self, limit: int = 100) -> list[Purchase]:
        """Failed purchases where payment succeeded but no credits were granted."""
        ...


@runtime_checkable
class ICreditLedger(Protocol):
    """Append-only credit ledger owning the user balance."""

    def grant(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        payment_reference: str,
    ) -> int:
        """
        Atomically record a ledger entry and increase the balance.

        Returns:
            The balance after the grant

        Raises:
            DuplicateTransactionError: If ``payment_reference`` was already
                recorded for this user (nothing is applied)
            CreditGrantError: If the grant could not be applied
        """
        ...

    def get_balance(self, user_id: str) -> int:
        """Current balance; 0 for users with no balance row."""
        ...

    def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """Ledger entries, most recent first."""
        ...


@runtime_checkable
class IRateLimiter(Protocol):
    """Sliding-window counter keyed by (identifier, action)."""

    def check(
        self,
        identifier: str,
        action: str,
        max_count: int,
        window_minutes: int,
        increment: bool = True,
    ) -> RateLimitDecision:
        """
        Check the count of ``action`` events in the trailing window.

        With ``increment`` the call also records one event when allowed.
        """
        ...
