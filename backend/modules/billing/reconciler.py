"""
Stripe webhook reconciliation.

Turns verified provider events into local state changes. Stripe delivers
at least once and may deliver the same event concurrently to several API
instances. The conditional ``pending -> completed`` update on the purchase
row decides which delivery claims a purchase, and the ledger, keyed on the
payment reference, decides whether credits are granted.

A row that is already ``completed`` still gets a grant attempt: a crash
between claim and grant leaves it that way, and the next redelivery heals
it. If a grant fails, the purchase moves to ``failed`` with reason
``credit_grant_failed`` and shows up in the operator review queue.
"""

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from shared.logging import log_purchase_event

from .events import (
    CheckoutSessionExpired,
    PaymentConfirmedEvent,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    PaymentMetadata,
    StripeEvent,
    UnrecognizedEvent,
    decode_event,
)
from .exceptions import (
    DuplicateTransactionError,
    PurchaseNotFoundError,
    PurchaseNotReviewableError,
    WebhookVerificationError,
)
from .interfaces import ICreditLedger, IPaymentGateway, IPurchaseRepository
from .models import (
    FailureReason,
    Purchase,
    PurchaseStatus,
    TransactionType,
    WebhookOutcome,
    WebhookResult,
)
from .rate_limit import FailedPaymentLimiter

logger = logging.getLogger(__name__)


class WebhookReconciler:
    """Consumes one Stripe event per call and applies it idempotently."""

    def __init__(
        self,
        gateway: IPaymentGateway,
        purchases: IPurchaseRepository,
        ledger: ICreditLedger,
        limiter: FailedPaymentLimiter,
    ):
        self._gateway = gateway
        self._purchases = purchases
        self._ledger = ledger
        self._limiter = limiter

    async def handle(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Verify, decode and process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature: Value of the ``Stripe-Signature`` header

        Returns:
            WebhookResult with outcome HANDLED or IGNORED

        Raises:
            WebhookVerificationError: Missing or invalid signature; nothing
                was read from the payload
            Exception: Anything unexpected, after logging the event context
        """
        if not signature:
            logger.warning("Webhook rejected: missing Stripe-Signature header")
            raise WebhookVerificationError("Missing signature")

        try:
            raw = self._gateway.verify_event(payload, signature)
        except WebhookVerificationError as e:
            logger.warning(f"Webhook rejected: {e.message}")
            raise

        event = decode_event(raw)
        try:
            return await self.process(event)
        except Exception:
            logger.exception(
                f"Error processing webhook event {event.event_id} ({event.type}), "
                f"user {_user_hint(event)}"
            )
            raise

    async def process(self, event: StripeEvent) -> WebhookResult:
        """Apply an already verified, decoded event."""
        if isinstance(event, UnrecognizedEvent):
            logger.info(f"Unhandled event type: {event.type} ({event.event_id})")
            return self._result(event, WebhookOutcome.IGNORED, "unhandled event type")

        if isinstance(event, CheckoutSessionExpired):
            return await self._handle_expired(event)

        if isinstance(event, PaymentIntentFailed):
            logger.info(
                f"Payment failed: {event.payment_intent_id} "
                f"({event.failure_message or 'no reason given'})"
            )
            return self._result(event, WebhookOutcome.HANDLED, "payment failed")

        return await self._handle_payment_confirmed(event)

    async def _handle_payment_confirmed(self, event: PaymentConfirmedEvent) -> WebhookResult:
        if not event.is_paid:
            logger.info(f"Session {event.reference} completed without payment, skipping")
            return self._result(event, WebhookOutcome.HANDLED, "payment not completed")

        metadata = PaymentMetadata.parse(event.metadata)
        if metadata is None:
            if isinstance(event, PaymentIntentSucceeded) and not event.metadata:
                # Checkout Session payments also emit an intent without metadata
                logger.info(f"Payment intent {event.reference} carries no booth metadata, skipping")
            else:
                logger.warning(
                    f"Event {event.event_id} for {event.reference} has missing or "
                    f"malformed metadata: {event.metadata!r}"
                )
            return self._result(event, WebhookOutcome.HANDLED, "missing metadata")

        reference = event.reference
        existing = await run_in_threadpool(self._purchases.get_by_reference, reference)

        if existing is None:
            await self._record_unmatched(event, metadata)
            return self._result(event, WebhookOutcome.HANDLED, "no purchase record")

        if existing.status == PurchaseStatus.PENDING:
            claimed = await run_in_threadpool(
                self._purchases.transition,
                reference,
                PurchaseStatus.PENDING,
                PurchaseStatus.COMPLETED,
            )
            if claimed:
                return await self._grant(event, metadata, existing, "already granted")
            existing = await run_in_threadpool(self._purchases.get_by_reference, reference) or existing

        if existing.status == PurchaseStatus.COMPLETED:
            # The ledger decides whether this delivery is a duplicate
            return await self._grant(event, metadata, existing, "duplicate delivery")

        if existing.failure_reason == FailureReason.EXPIRED:
            logger.warning(f"Paid {reference} had already expired; queued for review")
            await run_in_threadpool(
                self._purchases.transition,
                reference,
                PurchaseStatus.FAILED,
                PurchaseStatus.FAILED,
                FailureReason.UNMATCHED_PAYMENT,
            )
            return self._result(event, WebhookOutcome.HANDLED, "queued for review")

        logger.info(
            f"Payment {reference} is {existing.status.value} "
            f"({existing.failure_reason.value if existing.failure_reason else 'no reason'}), skipping"
        )
        return self._result(event, WebhookOutcome.HANDLED, "not payable")

    async def _grant(
        self,
        event: PaymentConfirmedEvent,
        metadata: PaymentMetadata,
        purchase: Purchase,
        duplicate_detail: str,
    ) -> WebhookResult:
        """Grant credits for a purchase already marked completed."""
        reference = purchase.reference
        pack_id = metadata.pack_id or purchase.pack_id or "unknown"
        try:
            new_balance = await run_in_threadpool(
                self._ledger.grant,
                metadata.user_id,
                metadata.credits,
                TransactionType.PURCHASE,
                reference,
            )
        except DuplicateTransactionError:
            logger.info(f"Ledger already holds {reference}, skipping")
            return self._result(event, WebhookOutcome.HANDLED, duplicate_detail)
        except Exception as e:
            logger.error(
                f"Failed to add credits for {reference} (event {event.event_id}, "
                f"user {metadata.user_id}): {e}"
            )
            await run_in_threadpool(
                self._purchases.transition,
                reference,
                PurchaseStatus.COMPLETED,
                PurchaseStatus.FAILED,
                FailureReason.CREDIT_GRANT_FAILED,
            )
            log_purchase_event(
                user_id=metadata.user_id,
                amount=event.amount,
                credits=metadata.credits,
                pack_id=pack_id,
                session_id=reference,
                status="failed",
                reason=FailureReason.CREDIT_GRANT_FAILED.value,
            )
            return self._result(event, WebhookOutcome.HANDLED, "credit grant failed")

        log_purchase_event(
            user_id=metadata.user_id,
            amount=event.amount,
            credits=metadata.credits,
            pack_id=pack_id,
            session_id=reference,
            status="completed",
            new_credits=new_balance,
        )
        return self._result(event, WebhookOutcome.HANDLED, "credits granted", new_balance)

    async def _handle_expired(self, event: CheckoutSessionExpired) -> WebhookResult:
        expired = await run_in_threadpool(
            self._purchases.transition,
            event.session_id,
            PurchaseStatus.PENDING,
            PurchaseStatus.FAILED,
            FailureReason.EXPIRED,
        )
        if not expired:
            logger.info(f"Session {event.session_id} expired but was not pending, skipping")
            return self._result(event, WebhookOutcome.HANDLED, "not pending")

        purchase = await run_in_threadpool(self._purchases.get_by_reference, event.session_id)
        user_id = event.metadata.get("user_id") or (purchase.user_id if purchase else None)

        # Counted once per session: redeliveries lose the transition above
        if user_id:
            await run_in_threadpool(self._limiter.record_failure, str(user_id))

        if purchase is not None:
            log_purchase_event(
                user_id=purchase.user_id,
                amount=purchase.amount_paid,
                credits=purchase.credits,
                pack_id=purchase.pack_id or "unknown",
                session_id=event.session_id,
                status="expired",
                reason=FailureReason.EXPIRED.value,
            )
        logger.info(f"Session expired: {event.session_id}")
        return self._result(event, WebhookOutcome.HANDLED, "session expired")

    async def _record_unmatched(
        self,
        event: PaymentConfirmedEvent,
        metadata: PaymentMetadata,
    ) -> None:
        logger.warning(
            f"Paid {event.reference} has no purchase record; queued for review "
            f"(user {metadata.user_id}, {metadata.credits} credits)"
        )
        await run_in_threadpool(
            self._purchases.record_unmatched,
            Purchase(
                user_id=metadata.user_id,
                reference=event.reference,
                pack_id=metadata.pack_id,
                credits=metadata.credits,
                amount_paid=event.amount,
                status=PurchaseStatus.FAILED,
                failure_reason=FailureReason.UNMATCHED_PAYMENT,
            ),
        )
        log_purchase_event(
            user_id=metadata.user_id,
            amount=event.amount,
            credits=metadata.credits,
            pack_id=metadata.pack_id or "unknown",
            session_id=event.reference,
            status="failed",
            reason=FailureReason.UNMATCHED_PAYMENT.value,
        )

    # -------------------------------------------------------------------------
    # Operator actions
    # -------------------------------------------------------------------------

    async def list_review_queue(self, limit: int = 100) -> list[Purchase]:
        """Purchases that were paid but not credited."""
        return await run_in_threadpool(self._purchases.list_requiring_review, limit)

    async def retry_credit_grant(self, reference: str) -> Purchase:
        """
        Re-attempt the ledger grant for a purchase awaiting review.

        The ledger rejects a reference it already holds, so a grant that
        did land before the failure is not applied twice.

        Raises:
            PurchaseNotFoundError: Unknown reference
            PurchaseNotReviewableError: Purchase is not awaiting review
            CreditGrantError: The ledger failed again
        """
        purchase = await run_in_threadpool(self._purchases.get_by_reference, reference)
        if purchase is None:
            raise PurchaseNotFoundError(reference)
        if not purchase.requires_review:
            raise PurchaseNotReviewableError(reference, purchase.status.value)

        new_balance: Optional[int] = None
        try:
            new_balance = await run_in_threadpool(
                self._ledger.grant,
                purchase.user_id,
                purchase.credits,
                TransactionType.PURCHASE,
                reference,
            )
        except DuplicateTransactionError:
            logger.info(f"Ledger already holds {reference}; marking completed")

        moved = await run_in_threadpool(
            self._purchases.transition,
            reference,
            PurchaseStatus.FAILED,
            PurchaseStatus.COMPLETED,
        )
        if moved:
            log_purchase_event(
                user_id=purchase.user_id,
                amount=purchase.amount_paid,
                credits=purchase.credits,
                pack_id=purchase.pack_id or "unknown",
                session_id=reference,
                status="completed",
                new_credits=new_balance,
            )

        updated = await run_in_threadpool(self._purchases.get_by_reference, reference)
        return updated or purchase

    @staticmethod
    def _result(
        event: StripeEvent,
        outcome: WebhookOutcome,
        detail: str,
        new_balance: Optional[int] = None,
    ) -> WebhookResult:
        return WebhookResult(
            outcome=outcome,
            event_id=event.event_id,
            event_type=event.type,
            detail=detail,
            new_balance=new_balance,
        )


def _user_hint(event: StripeEvent) -> str:
    metadata = getattr(event, "metadata", None) or {}
    return str(metadata.get("user_id") or "unknown")
