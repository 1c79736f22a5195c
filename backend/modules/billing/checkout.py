"""
Checkout initiation.

Creates the provider payment object and the local ``pending`` purchase
before the client gets anything it could pay with. Two flows share one
contract: redirect-based Checkout Sessions for the catalog packs and a
PaymentIntent for the quick-buy pack.
"""

import logging
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool

from shared.logging import log_purchase_event
from shared.models import AuthenticatedUser

from .catalog import QUICK_BUY_PACK, get_pack
from .exceptions import PaymentProviderError, PurchaseRecordError, RateLimitedError, UnauthorizedError
from .interfaces import IPaymentGateway, IPurchaseRepository
from .models import CreditPack, PaymentHandle, Purchase
from .rate_limit import FailedPaymentLimiter

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Checkout initiator.

    Ordering for every purchase:
    1. validate the pack and the caller
    2. consult the failed-payment limiter
    3. create the provider object
    4. persist the ``pending`` purchase
    5. hand the URL / client secret back

    A failure at 3 leaves nothing behind. A failure at 4 cancels the
    provider object and fails the request.
    """

    def __init__(
        self,
        gateway: IPaymentGateway,
        purchases: IPurchaseRepository,
        limiter: FailedPaymentLimiter,
        app_url: str,
    ):
        self._gateway = gateway
        self._purchases = purchases
        self._limiter = limiter
        self._app_url = app_url.rstrip("/")

    @property
    def success_url(self) -> str:
        return f"{self._app_url}/booth?checkout=success&session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self._app_url}/booth?checkout=cancelled"

    async def create_checkout_session(
        self,
        user: Optional[AuthenticatedUser],
        pack_id: object,
    ) -> PaymentHandle:
        """
        Start a redirect-based purchase of a catalog pack.

        Raises:
            InvalidPackError: Unknown pack id
            UnauthorizedError: No signed-in user
            RateLimitedError: Too many recent failed payments
            PaymentProviderError: Stripe call failed
            PurchaseRecordError: Pending row could not be written
        """
        pack = get_pack(pack_id)
        if user is None:
            raise UnauthorizedError()

        def create() -> PaymentHandle:
            return self._gateway.create_checkout_session(
                pack,
                self._metadata(user, pack),
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                customer_email=user.email,
            )

        return await self._initiate(user, pack, create)

    async def create_quick_buy(self, user: Optional[AuthenticatedUser]) -> PaymentHandle:
        """
        Start a one-tap PaymentIntent purchase of the quick-buy pack.

        Raises the same errors as create_checkout_session, except
        InvalidPackError.
        """
        if user is None:
            raise UnauthorizedError("Please sign in to purchase credits", require_auth=True)

        pack = QUICK_BUY_PACK

        def create() -> PaymentHandle:
            return self._gateway.create_payment_intent(pack, self._metadata(user, pack))

        return await self._initiate(user, pack, create)

    async def _initiate(
        self,
        user: AuthenticatedUser,
        pack: CreditPack,
        create: Callable[[], PaymentHandle],
    ) -> PaymentHandle:
        allowed = await run_in_threadpool(self._limiter.allows, user.id)
        if not allowed:
            logger.info(f"Payment rate limit hit for user {user.id}")
            raise RateLimitedError(user.id, self._limiter.window_minutes)

        handle = await run_in_threadpool(create)

        pending = Purchase(
            user_id=user.id,
            reference=handle.reference,
            pack_id=pack.id,
            credits=pack.credits,
            amount_paid=pack.price,
        )
        try:
            await run_in_threadpool(self._purchases.create_pending, pending)
        except Exception as e:
            logger.error(
                f"Failed to record pending purchase {handle.reference} for user {user.id}: {e}"
            )
            await self._cancel_quietly(handle)
            if isinstance(e, PurchaseRecordError):
                raise
            raise PurchaseRecordError(handle.reference, str(e)) from e

        log_purchase_event(
            user_id=user.id,
            amount=pack.price,
            credits=pack.credits,
            pack_id=pack.id,
            session_id=handle.reference,
            status="initiated",
        )
        return handle

    async def _cancel_quietly(self, handle: PaymentHandle) -> None:
        """Best-effort cancel; the original error is what the caller sees."""
        try:
            await run_in_threadpool(self._gateway.cancel_payment, handle)
        except PaymentProviderError as e:
            logger.error(f"Could not cancel orphaned payment {handle.reference}: {e}")

    @staticmethod
    def _metadata(user: AuthenticatedUser, pack: CreditPack) -> dict[str, str]:
        return {
            "user_id": user.id,
            "pack_id": pack.id,
            "credits": str(pack.credits),
        }
