"""
Failed-payment rate limiting.

Counts live in the datastore (``check_rate_limit`` RPC) so every API
instance sees the same window.
"""

import logging

import httpx
from postgrest.exceptions import APIError

from shared.repository import BaseRepository

from .interfaces import IRateLimiter
from .models import RateLimitDecision

logger = logging.getLogger(__name__)

FAILED_PAYMENT_ACTION = "failed_payment"


class SupabaseRateLimiter(BaseRepository[RateLimitDecision], IRateLimiter):
    """IRateLimiter over the ``check_rate_limit`` RPC."""

    def check(
        self,
        identifier: str,
        action: str,
        max_count: int,
        window_minutes: int,
        increment: bool = True,
    ) -> RateLimitDecision:
        result = self._db.rpc(
            "check_rate_limit",
            {
                "p_identifier": identifier,
                "p_action": action,
                "p_max_count": max_count,
                "p_window_minutes": window_minutes,
                "p_increment": increment,
            },
        ).execute()

        rows = result.data if isinstance(result.data, list) else [result.data]
        if not rows or rows[0] is None:
            return RateLimitDecision(allowed=True)
        row = rows[0]
        allowed = row.get("allowed", True) if isinstance(row, dict) else bool(row)
        return RateLimitDecision(allowed=bool(allowed))


class FailedPaymentLimiter:
    """
    Policy for failed payments: at most ``max_attempts`` per user in
    ``window_minutes``.

    Checkout only consults the counter; failures are recorded when the
    provider reports them.
    """

    def __init__(
        self,
        limiter: IRateLimiter,
        max_attempts: int = 5,
        window_minutes: int = 60,
    ):
        self._limiter = limiter
        self.max_attempts = max_attempts
        self.window_minutes = window_minutes

    def allows(self, user_id: str) -> bool:
        """
        Whether the user may start a new payment.

        A datastore error fails open, including an unreachable datastore.
        """
        try:
            decision = self._limiter.check(
                user_id,
                FAILED_PAYMENT_ACTION,
                self.max_attempts,
                self.window_minutes,
                increment=False,
            )
        except (APIError, httpx.HTTPError, OSError) as e:
            logger.warning(f"Rate limit check failed for {user_id}, allowing: {e}")
            return True
        return decision.allowed

    def record_failure(self, user_id: str) -> None:
        """Count one failed payment for the user."""
        # Recording never denies
        self._limiter.check(
            user_id,
            FAILED_PAYMENT_ACTION,
            max_count=2**31 - 1,
            window_minutes=self.window_minutes,
            increment=True,
        )
