"""
In-memory billing datastore.

Implements the purchase repository, credit ledger and rate limiter
in-process, for local development and tests. Each object guards its state
with a lock so conditional updates behave like single SQL statements
even when called from several threads.
"""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .exceptions import CreditGrantError, DuplicateTransactionError, PurchaseRecordError
from .interfaces import ICreditLedger, IPurchaseRepository, IRateLimiter
from .models import (
    FailureReason,
    Purchase,
    PurchaseStatus,
    RateLimitDecision,
    Transaction,
    TransactionType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPurchaseRepository(IPurchaseRepository):
    """Purchase rows keyed by external reference."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[str, Purchase] = {}

    def create_pending(self, purchase: Purchase) -> Purchase:
        with self._lock:
            if purchase.reference in self._rows:
                raise PurchaseRecordError(purchase.reference, "duplicate reference")
            now = _utcnow()
            row = purchase.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "status": PurchaseStatus.PENDING,
                    "failure_reason": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            self._rows[row.reference] = row
            return row

    def record_unmatched(self, purchase: Purchase) -> Purchase:
        with self._lock:
            existing = self._rows.get(purchase.reference)
            if existing is not None:
                return existing
            now = _utcnow()
            row = purchase.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "status": PurchaseStatus.FAILED,
                    "failure_reason": FailureReason.UNMATCHED_PAYMENT,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            self._rows[row.reference] = row
            return row

    def get_by_reference(self, reference: str) -> Optional[Purchase]:
        with self._lock:
            return self._rows.get(reference)

    def transition(
        self,
        reference: str,
        expected: PurchaseStatus,
        new_status: PurchaseStatus,
        failure_reason: Optional[FailureReason] = None,
    ) -> bool:
        with self._lock:
            row = self._rows.get(reference)
            if row is None or row.status != expected:
                return False
            self._rows[reference] = row.model_copy(
                update={
                    "status": new_status,
                    "failure_reason": failure_reason,
                    "updated_at": _utcnow(),
                }
            )
            return True

    def list_requiring_review(self, limit: int = 100) -> list[Purchase]:
        with self._lock:
            rows = [row for row in self._rows.values() if row.requires_review]
        rows.sort(key=lambda row: row.updated_at or _utcnow(), reverse=True)
        return rows[:limit]

    def all(self) -> list[Purchase]:
        """Every stored row (test and debugging helper)."""
        with self._lock:
            return list(self._rows.values())


class InMemoryCreditLedger(ICreditLedger):
    """Balances plus an append-only transaction list."""

    def __init__(self, initial_balances: Optional[dict[str, int]] = None):
        self._lock = threading.Lock()
        self._balances: dict[str, int] = dict(initial_balances or {})
        self._transactions: list[Transaction] = []
        self._references: set[tuple[str, str]] = set()

    def grant(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        payment_reference: str,
    ) -> int:
        if amount <= 0:
            raise CreditGrantError(user_id, payment_reference, "amount must be positive")

        with self._lock:
            key = (user_id, payment_reference)
            if key in self._references:
                raise DuplicateTransactionError(payment_reference, user_id)

            new_balance = self._balances.get(user_id, 0) + amount
            self._references.add(key)
            self._balances[user_id] = new_balance
            self._transactions.append(
                Transaction(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    amount=amount,
                    type=transaction_type,
                    reference_id=payment_reference,
                    balance_after=new_balance,
                    created_at=_utcnow(),
                )
            )
            return new_balance

    def get_balance(self, user_id: str) -> int:
        with self._lock:
            return self._balances.get(user_id, 0)

    def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        with self._lock:
            entries = [t for t in reversed(self._transactions) if t.user_id == user_id]
        return entries[offset : offset + limit]


class InMemoryRateLimiter(IRateLimiter):
    """Sliding-window event log per (identifier, action)."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._lock = threading.Lock()
        self._events: dict[tuple[str, str], list[datetime]] = {}
        self._clock = clock

    def check(
        self,
        identifier: str,
        action: str,
        max_count: int,
        window_minutes: int,
        increment: bool = True,
    ) -> RateLimitDecision:
        now = self._clock()
        cutoff = now - timedelta(minutes=window_minutes)
        with self._lock:
            key = (identifier, action)
            recent = [ts for ts in self._events.get(key, ()) if ts > cutoff]
            allowed = len(recent) < max_count
            if allowed and increment:
                recent.append(now)
            if recent:
                self._events[key] = recent
            else:
                self._events.pop(key, None)
        return RateLimitDecision(allowed=allowed)


class InMemoryDatastore:
    """Bundle of in-memory collaborators sharing nothing but a lifetime."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self.purchases = InMemoryPurchaseRepository()
        self.ledger = InMemoryCreditLedger()
        self.rate_limiter = InMemoryRateLimiter(clock=clock)
