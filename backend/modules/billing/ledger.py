"""
Credit ledger backed by Supabase stored procedures.

``add_credits`` runs in one Postgres transaction: it locks the user row,
inserts into ``credit_transactions`` (unique on user and payment
reference) and bumps ``users.credits``. A repeated reference fails with a
unique violation and nothing is applied.
"""

import logging
from typing import Any, Optional

from postgrest.exceptions import APIError

from shared.repository import BaseRepository

from .exceptions import CreditGrantError, DuplicateTransactionError
from .interfaces import ICreditLedger
from .models import Transaction, TransactionType

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SupabaseCreditLedger(BaseRepository[Transaction], ICreditLedger):
    """ICreditLedger over the ``add_credits`` RPC and ``credit_transactions`` table."""

    def grant(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        payment_reference: str,
    ) -> int:
        if amount <= 0:
            raise CreditGrantError(user_id, payment_reference, "amount must be positive")

        try:
            result = self._db.rpc(
                "add_credits",
                {
                    "p_user_id": user_id,
                    "p_amount": amount,
                    "p_type": transaction_type.value,
                    "p_stripe_payment_id": payment_reference,
                },
            ).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateTransactionError(payment_reference, user_id)
            raise CreditGrantError(user_id, payment_reference, e.message or str(e))

        new_balance = _extract_balance(result.data)
        if new_balance is None:
            raise CreditGrantError(user_id, payment_reference, "add_credits returned no balance")
        return new_balance

    def get_balance(self, user_id: str) -> int:
        result = (
            self._db.table("users")
            .select("credits")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return 0
        return int(result.data[0].get("credits") or 0)

    def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        result = (
            self._db.table("credit_transactions")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [self._map_to_transaction(row) for row in result.data]

    def _map_to_transaction(self, data: dict[str, Any]) -> Transaction:
        return Transaction(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            amount=int(data["amount"]),
            type=TransactionType(data["type"]),
            reference_id=data.get("stripe_payment_id"),
            balance_after=data.get("balance_after"),
            created_at=data["created_at"],
        )


def _extract_balance(data: Any) -> Optional[int]:
    """``add_credits`` returns a one-row table; accept a bare scalar too."""
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get("new_credits")
    if data is None:
        return None
    return int(data)
