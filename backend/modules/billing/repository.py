"""
Purchase repository for database access.

Encapsulates Supabase queries and data mapping for the ``purchases`` table.
The external reference column keeps its historical name,
``stripe_session_id``, and holds either a Checkout Session id or a
PaymentIntent id.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from postgrest.exceptions import APIError

from shared.repository import BaseRepository

from .exceptions import PurchaseRecordError
from .interfaces import IPurchaseRepository
from .models import FailureReason, Purchase, PurchaseStatus

TABLE = "purchases"
REFERENCE_COLUMN = "stripe_session_id"


class SupabasePurchaseRepository(BaseRepository[Purchase], IPurchaseRepository):
    """
    Repository for purchase records.

    Note: This repository does NOT perform authorization checks.
    Callers are server-side flows acting with the service role.
    """

    def create_pending(self, purchase: Purchase) -> Purchase:
        data = self._to_row(purchase)
        data["status"] = PurchaseStatus.PENDING.value
        try:
            result = self._db.table(TABLE).insert(data).execute()
        except APIError as e:
            raise PurchaseRecordError(purchase.reference, e.message or str(e))
        if not result.data:
            raise PurchaseRecordError(purchase.reference, "insert returned no row")
        return self._map_to_purchase(result.data[0])

    def record_unmatched(self, purchase: Purchase) -> Purchase:
        data = self._to_row(purchase)
        data["status"] = PurchaseStatus.FAILED.value
        data["failure_reason"] = FailureReason.UNMATCHED_PAYMENT.value
        result = (
            self._db.table(TABLE)
            .upsert(data, on_conflict=REFERENCE_COLUMN, ignore_duplicates=True)
            .execute()
        )
        if result.data:
            return self._map_to_purchase(result.data[0])
        existing = self.get_by_reference(purchase.reference)
        if existing is None:
            raise PurchaseRecordError(purchase.reference, "unmatched payment not recorded")
        return existing

    def get_by_reference(self, reference: str) -> Optional[Purchase]:
        result = (
            self._db.table(TABLE)
            .select("*")
            .eq(REFERENCE_COLUMN, reference)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return self._map_to_purchase(result.data[0])

    def transition(
        self,
        reference: str,
        expected: PurchaseStatus,
        new_status: PurchaseStatus,
        failure_reason: Optional[FailureReason] = None,
    ) -> bool:
        data = {
            "status": new_status.value,
            "failure_reason": failure_reason.value if failure_reason else None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        # Both filters go into one UPDATE ... WHERE; PostgREST returns the
        # rows it changed, so an empty result means another caller won.
        result = (
            self._db.table(TABLE)
            .update(data)
            .eq(REFERENCE_COLUMN, reference)
            .eq("status", expected.value)
            .execute()
        )
        return bool(result.data)

    def list_requiring_review(self, limit: int = 100) -> list[Purchase]:
        reasons = [reason.value for reason in FailureReason if reason.requires_review]
        result = (
            self._db.table(TABLE)
            .select("*")
            .eq("status", PurchaseStatus.FAILED.value)
            .in_("failure_reason", reasons)
            .order("updated_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [self._map_to_purchase(row) for row in result.data]

    # -------------------------------------------------------------------------
    # Mapping helpers
    # -------------------------------------------------------------------------

    def _to_row(self, purchase: Purchase) -> dict[str, Any]:
        return {
            "user_id": purchase.user_id,
            REFERENCE_COLUMN: purchase.reference,
            "pack_id": purchase.pack_id,
            "credits": purchase.credits,
            "amount_paid": purchase.amount_paid,
        }

    def _map_to_purchase(self, data: dict[str, Any]) -> Purchase:
        reason = data.get("failure_reason")
        return Purchase(
            id=str(data["id"]) if data.get("id") is not None else None,
            user_id=str(data["user_id"]),
            reference=data[REFERENCE_COLUMN],
            pack_id=data.get("pack_id"),
            credits=data.get("credits") or 0,
            amount_paid=data.get("amount_paid") or 0,
            status=PurchaseStatus(data["status"]),
            failure_reason=FailureReason(reason) if reason else None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
