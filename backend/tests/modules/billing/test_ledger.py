"""Tests for the Supabase credit ledger."""

from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from modules.billing.exceptions import CreditGrantError, DuplicateTransactionError
from modules.billing.ledger import SupabaseCreditLedger
from modules.billing.models import TransactionType


@pytest.fixture
def mock_db() -> MagicMock:
    return MagicMock()


@pytest.fixture
def ledger(mock_db) -> SupabaseCreditLedger:
    return SupabaseCreditLedger(mock_db)


class TestGrant:
    def test_calls_add_credits(self, ledger, mock_db):
        mock_db.rpc.return_value.execute.return_value.data = [{"new_credits": 35}]

        balance = ledger.grant("user-1", 25, TransactionType.PURCHASE, "cs_1")

        assert balance == 35
        mock_db.rpc.assert_called_once_with(
            "add_credits",
            {
                "p_user_id": "user-1",
                "p_amount": 25,
                "p_type": "purchase",
                "p_stripe_payment_id": "cs_1",
            },
        )

    @pytest.mark.parametrize("data", [{"new_credits": 12}, 12, [12]])
    def test_accepts_balance_shapes(self, ledger, mock_db, data):
        mock_db.rpc.return_value.execute.return_value.data = data
        assert ledger.grant("user-1", 2, TransactionType.PURCHASE, "cs_1") == 12

    def test_unique_violation_is_duplicate(self, ledger, mock_db):
        mock_db.rpc.return_value.execute.side_effect = APIError(
            {"message": "duplicate key value violates unique constraint", "code": "23505"}
        )
        with pytest.raises(DuplicateTransactionError) as exc_info:
            ledger.grant("user-1", 10, TransactionType.PURCHASE, "cs_1")
        assert exc_info.value.details["payment_reference"] == "cs_1"

    def test_other_errors_are_grant_errors(self, ledger, mock_db):
        mock_db.rpc.return_value.execute.side_effect = APIError(
            {"message": "connection refused", "code": "08006"}
        )
        with pytest.raises(CreditGrantError):
            ledger.grant("user-1", 10, TransactionType.PURCHASE, "cs_1")

    def test_missing_balance_is_grant_error(self, ledger, mock_db):
        mock_db.rpc.return_value.execute.return_value.data = []
        with pytest.raises(CreditGrantError):
            ledger.grant("user-1", 10, TransactionType.PURCHASE, "cs_1")

    def test_rejects_non_positive_amount(self, ledger, mock_db):
        with pytest.raises(CreditGrantError):
            ledger.grant("user-1", 0, TransactionType.PURCHASE, "cs_1")
        mock_db.rpc.assert_not_called()


class TestReads:
    def test_get_balance(self, ledger, mock_db):
        chain = mock_db.table.return_value.select.return_value.eq.return_value.limit.return_value
        chain.execute.return_value.data = [{"credits": 42}]
        assert ledger.get_balance("user-1") == 42

    def test_get_balance_without_row(self, ledger, mock_db):
        chain = mock_db.table.return_value.select.return_value.eq.return_value.limit.return_value
        chain.execute.return_value.data = []
        assert ledger.get_balance("user-1") == 0

    def test_list_transactions(self, ledger, mock_db):
        chain = (
            mock_db.table.return_value.select.return_value.eq.return_value
            .order.return_value.range.return_value
        )
        chain.execute.return_value.data = [
            {
                "id": "t1",
                "user_id": "user-1",
                "amount": 10,
                "type": "purchase",
                "stripe_payment_id": "cs_1",
                "balance_after": 10,
                "created_at": "2026-01-01T00:00:00+00:00",
            }
        ]

        transactions = ledger.list_transactions("user-1", limit=20, offset=40)

        mock_db.table.assert_called_with("credit_transactions")
        mock_db.table.return_value.select.return_value.eq.return_value.order.return_value.range.assert_called_with(40, 59)
        assert transactions[0].reference_id == "cs_1"
        assert transactions[0].type == TransactionType.PURCHASE
