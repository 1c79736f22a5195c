"""Tests for billing module models."""

import pytest
from pydantic import ValidationError

from modules.billing.models import (
    CheckoutRequest,
    CreditPack,
    FailureReason,
    Purchase,
    PurchaseStatus,
    QuickBuyResponse,
    TransactionType,
)


class TestTransactionType:
    def test_transaction_types_exist(self):
        """Should have all expected transaction types."""
        assert TransactionType.PURCHASE == "purchase"
        assert TransactionType.USAGE == "usage"
        assert TransactionType.REFUND == "refund"


class TestFailureReason:
    def test_expired_does_not_require_review(self):
        """An expired session took no money."""
        assert FailureReason.EXPIRED.requires_review is False

    @pytest.mark.parametrize(
        "reason",
        [FailureReason.CREDIT_GRANT_FAILED, FailureReason.UNMATCHED_PAYMENT],
    )
    def test_paid_failures_require_review(self, reason):
        assert reason.requires_review is True


class TestCreditPack:
    def test_pack_is_frozen(self):
        pack = CreditPack(id="starter", name="Starter", credits=10, price=499)
        with pytest.raises(ValidationError):
            pack.price = 1

    def test_rejects_non_positive_credits(self):
        with pytest.raises(ValidationError):
            CreditPack(id="bad", name="Bad", credits=0, price=100)

    def test_rejects_non_positive_price(self):
        with pytest.raises(ValidationError):
            CreditPack(id="bad", name="Bad", credits=10, price=0)


class TestPurchase:
    def _purchase(self, **overrides) -> Purchase:
        data = dict(user_id="user-1", reference="cs_1", credits=10, amount_paid=499)
        data.update(overrides)
        return Purchase(**data)

    def test_defaults_to_pending(self):
        purchase = self._purchase()
        assert purchase.status == PurchaseStatus.PENDING
        assert purchase.failure_reason is None
        assert purchase.requires_review is False

    def test_expired_purchase_is_not_reviewable(self):
        purchase = self._purchase(
            status=PurchaseStatus.FAILED,
            failure_reason=FailureReason.EXPIRED,
        )
        assert purchase.requires_review is False

    def test_credit_grant_failure_is_reviewable(self):
        purchase = self._purchase(
            status=PurchaseStatus.FAILED,
            failure_reason=FailureReason.CREDIT_GRANT_FAILED,
        )
        assert purchase.requires_review is True

    def test_completed_purchase_is_not_reviewable(self):
        purchase = self._purchase(
            status=PurchaseStatus.COMPLETED,
            failure_reason=FailureReason.CREDIT_GRANT_FAILED,
        )
        assert purchase.requires_review is False


class TestApiModels:
    def test_checkout_request_accepts_camel_case(self):
        request = CheckoutRequest.model_validate({"packId": "starter"})
        assert request.pack_id == "starter"

    def test_checkout_request_rejects_empty_pack(self):
        with pytest.raises(ValidationError):
            CheckoutRequest.model_validate({"packId": ""})

    def test_quick_buy_response_serializes_alias(self):
        response = QuickBuyResponse(client_secret="pi_secret")
        assert response.model_dump(by_alias=True) == {"clientSecret": "pi_secret"}
