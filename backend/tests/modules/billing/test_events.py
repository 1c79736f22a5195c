"""Tests for Stripe event decoding."""

import pytest

from modules.billing.events import (
    CheckoutSessionCompleted,
    CheckoutSessionExpired,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    PaymentMetadata,
    UnrecognizedEvent,
    decode_event,
)
from tests.conftest import (
    checkout_completed,
    checkout_expired,
    make_event,
    payment_intent_succeeded,
)


class TestPaymentMetadata:
    def test_parses_string_credits(self):
        metadata = PaymentMetadata.parse({"user_id": "u1", "credits": "25", "pack_id": "popular"})
        assert metadata is not None
        assert metadata.credits == 25
        assert metadata.pack_id == "popular"

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            {},
            {"credits": "10"},
            {"user_id": "u1"},
            {"user_id": "", "credits": "10"},
            {"user_id": "u1", "credits": "ten"},
            {"user_id": "u1", "credits": "0"},
            {"user_id": "u1", "credits": "-5"},
        ],
    )
    def test_missing_or_malformed_is_none(self, raw):
        assert PaymentMetadata.parse(raw) is None


class TestDecodeEvent:
    def test_checkout_completed(self):
        event = decode_event(checkout_completed(session_id="cs_1", amount_total=499))
        assert isinstance(event, CheckoutSessionCompleted)
        assert event.reference == "cs_1"
        assert event.is_paid is True
        assert event.amount == 499
        assert event.metadata["user_id"] == "test-user-123"

    def test_checkout_completed_unpaid(self):
        event = decode_event(checkout_completed(payment_status="unpaid"))
        assert isinstance(event, CheckoutSessionCompleted)
        assert event.is_paid is False

    def test_expanded_payment_intent_reduced_to_id(self):
        raw = checkout_completed()
        raw["data"]["object"]["payment_intent"] = {"id": "pi_1", "object": "payment_intent"}
        event = decode_event(raw)
        assert event.payment_intent == "pi_1"

    def test_checkout_expired(self):
        event = decode_event(checkout_expired(session_id="cs_2"))
        assert isinstance(event, CheckoutSessionExpired)
        assert event.reference == "cs_2"

    def test_payment_intent_succeeded(self):
        event = decode_event(payment_intent_succeeded(intent_id="pi_9", amount=999))
        assert isinstance(event, PaymentIntentSucceeded)
        assert event.reference == "pi_9"
        assert event.is_paid is True
        assert event.amount == 999

    def test_payment_intent_failed(self):
        raw = make_event(
            "payment_intent.payment_failed",
            {"id": "pi_3", "last_payment_error": {"message": "Your card was declined."}},
        )
        event = decode_event(raw)
        assert isinstance(event, PaymentIntentFailed)
        assert event.failure_message == "Your card was declined."

    def test_unknown_type(self):
        event = decode_event(make_event("customer.created", {"id": "cus_1"}, event_id="evt_9"))
        assert isinstance(event, UnrecognizedEvent)
        assert event.event_id == "evt_9"
        assert event.type == "customer.created"

    def test_known_type_with_malformed_object(self):
        event = decode_event({"id": "evt_bad", "type": "checkout.session.completed", "data": {}})
        assert isinstance(event, UnrecognizedEvent)
        assert event.type == "checkout.session.completed"

    def test_data_not_an_object(self):
        event = decode_event({"id": "evt_bad", "type": "payment_intent.succeeded", "data": "x"})
        assert isinstance(event, UnrecognizedEvent)

    def test_events_are_frozen(self):
        event = decode_event(checkout_expired())
        with pytest.raises(Exception):
            event.session_id = "other"
