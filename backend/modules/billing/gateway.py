"""
Stripe payment gateway.

Wraps the Stripe SDK behind IPaymentGateway. The API key is passed on
every call instead of being set on the ``stripe`` module, so several
gateways (or a fake) can coexist in one process.
"""

import json
import logging
from typing import Any, Mapping, Optional

import stripe

from shared.config import Settings

from .exceptions import PaymentProviderError, WebhookVerificationError
from .interfaces import IPaymentGateway
from .models import CreditPack, PaymentHandle, PaymentKind

logger = logging.getLogger(__name__)


class StripeGateway(IPaymentGateway):
    """IPaymentGateway backed by Stripe Checkout and PaymentIntents."""

    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd"):
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._currency = currency

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeGateway":
        """
        Build the gateway from application settings.

        Raises:
            RuntimeError: If Stripe configuration is missing
        """
        if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
            raise RuntimeError(
                "Stripe configuration missing. "
                "Set STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET environment variables."
            )
        return cls(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.currency,
        )

    def create_checkout_session(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> PaymentHandle:
        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self._currency,
                        "product_data": {
                            "name": f"{pack.name} - {pack.credits} Meme Credits",
                            "description": f"Generate {pack.credits} memes with your credits",
                        },
                        "unit_amount": pack.price,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata),
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise PaymentProviderError(
                "Failed to create checkout session",
                provider_error=getattr(e, "code", None) or str(e),
            )

        return PaymentHandle(
            kind=PaymentKind.CHECKOUT_SESSION,
            reference=session.id,
            url=session.url,
        )

    def create_payment_intent(
        self,
        pack: CreditPack,
        metadata: Mapping[str, str],
    ) -> PaymentHandle:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=pack.price,
                currency=self._currency,
                automatic_payment_methods={"enabled": True},
                metadata=dict(metadata),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent creation failed: {e}")
            raise PaymentProviderError(
                "Failed to create payment",
                provider_error=getattr(e, "code", None) or str(e),
            )

        return PaymentHandle(
            kind=PaymentKind.PAYMENT_INTENT,
            reference=intent.id,
            client_secret=intent.client_secret,
        )

    def cancel_payment(self, handle: PaymentHandle) -> None:
        try:
            if handle.kind == PaymentKind.CHECKOUT_SESSION:
                stripe.checkout.Session.expire(handle.reference, api_key=self._api_key)
            else:
                stripe.PaymentIntent.cancel(handle.reference, api_key=self._api_key)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                f"Failed to cancel {handle.reference}",
                provider_error=getattr(e, "code", None) or str(e),
            )

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        if not self._webhook_secret:
            raise WebhookVerificationError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self._webhook_secret)
            event = json.loads(body)
        except stripe.SignatureVerificationError:
            raise WebhookVerificationError()
        except (UnicodeDecodeError, ValueError):
            raise WebhookVerificationError("Webhook payload is not valid JSON")

        if not isinstance(event, dict):
            raise WebhookVerificationError("Webhook payload is not an event object")
        return event
