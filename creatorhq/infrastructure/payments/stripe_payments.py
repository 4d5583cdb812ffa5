from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any

import stripe

from creatorhq.application.exceptions import PaymentProviderError
from creatorhq.application.ports.payments import PaymentProviderPort
from creatorhq.application.utils.pricing import to_minor_units
from creatorhq.core.config import settings
from creatorhq.domain.entities.checkout import CheckoutSessionRef


class StripePayments(PaymentProviderPort):
    def __init__(self, secret_key: str | None = None, webhook_secret: str | None = None) -> None:
        self._secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self._logger = logging.getLogger(__name__)

        if not self._secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for Stripe payments")
        stripe.api_key = self._secret_key

    def create_checkout_session(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        customer_email: str | None,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionRef:
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": to_minor_units(amount),
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            # refunds arrive as charge events, which only see the payment intent
            "payment_intent_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            self._logger.error(
                "Stripe checkout session failed",
                extra={"booking_id": metadata.get("bookingId"), "error": str(e)},
            )
            raise PaymentProviderError(f"Stripe checkout failed: {e}") from e

        if not session.url:
            raise PaymentProviderError("Stripe returned a checkout session without a URL")
        self._logger.info(
            "Stripe checkout session created",
            extra={"booking_id": metadata.get("bookingId"), "event": session.id},
        )
        return CheckoutSessionRef(id=session.id, url=session.url)

    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self._webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET is not configured")
        if not signature:
            raise ValueError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid webhook signature: {e}") from e
        return json.loads(payload)
