from __future__ import annotations

import json
import logging
import threading
from decimal import Decimal
from typing import Any

from creatorhq.application.exceptions import PaymentProviderError
from creatorhq.application.ports.payments import PaymentProviderPort
from creatorhq.domain.entities.checkout import CheckoutSessionRef


class MockPayments(PaymentProviderPort):
    """Records checkout requests; webhooks are accepted unsigned."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sessions: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

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
        if self.fail:
            raise PaymentProviderError("Mock payment provider is down")
        with self._lock:
            session_id = f"cs_mock_{len(self.sessions) + 1}"
            self.sessions.append(
                {
                    "id": session_id,
                    "amount": amount,
                    "currency": currency,
                    "description": description,
                    "customer_email": customer_email,
                    "metadata": dict(metadata),
                }
            )
        self._logger.info("Mock checkout session created", extra={"event": session_id})
        return CheckoutSessionRef(id=session_id, url=f"https://checkout.mock/{session_id}")

    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        try:
            event = json.loads(payload.decode("utf-8")) if payload else None
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid webhook payload: {e}") from e
        if not isinstance(event, dict):
            raise ValueError("Webhook payload must be a JSON object")
        return event
