from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from creatorhq.domain.entities.checkout import CheckoutSessionRef


class PaymentProviderPort(ABC):
    @abstractmethod
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
        """Create a hosted checkout session. Raises PaymentProviderError on failure."""
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify a webhook delivery and return the event as a dict. Raises ValueError if invalid."""
        raise NotImplementedError
