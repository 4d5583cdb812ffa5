from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PaymentEventKind(str, Enum):
    checkout_completed = "checkout_completed"
    checkout_expired = "checkout_expired"
    charge_refunded = "charge_refunded"
    ignored = "ignored"


# Purchase types that belong to the booking flow; orders, VIP and courses are handled elsewhere.
BOOKING_PURCHASE_TYPES = {None, "", "booking", "payment_link", "payment-link"}

_EVENT_KINDS = {
    "checkout.session.completed": PaymentEventKind.checkout_completed,
    "checkout.session.expired": PaymentEventKind.checkout_expired,
    "charge.refunded": PaymentEventKind.charge_refunded,
}


@dataclass(frozen=True)
class PaymentEvent:
    kind: PaymentEventKind
    event_id: str | None = None
    provider_session_id: str | None = None
    payment_intent_id: str | None = None
    booking_id: str | None = None
    creator_id: str | None = None
    amount: Decimal | None = None


class PaymentWebhookEventDTO(BaseModel):
    id: str | None = None
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    def to_payment_event(self) -> PaymentEvent:
        kind = _EVENT_KINDS.get(self.type, PaymentEventKind.ignored)
        obj = self.data.get("object") or {}
        metadata = obj.get("metadata") or {}

        if kind == PaymentEventKind.ignored:
            return PaymentEvent(kind=kind, event_id=self.id)
        if metadata.get("type") not in BOOKING_PURCHASE_TYPES:
            return PaymentEvent(kind=PaymentEventKind.ignored, event_id=self.id)

        booking_id = metadata.get("bookingId") or metadata.get("booking_id")
        creator_id = metadata.get("creator_id") or metadata.get("creatorId")

        if kind == PaymentEventKind.charge_refunded:
            return PaymentEvent(
                kind=kind,
                event_id=self.id,
                payment_intent_id=_str_or_none(obj.get("payment_intent")),
                booking_id=booking_id,
                creator_id=creator_id,
                amount=_minor_to_decimal(obj.get("amount_refunded")),
            )

        return PaymentEvent(
            kind=kind,
            event_id=self.id,
            provider_session_id=_str_or_none(obj.get("id")),
            payment_intent_id=_str_or_none(obj.get("payment_intent")),
            booking_id=booking_id,
            creator_id=creator_id,
            amount=_minor_to_decimal(obj.get("amount_total")),
        )


def _str_or_none(value: Any) -> str | None:
    if value in (None, ""):
        return None
    if isinstance(value, dict):
        # expanded objects carry their id
        value = value.get("id")
    return str(value) if value else None


def _minor_to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return (Decimal(int(value)) / 100).quantize(Decimal("0.01"))
