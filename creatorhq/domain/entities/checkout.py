from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CheckoutStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    expired = "expired"


@dataclass(frozen=True)
class CheckoutSessionRef:
    id: str
    url: str


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    provider_session_id: str
    booking_id: str
    creator_id: str
    amount: Decimal
    currency: str
    url: str
    status: CheckoutStatus = CheckoutStatus.pending
    payment_intent_id: str | None = None
    created_at: datetime | None = None
