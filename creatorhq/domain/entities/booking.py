from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum


class ServiceType(str, Enum):
    consultation = "consultation"
    workshop = "workshop"
    mentoring = "mentoring"
    custom = "custom"
    other = "other"


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    refunded = "refunded"


MIN_DURATION_MINUTES = 15


@dataclass(frozen=True)
class Booking:
    id: str
    creator_id: str
    client_name: str
    client_email: str
    service_type: ServiceType
    booking_date: datetime  # UTC, start of the reserved slot
    duration_minutes: int
    price: Decimal
    status: BookingStatus = BookingStatus.pending
    payment_status: PaymentStatus = PaymentStatus.pending
    phone: str | None = None
    payment_id: str | None = None
    payment_link: str | None = None
    meeting_link: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None

    @property
    def ends_at(self) -> datetime:
        return self.booking_date + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.cancelled
