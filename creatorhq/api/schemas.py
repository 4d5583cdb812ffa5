from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from creatorhq.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from creatorhq.domain.entities.creator import AvailabilityWindow, BlockedDateRange


class BookingRequestSchema(BaseModel):
    creator_id: str
    client_name: str
    client_email: str
    service_type: str
    booking_date: datetime
    duration_minutes: int
    phone: str | None = None
    notes: str | None = None


class BookingSchema(BaseModel):
    id: str
    creator_id: str
    client_name: str
    client_email: str
    phone: str | None = None
    service_type: str
    booking_date: datetime
    duration_minutes: int
    price: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_link: str | None = None
    meeting_link: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingSchema":
        return cls(
            id=booking.id,
            creator_id=booking.creator_id,
            client_name=booking.client_name,
            client_email=booking.client_email,
            phone=booking.phone,
            service_type=booking.service_type.value,
            booking_date=booking.booking_date,
            duration_minutes=booking.duration_minutes,
            price=booking.price,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_link=booking.payment_link,
            meeting_link=booking.meeting_link,
            notes=booking.notes,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
        )


class CancelRequestSchema(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class PaymentRequestSchema(BaseModel):
    note: str | None = Field(default=None, max_length=2000)


class PaymentLinkSchema(BaseModel):
    booking_id: str
    payment_link: str


class RescheduleRequestSchema(BaseModel):
    booking_date: datetime
    duration_minutes: int | None = None


class MeetingLinkRequestSchema(BaseModel):
    meeting_link: str
    note: str | None = Field(default=None, max_length=2000)


class AvailabilitySchema(BaseModel):
    creator_id: str
    day: date
    duration_minutes: int
    slots: list[datetime]


class AvailabilityWindowSchema(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 is Sunday")
    start_time: time
    end_time: time
    is_available: bool = True

    def to_entity(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            is_available=self.is_available,
        )

    @classmethod
    def from_entity(cls, window: AvailabilityWindow) -> "AvailabilityWindowSchema":
        return cls(
            day_of_week=window.day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
            is_available=window.is_available,
        )


class WeeklyAvailabilitySchema(BaseModel):
    windows: list[AvailabilityWindowSchema]


class BlockDatesRequestSchema(BaseModel):
    start_date: date
    end_date: date | None = None
    reason: str | None = Field(default=None, max_length=500)


class BlockedDateRangeSchema(BaseModel):
    start_date: date
    end_date: date
    reason: str | None = None

    @classmethod
    def from_entity(cls, blocked: BlockedDateRange) -> "BlockedDateRangeSchema":
        return cls(start_date=blocked.start_date, end_date=blocked.end_date, reason=blocked.reason)


class ScheduleSchema(BaseModel):
    creator_id: str
    windows: list[AvailabilityWindowSchema]
    blocked_dates: list[BlockedDateRangeSchema]


class WebhookAckSchema(BaseModel):
    received: bool = True
    applied: bool = False
    booking_id: str | None = None
