from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from creatorhq.api.errors import to_http_error
from creatorhq.api.schemas import (
    AvailabilitySchema,
    AvailabilityWindowSchema,
    BlockDatesRequestSchema,
    BlockedDateRangeSchema,
    BookingRequestSchema,
    BookingSchema,
    CancelRequestSchema,
    MeetingLinkRequestSchema,
    PaymentLinkSchema,
    PaymentRequestSchema,
    RescheduleRequestSchema,
    ScheduleSchema,
    WeeklyAvailabilitySchema,
)
from creatorhq.application.exceptions import BookingError, PaymentProviderError
from creatorhq.application.use_cases.booking_lifecycle import BookingLifecycleService, BookingRequest
from creatorhq.domain.entities.booking import BookingStatus
from creatorhq.wiring.dependencies import get_booking_service


router = APIRouter()
logger = logging.getLogger(__name__)


def creator_scope(x_creator_id: str = Header(..., alias="X-Creator-Id")) -> str:
    creator_id = x_creator_id.strip()
    if not creator_id:
        raise HTTPException(status_code=401, detail="Missing creator identity")
    return creator_id


@router.post("/bookings", response_model=BookingSchema, status_code=status.HTTP_201_CREATED)
def create_booking(
    req: BookingRequestSchema,
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.create_booking_request(
            BookingRequest(
                creator_id=req.creator_id,
                client_name=req.client_name,
                client_email=req.client_email,
                service_type=req.service_type,
                booking_date=req.booking_date,
                duration_minutes=req.duration_minutes,
                phone=req.phone,
                notes=req.notes,
            )
        )
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.get("/creators/{creator_id}/availability", response_model=AvailabilitySchema)
def availability(
    creator_id: str,
    day: date,
    duration_minutes: int = Query(60),
    tz: str | None = None,
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        slots = service.available_slots(creator_id, day, duration_minutes, tz=tz)
    except BookingError as e:
        raise to_http_error(e)
    return AvailabilitySchema(creator_id=creator_id, day=day, duration_minutes=duration_minutes, slots=slots)


@router.get("/creators/{creator_id}/schedule", response_model=ScheduleSchema)
def get_schedule(
    creator_id: str,
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        windows, blocked = service.get_schedule(creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return _schedule(creator_id, windows, blocked)


@router.put("/schedule/availability", response_model=ScheduleSchema)
def set_weekly_availability(
    req: WeeklyAvailabilitySchema,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        service.set_weekly_availability(creator_id, [w.to_entity() for w in req.windows])
        windows, blocked = service.get_schedule(creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return _schedule(creator_id, windows, blocked)


@router.post("/schedule/blocked-dates", response_model=BlockedDateRangeSchema, status_code=status.HTTP_201_CREATED)
def block_dates(
    req: BlockDatesRequestSchema,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        blocked = service.block_dates(creator_id, req.start_date, req.end_date, reason=req.reason)
    except BookingError as e:
        raise to_http_error(e)
    return BlockedDateRangeSchema.from_entity(blocked)


def _schedule(creator_id: str, windows, blocked) -> ScheduleSchema:
    return ScheduleSchema(
        creator_id=creator_id,
        windows=[AvailabilityWindowSchema.from_entity(w) for w in windows],
        blocked_dates=[BlockedDateRangeSchema.from_entity(b) for b in blocked],
    )


@router.get("/bookings", response_model=list[BookingSchema])
def list_bookings(
    status_filter: BookingStatus | None = Query(None, alias="status"),
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    return [BookingSchema.from_entity(b) for b in service.list_bookings(creator_id, status_filter)]


@router.get("/bookings/{booking_id}", response_model=BookingSchema)
def get_booking(
    booking_id: str,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.get_booking(booking_id, creator_id=creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingSchema)
def confirm_booking(
    booking_id: str,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.confirm_booking(booking_id, creator_id=creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/complete", response_model=BookingSchema)
def complete_booking(
    booking_id: str,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.complete_booking(booking_id, creator_id=creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingSchema)
def cancel_booking(
    booking_id: str,
    req: CancelRequestSchema | None = None,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.cancel_booking(booking_id, reason=req.reason if req else None, creator_id=creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/request-payment", response_model=PaymentLinkSchema)
def request_payment(
    booking_id: str,
    req: PaymentRequestSchema | None = None,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        link = service.request_payment(booking_id, note=req.note if req else None, creator_id=creator_id)
    except (BookingError, PaymentProviderError) as e:
        if isinstance(e, PaymentProviderError):
            logger.error("Payment request failed", extra={"booking_id": booking_id, "error": str(e)})
        raise to_http_error(e)
    return PaymentLinkSchema(booking_id=booking_id, payment_link=link)


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingSchema)
def reschedule_booking(
    booking_id: str,
    req: RescheduleRequestSchema,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.reschedule_booking(
            booking_id,
            req.booking_date,
            duration_minutes=req.duration_minutes,
            creator_id=creator_id,
        )
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/meeting-link", response_model=BookingSchema)
def send_meeting_link(
    booking_id: str,
    req: MeetingLinkRequestSchema,
    creator_id: str = Depends(creator_scope),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    try:
        booking = service.send_meeting_link(booking_id, req.meeting_link, note=req.note, creator_id=creator_id)
    except BookingError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)
