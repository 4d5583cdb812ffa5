from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from creatorhq.application.dto.payment_webhook_event import PaymentEvent, PaymentEventKind
from creatorhq.application.exceptions import (
    InvalidTransition,
    NotFound,
    PaymentProviderError,
    SlotConflict,
    ValidationError,
)
from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.application.ports.payments import PaymentProviderPort
from creatorhq.application.use_cases.notification_dispatcher import NotificationDispatcher
from creatorhq.application.use_cases.slot_availability import SlotAvailabilityChecker
from creatorhq.application.use_cases.state_machine import can_apply, target_fields, transition_for
from creatorhq.application.utils.pricing import RateCalculator
from creatorhq.domain.entities.booking import (
    MIN_DURATION_MINUTES,
    Booking,
    BookingStatus,
    PaymentStatus,
    ServiceType,
)
from creatorhq.domain.entities.checkout import CheckoutSession, CheckoutStatus
from creatorhq.domain.entities.creator import AvailabilityWindow, BlockedDateRange
from creatorhq.domain.entities.lifecycle import BookingEvent

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[\d\s\-().]{7,20}$")


@dataclass(frozen=True)
class BookingRequest:
    creator_id: str
    client_name: str
    client_email: str
    service_type: str
    booking_date: datetime
    duration_minutes: int
    phone: str | None = None
    notes: str | None = None


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingLifecycleService:
    def __init__(
        self,
        repository: BookingRepositoryPort,
        payments: PaymentProviderPort,
        dispatcher: NotificationDispatcher,
        rates: RateCalculator | None = None,
        currency: str = "usd",
        site_url: str = "http://localhost:3000",
        max_duration_minutes: int = 480,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._payments = payments
        self._dispatcher = dispatcher
        self._rates = rates or RateCalculator()
        self._checker = SlotAvailabilityChecker(repository)
        self._currency = currency
        self._site_url = site_url.rstrip("/")
        self._max_duration = max_duration_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger(__name__)

    # Creation

    def create_booking_request(self, request: BookingRequest) -> Booking:
        service_type, start = self._validate_request(request)

        if self._repository.get_creator(request.creator_id) is None:
            raise NotFound(f"Creator {request.creator_id} not found")

        price = self._rates.price(service_type, request.duration_minutes)

        if self._checker.has_conflict(request.creator_id, start, request.duration_minutes):
            raise SlotConflict()

        booking = Booking(
            id=str(uuid.uuid4()),
            creator_id=request.creator_id,
            client_name=request.client_name.strip(),
            client_email=request.client_email.strip().lower(),
            phone=(request.phone or "").strip() or None,
            service_type=service_type,
            booking_date=start,
            duration_minutes=request.duration_minutes,
            price=price,
            notes=(request.notes or "").strip() or None,
            created_at=self._clock(),
        )
        # The repository re-checks the slot atomically with the insert.
        saved = self._repository.create_booking(booking)
        self._logger.info(
            "Booking requested",
            extra={"booking_id": saved.id, "creator_id": saved.creator_id, "status": saved.status.value},
        )
        self._dispatcher.dispatch(BookingEvent.requested, saved)
        return saved

    def _validate_request(self, request: BookingRequest) -> tuple[ServiceType, datetime]:
        errors: dict[str, str] = {}

        if not (request.creator_id or "").strip():
            errors["creator_id"] = "Creator is required"
        if len((request.client_name or "").strip()) < 2:
            errors["client_name"] = "Name must be at least 2 characters"
        if not _EMAIL_RE.match((request.client_email or "").strip()):
            errors["client_email"] = "Please enter a valid email"
        if request.phone and not _PHONE_RE.match(request.phone.strip()):
            errors["phone"] = "Please enter a valid phone number"

        service_type: ServiceType | None = None
        try:
            service_type = ServiceType(request.service_type)
        except ValueError:
            errors["service_type"] = f"Unknown service type '{request.service_type}'"

        duration_error = self._duration_error(request.duration_minutes)
        if duration_error:
            errors["duration_minutes"] = duration_error

        start: datetime | None = None
        if not isinstance(request.booking_date, datetime):
            errors["booking_date"] = "Booking date is required"
        else:
            start = as_utc(request.booking_date)
            if start <= self._clock():
                errors["booking_date"] = "Booking date must be in the future"

        if errors or service_type is None or start is None:
            raise ValidationError("Invalid booking request", errors)
        return service_type, start

    def _duration_error(self, duration_minutes: Any) -> str | None:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            return "Duration must be a whole number of minutes"
        if duration_minutes < MIN_DURATION_MINUTES:
            return f"Minimum booking is {MIN_DURATION_MINUTES} minutes"
        if duration_minutes > self._max_duration:
            return f"Maximum booking is {self._max_duration} minutes"
        return None

    # Lifecycle transitions

    def confirm_booking(self, booking_id: str, creator_id: str | None = None) -> Booking:
        updated = self._apply(booking_id, BookingEvent.confirmed, creator_id)
        self._dispatcher.dispatch(BookingEvent.confirmed, updated)
        return updated

    def complete_booking(self, booking_id: str, creator_id: str | None = None) -> Booking:
        return self._apply(booking_id, BookingEvent.completed, creator_id)

    def cancel_booking(self, booking_id: str, reason: str | None = None, creator_id: str | None = None) -> Booking:
        extra = {"cancellation_reason": reason.strip()} if reason and reason.strip() else None
        updated = self._apply(booking_id, BookingEvent.cancelled, creator_id, extra)
        self._dispatcher.dispatch(BookingEvent.cancelled, updated)
        return updated

    def request_payment(self, booking_id: str, note: str | None = None, creator_id: str | None = None) -> str:
        booking = self._load(booking_id, creator_id)
        transition_for(booking, BookingEvent.payment_requested)
        if booking.price <= 0:
            raise InvalidTransition("Booking has nothing to pay.")

        try:
            ref = self._payments.create_checkout_session(
                amount=booking.price,
                currency=self._currency,
                description=f"{booking.service_type.value.capitalize()} with {booking.client_name}",
                customer_email=booking.client_email,
                metadata={"bookingId": booking.id, "creator_id": booking.creator_id, "type": "booking"},
                success_url=f"{self._site_url}/bookme/payments?status=success",
                cancel_url=f"{self._site_url}/bookme/payments?status=cancelled",
            )
        except PaymentProviderError:
            raise
        except Exception as e:
            raise PaymentProviderError(f"Checkout session could not be created: {e}") from e

        self._repository.create_checkout_session(
            CheckoutSession(
                id=str(uuid.uuid4()),
                provider_session_id=ref.id,
                booking_id=booking.id,
                creator_id=booking.creator_id,
                amount=booking.price,
                currency=self._currency,
                url=ref.url,
                created_at=self._clock(),
            )
        )
        updated = self._repository.update_booking(
            booking.id,
            {"payment_id": ref.id, "payment_link": ref.url},
            booking.status,
            booking.payment_status,
        )
        self._logger.info("Payment requested", extra={"booking_id": booking.id, "creator_id": booking.creator_id})
        self._dispatcher.dispatch(BookingEvent.payment_requested, updated, payment_link=ref.url, note=note)
        return ref.url

    def reschedule_booking(
        self,
        booking_id: str,
        booking_date: datetime,
        duration_minutes: int | None = None,
        creator_id: str | None = None,
    ) -> Booking:
        booking = self._load(booking_id, creator_id)
        transition_for(booking, BookingEvent.rescheduled)

        new_duration = booking.duration_minutes if duration_minutes is None else duration_minutes
        errors: dict[str, str] = {}
        duration_error = self._duration_error(new_duration)
        if duration_error:
            errors["duration_minutes"] = duration_error
        start = as_utc(booking_date)
        if start <= self._clock():
            errors["booking_date"] = "Booking date must be in the future"
        if errors:
            raise ValidationError("Invalid reschedule request", errors)

        changes: dict[str, Any] = {"booking_date": start}
        if new_duration != booking.duration_minutes:
            changes["duration_minutes"] = new_duration
            changes["price"] = self._rates.price(booking.service_type, new_duration)
            if booking.payment_status == PaymentStatus.pending and booking.payment_link:
                # the outstanding checkout was for the old amount
                changes["payment_id"] = None
                changes["payment_link"] = None

        if self._checker.has_conflict(booking.creator_id, start, new_duration, exclude_booking_id=booking.id):
            raise SlotConflict()

        updated = self._repository.update_booking(
            booking.id, changes, booking.status, booking.payment_status, check_slot=True
        )
        self._logger.info("Booking rescheduled", extra={"booking_id": booking.id, "creator_id": booking.creator_id})
        self._dispatcher.dispatch(BookingEvent.rescheduled, updated)
        return updated

    def send_meeting_link(
        self,
        booking_id: str,
        meeting_link: str,
        note: str | None = None,
        creator_id: str | None = None,
    ) -> Booking:
        link = (meeting_link or "").strip()
        if not link.startswith(("https://", "http://")):
            raise ValidationError("Invalid meeting link", {"meeting_link": "Meeting link must be an http(s) URL"})
        updated = self._apply(booking_id, BookingEvent.meeting_link_sent, creator_id, {"meeting_link": link})
        self._dispatcher.dispatch(BookingEvent.meeting_link_sent, updated, note=note)
        return updated

    # Payment provider webhooks

    def handle_payment_webhook(self, event: PaymentEvent) -> Booking | None:
        if event.kind == PaymentEventKind.ignored:
            self._logger.info("Payment event ignored", extra={"event": event.event_id})
            return None
        if event.kind == PaymentEventKind.checkout_completed:
            return self._on_checkout_completed(event)
        if event.kind == PaymentEventKind.charge_refunded:
            return self._on_charge_refunded(event)
        return self._on_checkout_expired(event)

    def _on_checkout_completed(self, event: PaymentEvent) -> Booking:
        booking = self._resolve_webhook_booking(event)
        if event.provider_session_id:
            self._repository.update_checkout_session(
                event.provider_session_id,
                {"status": CheckoutStatus.completed, "payment_intent_id": event.payment_intent_id},
            )
        if booking.payment_status == PaymentStatus.paid:
            self._logger.info("Duplicate payment event", extra={"booking_id": booking.id, "event": event.event_id})
            return booking

        charged = self._charged_amount(event)
        if charged is not None and charged != booking.price:
            # the session was priced before a reschedule changed the booking
            self._logger.warning(
                "Checkout amount does not match booking price",
                extra={"booking_id": booking.id, "event": event.event_id, "status": booking.payment_status.value},
            )
            raise InvalidTransition(f"Checkout for {charged} does not match the booking price {booking.price}.")

        extra = {"payment_id": event.provider_session_id} if event.provider_session_id else None
        updated = self._apply(booking.id, BookingEvent.payment_succeeded, None, extra)
        self._dispatcher.dispatch(BookingEvent.payment_succeeded, updated, amount=event.amount)
        return updated

    def _charged_amount(self, event: PaymentEvent) -> Decimal | None:
        """Amount of the checkout as issued, falling back to what the provider reports."""
        if event.provider_session_id:
            session = self._repository.get_checkout_session(event.provider_session_id)
            if session is not None:
                return session.amount
        return event.amount

    def _on_charge_refunded(self, event: PaymentEvent) -> Booking:
        booking = self._resolve_webhook_booking(event)
        if booking.payment_status == PaymentStatus.refunded:
            self._logger.info("Duplicate refund event", extra={"booking_id": booking.id, "event": event.event_id})
            return booking
        updated = self._apply(booking.id, BookingEvent.refunded)
        self._dispatcher.dispatch(BookingEvent.refunded, updated)
        return updated

    def _on_checkout_expired(self, event: PaymentEvent) -> Booking:
        booking = self._resolve_webhook_booking(event)
        if event.provider_session_id:
            self._repository.update_checkout_session(event.provider_session_id, {"status": CheckoutStatus.expired})
        stale = booking.payment_id is not None and booking.payment_id != event.provider_session_id
        if stale or not can_apply(booking, BookingEvent.payment_expired):
            self._logger.info(
                "Expired checkout does not affect booking",
                extra={"booking_id": booking.id, "status": booking.status.value},
            )
            return booking
        updated = self._apply(booking.id, BookingEvent.payment_expired, None, {"payment_link": None})
        self._dispatcher.dispatch(BookingEvent.payment_expired, updated)
        return updated

    def _resolve_webhook_booking(self, event: PaymentEvent) -> Booking:
        booking_id = event.booking_id
        if not booking_id:
            session = None
            if event.provider_session_id:
                session = self._repository.get_checkout_session(event.provider_session_id)
            if session is None and event.payment_intent_id:
                session = self._repository.find_checkout_session_by_payment_intent(event.payment_intent_id)
            if session is None:
                raise NotFound("Payment event does not reference a known booking")
            booking_id = session.booking_id
        return self._load(booking_id, event.creator_id)

    # Queries

    def get_booking(self, booking_id: str, creator_id: str | None = None) -> Booking:
        return self._load(booking_id, creator_id)

    def list_bookings(self, creator_id: str, status: BookingStatus | None = None) -> list[Booking]:
        return self._repository.list_bookings(creator_id, status)

    def available_slots(
        self,
        creator_id: str,
        day: date,
        duration_minutes: int,
        tz: str | None = None,
    ) -> list[datetime]:
        duration_error = self._duration_error(duration_minutes)
        if duration_error:
            raise ValidationError("Invalid availability query", {"duration_minutes": duration_error})
        creator = self._repository.get_creator(creator_id)
        if creator is None:
            raise NotFound(f"Creator {creator_id} not found")
        zone_name = tz or creator.timezone
        try:
            ZoneInfo(zone_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError("Invalid availability query", {"tz": f"Unknown time zone '{zone_name}'"})
        now = self._clock()
        slots = self._checker.free_slots(creator_id, day, duration_minutes, tz=zone_name)
        return [s for s in slots if s > now]

    # Schedule

    def set_weekly_availability(self, creator_id: str, windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]:
        self._require_creator(creator_id)
        errors: dict[str, str] = {}
        for i, window in enumerate(windows):
            if not 0 <= window.day_of_week <= 6:
                errors[f"windows.{i}.day_of_week"] = "Day of week must be between 0 (Sunday) and 6 (Saturday)"
            if not (isinstance(window.start_time, time) and isinstance(window.end_time, time)):
                errors[f"windows.{i}"] = "Start and end time are required"
            elif window.start_time >= window.end_time:
                errors[f"windows.{i}"] = "End time must be after start time"
        if errors:
            raise ValidationError("Invalid availability", errors)

        self._repository.save_availability(creator_id, list(windows))
        self._logger.info("Weekly availability saved", extra={"creator_id": creator_id})
        return self._repository.get_availability(creator_id)

    def block_dates(
        self,
        creator_id: str,
        start_date: date,
        end_date: date | None = None,
        reason: str | None = None,
    ) -> BlockedDateRange:
        self._require_creator(creator_id)
        end_date = end_date or start_date
        if end_date < start_date:
            raise ValidationError("Invalid blocked dates", {"end_date": "End date must not be before start date"})
        blocked = BlockedDateRange(start_date=start_date, end_date=end_date, reason=(reason or "").strip() or None)
        self._repository.add_blocked_dates(creator_id, blocked)
        self._logger.info("Dates blocked", extra={"creator_id": creator_id, "day": start_date.isoformat()})
        return blocked

    def get_schedule(self, creator_id: str) -> tuple[list[AvailabilityWindow], list[BlockedDateRange]]:
        self._require_creator(creator_id)
        today = self._clock().date()
        blocked = [b for b in self._repository.get_blocked_dates(creator_id) if b.end_date >= today]
        return self._repository.get_availability(creator_id), blocked

    # Helpers

    def _require_creator(self, creator_id: str) -> None:
        if self._repository.get_creator(creator_id) is None:
            raise NotFound(f"Creator {creator_id} not found")

    def _load(self, booking_id: str, creator_id: str | None = None) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None or (creator_id is not None and booking.creator_id != creator_id):
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    def _apply(
        self,
        booking_id: str,
        event: BookingEvent,
        creator_id: str | None = None,
        extra_changes: dict[str, Any] | None = None,
    ) -> Booking:
        booking = self._load(booking_id, creator_id)
        changes: dict[str, Any] = dict(target_fields(booking, event))
        changes.update(extra_changes or {})
        if not changes:
            return booking
        updated = self._repository.update_booking(booking.id, changes, booking.status, booking.payment_status)
        self._logger.info(
            "Booking transitioned",
            extra={
                "booking_id": booking.id,
                "event": event.value,
                "status": f"{booking.status.value}->{updated.status.value}",
            },
        )
        return updated
