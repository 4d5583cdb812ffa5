from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from creatorhq.application.exceptions import InvalidTransition, NotFound, SlotConflict
from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.application.use_cases.slot_availability import intervals_overlap
from creatorhq.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from creatorhq.domain.entities.checkout import CheckoutSession
from creatorhq.domain.entities.creator import (
    AvailabilityWindow,
    BlockedDateRange,
    CalendarCredential,
    CreatorProfile,
)


class MemoryBookingRepository(BookingRepositoryPort):
    """
    Process-local store for dev and tests.
    Writes touching a creator's schedule hold that creator's lock, so the
    overlap check and the write are one atomic unit.
    """

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._creators: dict[str, CreatorProfile] = {}
        self._credentials: dict[str, CalendarCredential] = {}
        self._availability: dict[str, list[AvailabilityWindow]] = {}
        self._blocked: dict[str, list[BlockedDateRange]] = {}
        self._checkouts: dict[str, CheckoutSession] = {}
        self._revenue: list[dict[str, Any]] = []
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()  # guards the locks dict and the side tables

    def _get_lock(self, creator_id: str) -> threading.Lock:
        with self._lock_lock:
            if creator_id not in self._locks:
                self._locks[creator_id] = threading.Lock()
            return self._locks[creator_id]

    def _conflicts(self, creator_id: str, start: datetime, end: datetime, exclude_id: str | None) -> list[Booking]:
        return [
            b
            for b in list(self._bookings.values())
            if b.creator_id == creator_id
            and b.is_active
            and b.id != exclude_id
            and intervals_overlap(start, end, b.booking_date, b.ends_at)
        ]

    def create_booking(self, booking: Booking) -> Booking:
        with self._get_lock(booking.creator_id):
            conflicts = self._conflicts(booking.creator_id, booking.booking_date, booking.ends_at, None)
            if conflicts:
                raise SlotConflict(conflicting_ids=[b.id for b in conflicts])
            self._bookings[booking.id] = booking
            return booking

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def list_bookings(self, creator_id: str, status: BookingStatus | None = None) -> list[Booking]:
        items = [
            b
            for b in list(self._bookings.values())
            if b.creator_id == creator_id and (status is None or b.status == status)
        ]
        return sorted(items, key=lambda b: b.booking_date)

    def find_conflicting(
        self,
        creator_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[Booking]:
        return sorted(self._conflicts(creator_id, start, end, exclude_id), key=lambda b: b.booking_date)

    def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        expected_status: BookingStatus,
        expected_payment_status: PaymentStatus,
        check_slot: bool = False,
    ) -> Booking:
        current = self._bookings.get(booking_id)
        if current is None:
            raise NotFound(f"Booking {booking_id} not found")

        with self._get_lock(current.creator_id):
            current = self._bookings[booking_id]
            if current.status != expected_status or current.payment_status != expected_payment_status:
                raise InvalidTransition(
                    f"Booking {booking_id} changed concurrently "
                    f"(now {current.status.value}/{current.payment_status.value})."
                )
            updated = replace(current, **changes)
            if check_slot and updated.is_active:
                conflicts = self._conflicts(updated.creator_id, updated.booking_date, updated.ends_at, updated.id)
                if conflicts:
                    raise SlotConflict(conflicting_ids=[b.id for b in conflicts])
            self._bookings[booking_id] = updated
            return updated

    def get_creator(self, creator_id: str) -> CreatorProfile | None:
        return self._creators.get(creator_id)

    def save_creator(self, creator: CreatorProfile) -> None:
        with self._lock_lock:
            self._creators[creator.id] = creator

    def get_availability(self, creator_id: str) -> list[AvailabilityWindow]:
        windows = self._availability.get(creator_id, [])
        return sorted(windows, key=lambda w: (w.day_of_week, w.start_time))

    def save_availability(self, creator_id: str, windows: list[AvailabilityWindow]) -> None:
        with self._lock_lock:
            self._availability[creator_id] = list(windows)

    def get_blocked_dates(self, creator_id: str) -> list[BlockedDateRange]:
        return sorted(self._blocked.get(creator_id, []), key=lambda b: b.start_date)

    def add_blocked_dates(self, creator_id: str, blocked: BlockedDateRange) -> None:
        with self._lock_lock:
            self._blocked.setdefault(creator_id, []).append(blocked)

    def get_calendar_credential(self, creator_id: str) -> CalendarCredential | None:
        return self._credentials.get(creator_id)

    def save_calendar_credential(self, credential: CalendarCredential) -> None:
        with self._lock_lock:
            self._credentials[credential.creator_id] = credential

    def create_checkout_session(self, session: CheckoutSession) -> CheckoutSession:
        with self._lock_lock:
            self._checkouts[session.provider_session_id] = session
        return session

    def get_checkout_session(self, provider_session_id: str) -> CheckoutSession | None:
        return self._checkouts.get(provider_session_id)

    def find_checkout_session_by_payment_intent(self, payment_intent_id: str) -> CheckoutSession | None:
        for session in list(self._checkouts.values()):
            if session.payment_intent_id == payment_intent_id:
                return session
        return None

    def update_checkout_session(self, provider_session_id: str, changes: dict[str, Any]) -> CheckoutSession | None:
        with self._lock_lock:
            current = self._checkouts.get(provider_session_id)
            if current is None:
                return None
            updated = replace(current, **{k: v for k, v in changes.items() if v is not None})
            self._checkouts[provider_session_id] = updated
            return updated

    def record_revenue(self, creator_id: str, amount: Decimal, source_type: str, occurred_at: datetime) -> None:
        with self._lock_lock:
            self._revenue.append(
                {"creator_id": creator_id, "amount": amount, "source_type": source_type, "occurred_at": occurred_at}
            )

    def revenue_total(self, creator_id: str) -> Decimal:
        return sum((r["amount"] for r in self._revenue if r["creator_id"] == creator_id), Decimal("0"))
