from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from creatorhq.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from creatorhq.domain.entities.checkout import CheckoutSession
from creatorhq.domain.entities.creator import (
    AvailabilityWindow,
    BlockedDateRange,
    CalendarCredential,
    CreatorProfile,
)


class BookingRepositoryPort(ABC):
    @abstractmethod
    def create_booking(self, booking: Booking) -> Booking:
        """
        Insert a booking.
        The overlap check against the creator's active bookings and the insert
        must be one atomic unit. Raises SlotConflict when the slot is taken.
        """
        raise NotImplementedError

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def list_bookings(self, creator_id: str, status: BookingStatus | None = None) -> list[Booking]:
        """Bookings of a creator ordered by start time."""
        raise NotImplementedError

    @abstractmethod
    def find_conflicting(
        self,
        creator_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[Booking]:
        """Non-cancelled bookings of the creator overlapping [start, end)."""
        raise NotImplementedError

    @abstractmethod
    def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        expected_status: BookingStatus,
        expected_payment_status: PaymentStatus,
        check_slot: bool = False,
    ) -> Booking:
        """
        Conditionally apply changes.
        Raises NotFound if the booking is missing and InvalidTransition if its
        status or payment status no longer match the expectation.
        With check_slot=True the resulting interval is re-checked for conflicts
        (excluding the booking itself) inside the same atomic unit.
        """
        raise NotImplementedError

    @abstractmethod
    def get_creator(self, creator_id: str) -> CreatorProfile | None:
        raise NotImplementedError

    @abstractmethod
    def save_creator(self, creator: CreatorProfile) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_availability(self, creator_id: str) -> list[AvailabilityWindow]:
        """Weekly windows ordered by weekday and start time."""
        raise NotImplementedError

    @abstractmethod
    def save_availability(self, creator_id: str, windows: list[AvailabilityWindow]) -> None:
        """Replace the creator's weekly windows."""
        raise NotImplementedError

    @abstractmethod
    def get_blocked_dates(self, creator_id: str) -> list[BlockedDateRange]:
        """Blocked ranges ordered by start date."""
        raise NotImplementedError

    @abstractmethod
    def add_blocked_dates(self, creator_id: str, blocked: BlockedDateRange) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_calendar_credential(self, creator_id: str) -> CalendarCredential | None:
        raise NotImplementedError

    @abstractmethod
    def save_calendar_credential(self, credential: CalendarCredential) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_checkout_session(self, session: CheckoutSession) -> CheckoutSession:
        raise NotImplementedError

    @abstractmethod
    def get_checkout_session(self, provider_session_id: str) -> CheckoutSession | None:
        raise NotImplementedError

    @abstractmethod
    def find_checkout_session_by_payment_intent(self, payment_intent_id: str) -> CheckoutSession | None:
        raise NotImplementedError

    @abstractmethod
    def update_checkout_session(self, provider_session_id: str, changes: dict[str, Any]) -> CheckoutSession | None:
        raise NotImplementedError

    @abstractmethod
    def record_revenue(self, creator_id: str, amount: Decimal, source_type: str, occurred_at: datetime) -> None:
        """Add an amount to the creator's aggregate revenue metrics."""
        raise NotImplementedError
