"""
Shared fixtures: an in-memory booking service wired to mock adapters and a fixed clock.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest

from creatorhq.application.use_cases.booking_lifecycle import BookingLifecycleService, BookingRequest
from creatorhq.application.use_cases.notification_dispatcher import NotificationDispatcher
from creatorhq.domain.entities.booking import Booking, ServiceType
from creatorhq.domain.entities.creator import CreatorProfile
from creatorhq.infrastructure.calendar.mock_calendar import MockCalendar
from creatorhq.infrastructure.email.mock_email import MockEmail
from creatorhq.infrastructure.payments.mock_payments import MockPayments
from creatorhq.infrastructure.store.memory_store import MemoryBookingRepository

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
CREATOR_ID = "creator-c"
CREATOR_EMAIL = "creator@example.com"


def fixed_clock() -> datetime:
    return NOW


def make_booking(**overrides) -> Booking:
    values = {
        "id": str(uuid.uuid4()),
        "creator_id": CREATOR_ID,
        "client_name": "Ada Client",
        "client_email": "ada@example.com",
        "service_type": ServiceType.consultation,
        "booking_date": datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        "duration_minutes": 60,
        "price": Decimal("20.00"),
    }
    values.update(overrides)
    return Booking(**values)


def make_request(**overrides) -> BookingRequest:
    values = {
        "creator_id": CREATOR_ID,
        "client_name": "Ada Client",
        "client_email": "ada@example.com",
        "service_type": "workshop",
        "booking_date": datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        "duration_minutes": 90,
    }
    values.update(overrides)
    return BookingRequest(**values)


@pytest.fixture
def repository() -> MemoryBookingRepository:
    repo = MemoryBookingRepository()
    repo.save_creator(
        CreatorProfile(id=CREATOR_ID, full_name="Casey Creator", contact_email=CREATOR_EMAIL, timezone="UTC")
    )
    return repo


@pytest.fixture
def email() -> MockEmail:
    return MockEmail()


@pytest.fixture
def calendar() -> MockCalendar:
    return MockCalendar()


@pytest.fixture
def payments() -> MockPayments:
    return MockPayments()


@pytest.fixture
def dispatcher(email, calendar, repository) -> Iterator[NotificationDispatcher]:
    dispatcher = NotificationDispatcher(
        email=email,
        calendar=calendar,
        repository=repository,
        timeout_seconds=2.0,
        clock=fixed_clock,
    )
    yield dispatcher
    dispatcher.close()


@pytest.fixture
def service(repository, payments, dispatcher) -> BookingLifecycleService:
    return BookingLifecycleService(
        repository=repository,
        payments=payments,
        dispatcher=dispatcher,
        site_url="https://creatorhq.test",
        clock=fixed_clock,
    )
