"""
Side-effect fan-out: failures and slow tasks never block the others or the caller.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal

from creatorhq.application.use_cases.notification_dispatcher import (
    NotificationDispatcher,
    SideEffectTask,
    settle_all,
)
from creatorhq.domain.entities.booking import BookingStatus, PaymentStatus
from creatorhq.domain.entities.creator import CalendarCredential
from creatorhq.domain.entities.lifecycle import BookingEvent
from creatorhq.infrastructure.calendar.mock_calendar import MockCalendar
from creatorhq.infrastructure.email.mock_email import MockEmail

from conftest import CREATOR_EMAIL, CREATOR_ID, fixed_clock, make_booking


def _boom() -> None:
    raise RuntimeError("provider down")


def test_settle_all_collects_every_outcome():
    calls: list[str] = []
    outcomes = settle_all(
        [
            SideEffectTask("first", lambda: calls.append("first")),
            SideEffectTask("broken", _boom),
            SideEffectTask("last", lambda: calls.append("last")),
        ],
        timeout=1.0,
    )

    assert {o.name: o.status for o in outcomes} == {"first": "ok", "broken": "failed", "last": "ok"}
    assert sorted(calls) == ["first", "last"]
    assert [o.error for o in outcomes if o.status == "failed"] == ["provider down"]


def test_settle_all_does_not_wait_for_slow_tasks():
    with ThreadPoolExecutor(max_workers=2) as executor:
        started = time.monotonic()
        outcomes = settle_all(
            [SideEffectTask("slow", lambda: time.sleep(1.5)), SideEffectTask("fast", lambda: None)],
            timeout=0.2,
            executor=executor,
        )
        elapsed = time.monotonic() - started

    assert elapsed < 1.0
    assert {o.name: o.status for o in outcomes} == {"slow": "timeout", "fast": "ok"}


def test_settle_all_cancels_tasks_that_never_started():
    """A busy shared pool reports queued work as timed out and drops it."""
    release = threading.Event()
    ran: list[str] = []
    with ThreadPoolExecutor(max_workers=1) as executor:
        outcomes = settle_all(
            [SideEffectTask("busy", lambda: release.wait(2.0)), SideEffectTask("queued", lambda: ran.append("queued"))],
            timeout=0.2,
            executor=executor,
        )
        release.set()

    assert {o.name: o.status for o in outcomes} == {"busy": "timeout", "queued": "timeout"}
    assert ran == []


def test_settle_all_with_no_tasks():
    assert settle_all([], timeout=1.0) == []


def test_failing_email_does_not_block_calendar_or_other_email(repository):
    repository.save_calendar_credential(CalendarCredential(creator_id=CREATOR_ID, access_token="token"))
    email = MockEmail(fail_for={"ada@example.com"})
    calendar = MockCalendar()
    dispatcher = NotificationDispatcher(email, calendar, repository, timeout_seconds=1.0, clock=fixed_clock)
    booking = make_booking(status=BookingStatus.confirmed)

    report = dispatcher.dispatch(BookingEvent.confirmed, booking)

    outcomes = {o.name: o.status for o in report.outcomes}
    assert outcomes == {
        "client_confirmation_email": "failed",
        "creator_confirmation_email": "ok",
        "calendar_sync": "ok",
    }
    assert [m.to for m in email.sent] == [CREATOR_EMAIL]
    assert f"mock_event_{booking.id}" in calendar.events


def test_hanging_calendar_times_out(repository, email):
    repository.save_calendar_credential(CalendarCredential(creator_id=CREATOR_ID, access_token="token"))
    calendar = MockCalendar(delay_seconds=1.5)
    dispatcher = NotificationDispatcher(email, calendar, repository, timeout_seconds=0.2, clock=fixed_clock)
    booking = make_booking(status=BookingStatus.confirmed)

    started = time.monotonic()
    report = dispatcher.dispatch(BookingEvent.confirmed, booking)

    assert time.monotonic() - started < 1.0
    assert [o.name for o in report.failures] == ["calendar_sync"]
    assert len(email.sent) == 2

    # the late sync still lands once the dispatcher drains
    dispatcher.close()
    assert f"mock_event_{booking.id}" in calendar.events


def test_calendar_is_skipped_without_credential(dispatcher, calendar):
    report = dispatcher.dispatch(BookingEvent.confirmed, make_booking(status=BookingStatus.confirmed))

    assert {o.name: o.status for o in report.outcomes}["calendar_sync"] == "skipped"
    assert report.failures == []
    assert calendar.events == {}


def test_calendar_is_skipped_when_integration_disabled(repository, email):
    repository.save_calendar_credential(CalendarCredential(creator_id=CREATOR_ID, access_token="token"))
    dispatcher = NotificationDispatcher(email, None, repository, timeout_seconds=1.0, clock=fixed_clock)

    report = dispatcher.dispatch(BookingEvent.confirmed, make_booking(status=BookingStatus.confirmed))

    assert {o.name: o.status for o in report.outcomes}["calendar_sync"] == "skipped"


def test_expired_calendar_token_is_refreshed_first(dispatcher, repository, calendar):
    repository.save_calendar_credential(
        CalendarCredential(
            creator_id=CREATOR_ID,
            access_token="old",
            refresh_token="refresh",
            expires_at=datetime(2025, 4, 30, tzinfo=timezone.utc),
        )
    )
    booking = make_booking(status=BookingStatus.confirmed)

    dispatcher.dispatch(BookingEvent.confirmed, booking)

    assert calendar.refreshed == [CREATOR_ID]
    assert repository.get_calendar_credential(CREATOR_ID).access_token == "old-refreshed"
    assert calendar.events[f"mock_event_{booking.id}"][2] == "old-refreshed"


def test_payment_succeeded_records_revenue(dispatcher, repository, email):
    booking = make_booking(status=BookingStatus.confirmed, payment_status=PaymentStatus.paid)

    report = dispatcher.dispatch(BookingEvent.payment_succeeded, booking, amount=Decimal("20.00"))

    assert {o.name for o in report.outcomes} == {
        "client_payment_email",
        "creator_payment_email",
        "calendar_sync",
        "revenue_metrics",
    }
    assert repository.revenue_total(CREATOR_ID) == Decimal("20.00")
    assert sorted(m.subject for m in email.sent) == ["Payment Confirmed", "Payment Received"]


def test_events_without_side_effects(dispatcher, email):
    for event in (BookingEvent.cancelled, BookingEvent.refunded, BookingEvent.completed, BookingEvent.payment_expired):
        report = dispatcher.dispatch(event, make_booking())
        assert report.outcomes == []
    assert email.sent == []


def test_reschedule_syncs_calendar_only_when_confirmed(dispatcher, repository, calendar):
    repository.save_calendar_credential(CalendarCredential(creator_id=CREATOR_ID, access_token="token"))

    assert dispatcher.dispatch(BookingEvent.rescheduled, make_booking()).outcomes == []
    report = dispatcher.dispatch(BookingEvent.rescheduled, make_booking(status=BookingStatus.confirmed))
    assert [o.name for o in report.outcomes] == ["calendar_sync"]


def test_creator_email_skipped_for_unknown_creator(dispatcher, email):
    report = dispatcher.dispatch(BookingEvent.requested, make_booking(creator_id="ghost"))

    assert [(o.name, o.status) for o in report.outcomes] == [("creator_request_email", "skipped")]
    assert email.sent == []


def test_dispatch_never_raises_when_repository_breaks(email, calendar):
    class BrokenRepository:
        def get_creator(self, creator_id):
            raise RuntimeError("database unavailable")

    dispatcher = NotificationDispatcher(email, calendar, BrokenRepository(), timeout_seconds=1.0)

    report = dispatcher.dispatch(BookingEvent.confirmed, make_booking())

    assert report.outcomes == []


def test_dispatch_after_close_reports_nothing(repository, email):
    dispatcher = NotificationDispatcher(email, MockCalendar(), repository, timeout_seconds=1.0, clock=fixed_clock)
    dispatcher.close()

    report = dispatcher.dispatch(BookingEvent.requested, make_booking())

    assert report.outcomes == []
    assert email.sent == []
