from __future__ import annotations

from datetime import date, datetime, time, timezone

from creatorhq.application.use_cases.slot_availability import SlotAvailabilityChecker, intervals_overlap
from creatorhq.domain.entities.booking import BookingStatus
from creatorhq.domain.entities.creator import AvailabilityWindow, BlockedDateRange, day_of_week
from creatorhq.infrastructure.store.memory_store import MemoryBookingRepository

from conftest import CREATOR_ID, make_booking


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 6, 1, hour, minute, tzinfo=timezone.utc)


def test_touching_intervals_do_not_overlap():
    """[10:00, 11:30) and [11:30, 12:00) share only an endpoint."""
    assert not intervals_overlap(_at(10), _at(11, 30), _at(11, 30), _at(12))
    assert intervals_overlap(_at(10), _at(11, 30), _at(11, 29), _at(12))
    assert intervals_overlap(_at(10), _at(12), _at(10, 30), _at(11))


def test_has_conflict_only_for_active_bookings_of_same_creator():
    repo = MemoryBookingRepository()
    repo.create_booking(make_booking(booking_date=_at(10), duration_minutes=90))
    repo.create_booking(make_booking(booking_date=_at(13), status=BookingStatus.cancelled))
    repo.create_booking(make_booking(creator_id="someone-else", booking_date=_at(15)))
    checker = SlotAvailabilityChecker(repo)

    assert checker.has_conflict(CREATOR_ID, _at(10, 30), 30)
    assert checker.has_conflict(CREATOR_ID, _at(9, 30), 60)
    assert not checker.has_conflict(CREATOR_ID, _at(11, 30), 30)
    assert not checker.has_conflict(CREATOR_ID, _at(9), 60)
    assert not checker.has_conflict(CREATOR_ID, _at(13), 60), "cancelled bookings free their slot"
    assert not checker.has_conflict(CREATOR_ID, _at(15), 60), "other creators do not block"


def test_has_conflict_can_exclude_the_booking_being_moved():
    repo = MemoryBookingRepository()
    booking = repo.create_booking(make_booking(booking_date=_at(10), duration_minutes=60))
    checker = SlotAvailabilityChecker(repo)

    assert checker.has_conflict(CREATOR_ID, _at(10, 30), 60)
    assert not checker.has_conflict(CREATOR_ID, _at(10, 30), 60, exclude_booking_id=booking.id)


def test_free_slots_skip_booked_time():
    repo = MemoryBookingRepository()
    repo.create_booking(make_booking(booking_date=_at(10), duration_minutes=90))
    checker = SlotAvailabilityChecker(repo)

    slots = checker.free_slots(CREATOR_ID, date(2025, 6, 1), 60)

    assert _at(9) in slots
    assert _at(9, 30) not in slots
    assert _at(10, 30) not in slots
    assert _at(11, 30) in slots
    assert slots[-1] == _at(16)


def test_free_slots_use_creator_timezone():
    repo = MemoryBookingRepository()
    checker = SlotAvailabilityChecker(repo)

    slots = checker.free_slots(CREATOR_ID, date(2025, 6, 1), 60, tz="America/New_York")

    # 9:00 in New York is 13:00 UTC during daylight saving time
    assert slots[0].astimezone(timezone.utc) == _at(13)


def _monday(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 6, 2, hour, minute, tzinfo=timezone.utc)


def test_day_of_week_counts_from_sunday():
    assert day_of_week(date(2025, 6, 1)) == 0
    assert day_of_week(date(2025, 6, 2)) == 1
    assert day_of_week(date(2025, 6, 7)) == 6


def test_free_slots_follow_weekly_windows():
    """Monday has a morning and an afternoon window; Sunday has none."""
    repo = MemoryBookingRepository()
    repo.save_availability(
        CREATOR_ID,
        [
            AvailabilityWindow(day_of_week=1, start_time=time(14), end_time=time(16)),
            AvailabilityWindow(day_of_week=1, start_time=time(8), end_time=time(10)),
            AvailabilityWindow(day_of_week=2, start_time=time(9), end_time=time(17), is_available=False),
        ],
    )
    repo.create_booking(make_booking(booking_date=_monday(14), duration_minutes=60))
    checker = SlotAvailabilityChecker(repo)

    slots = checker.free_slots(CREATOR_ID, date(2025, 6, 2), 60)

    assert slots == [_monday(8), _monday(8, 30), _monday(9), _monday(15)]
    assert checker.free_slots(CREATOR_ID, date(2025, 6, 1), 60) == []
    assert checker.free_slots(CREATOR_ID, date(2025, 6, 3), 60) == [], "unavailable windows do not open the day"


def test_free_slots_windows_are_local_to_the_creator():
    repo = MemoryBookingRepository()
    repo.save_availability(CREATOR_ID, [AvailabilityWindow(day_of_week=1, start_time=time(9), end_time=time(10))])
    checker = SlotAvailabilityChecker(repo)

    slots = checker.free_slots(CREATOR_ID, date(2025, 6, 2), 30, tz="Europe/Berlin")

    assert [s.astimezone(timezone.utc) for s in slots] == [_monday(7), _monday(7, 30)]


def test_blocked_dates_close_the_whole_day():
    repo = MemoryBookingRepository()
    repo.add_blocked_dates(CREATOR_ID, BlockedDateRange(date(2025, 6, 2), date(2025, 6, 4), reason="Travel"))
    checker = SlotAvailabilityChecker(repo)

    assert checker.free_slots(CREATOR_ID, date(2025, 6, 2), 60) == []
    assert checker.free_slots(CREATOR_ID, date(2025, 6, 4), 60) == [], "end date is inclusive"
    assert checker.free_slots(CREATOR_ID, date(2025, 6, 5), 60)[0] == datetime(2025, 6, 5, 9, tzinfo=timezone.utc)
    assert checker.free_slots("someone-else", date(2025, 6, 3), 60)
