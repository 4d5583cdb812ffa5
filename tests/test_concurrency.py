"""
Concurrent submissions for the same slot: exactly one wins.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from creatorhq.application.exceptions import SlotConflict
from creatorhq.infrastructure.store.memory_store import MemoryBookingRepository

from conftest import make_booking, make_request

WORKERS = 8


class CheckThenInsertRepository(MemoryBookingRepository):
    """Checks and writes in separate steps, which is what the locked store prevents."""

    def __init__(self, barrier: threading.Barrier) -> None:
        super().__init__()
        self._barrier = barrier

    def create_booking(self, booking):
        conflicts = self._conflicts(booking.creator_id, booking.booking_date, booking.ends_at, None)
        self._barrier.wait()
        if conflicts:
            raise SlotConflict()
        self._bookings[booking.id] = booking
        return booking


def _race(repo) -> tuple[list, list]:
    won: list = []
    lost: list = []
    start = threading.Barrier(WORKERS)

    def submit(i: int) -> None:
        booking = make_booking(client_email=f"client{i}@example.com")
        start.wait()
        try:
            won.append(repo.create_booking(booking))
        except SlotConflict:
            lost.append(i)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return won, lost


def test_naive_check_then_insert_double_books():
    """Without an atomic check-and-write every concurrent request gets the slot."""
    repo = CheckThenInsertRepository(threading.Barrier(WORKERS))

    won, lost = _race(repo)

    assert len(won) == WORKERS
    assert lost == []


def test_locked_store_books_slot_once():
    repo = MemoryBookingRepository()

    won, lost = _race(repo)

    assert len(won) == 1
    assert len(lost) == WORKERS - 1
    assert len(repo.list_bookings(won[0].creator_id)) == 1


def test_concurrent_service_requests_book_slot_once(service, repository):
    results: list = []
    errors: list = []
    start = threading.Barrier(WORKERS)

    def submit(i: int) -> None:
        start.wait()
        try:
            results.append(service.create_booking_request(make_request(client_email=f"client{i}@example.com")))
        except SlotConflict as e:
            errors.append(e)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == 1
    assert len(errors) == WORKERS - 1
    assert len(repository.list_bookings(results[0].creator_id)) == 1


def test_concurrent_reschedules_into_same_slot():
    repo = MemoryBookingRepository()
    target = datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc)
    bookings = [
        repo.create_booking(make_booking(booking_date=datetime(2025, 6, 3, 8 + i, 0, tzinfo=timezone.utc)))
        for i in range(4)
    ]
    moved: list = []
    start = threading.Barrier(len(bookings))

    def move(booking) -> None:
        start.wait()
        try:
            moved.append(
                repo.update_booking(
                    booking.id, {"booking_date": target}, booking.status, booking.payment_status, check_slot=True
                )
            )
        except SlotConflict:
            pass

    threads = [threading.Thread(target=move, args=(b,)) for b in bookings]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(moved) == 1
