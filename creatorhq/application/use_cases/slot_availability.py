from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.domain.entities.creator import day_of_week


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap test: touching endpoints do not conflict."""
    return start_a < end_b and start_b < end_a


class SlotAvailabilityChecker:
    def __init__(self, repository: BookingRepositoryPort) -> None:
        self._repository = repository
        self._logger = logging.getLogger(__name__)

    def has_conflict(
        self,
        creator_id: str,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_booking_id: str | None = None,
    ) -> bool:
        end = proposed_start + timedelta(minutes=duration_minutes)
        conflicts = self._repository.find_conflicting(creator_id, proposed_start, end, exclude_booking_id)
        if conflicts:
            self._logger.info(
                "Slot conflict detected",
                extra={"creator_id": creator_id, "conflicting": [b.id for b in conflicts]},
            )
        return bool(conflicts)

    def day_windows(
        self,
        creator_id: str,
        day: date,
        default_start: time = time(hour=9),
        default_end: time = time(hour=17),
    ) -> list[tuple[time, time]]:
        """
        Bookable (start, end) local times for `day`.

        Blocked dates win over everything. A creator who never configured
        weekly availability is open during the default hours every day.
        """
        blocked = [b for b in self._repository.get_blocked_dates(creator_id) if b.covers(day)]
        if blocked:
            self._logger.info("Day is blocked", extra={"creator_id": creator_id, "day": day.isoformat()})
            return []

        windows = self._repository.get_availability(creator_id)
        if not windows:
            return [(default_start, default_end)]
        weekday = day_of_week(day)
        return sorted(
            (w.start_time, w.end_time)
            for w in windows
            if w.day_of_week == weekday and w.is_available and w.start_time < w.end_time
        )

    def free_slots(
        self,
        creator_id: str,
        day: date,
        duration_minutes: int,
        start_hour: int = 9,
        end_hour: int = 17,
        step_minutes: int = 30,
        tz: str = "UTC",
    ) -> list[datetime]:
        """Start times on `day` (in `tz`) that fit `duration_minutes` inside a window without a conflict."""
        zone = ZoneInfo(tz)
        windows = [
            (datetime.combine(day, start, tzinfo=zone), datetime.combine(day, end, tzinfo=zone))
            for start, end in self.day_windows(creator_id, day, time(hour=start_hour), time(hour=end_hour))
        ]
        if not windows:
            return []

        booked = self._repository.find_conflicting(
            creator_id,
            windows[0][0].astimezone(timezone.utc),
            max(end for _, end in windows).astimezone(timezone.utc),
        )

        slots: list[datetime] = []
        length = timedelta(minutes=duration_minutes)
        for window_start, window_end in windows:
            current = window_start
            while current + length <= window_end:
                slot_end = current + length
                if current not in slots and not any(
                    intervals_overlap(current, slot_end, b.booking_date, b.ends_at) for b in booked
                ):
                    slots.append(current)
                current += timedelta(minutes=step_minutes)
        return sorted(slots)
