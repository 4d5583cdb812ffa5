from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True)
class CreatorProfile:
    id: str
    full_name: str
    contact_email: str
    timezone: str = "UTC"


@dataclass(frozen=True)
class CalendarCredential:
    creator_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime, leeway_seconds: int = 60) -> bool:
        """Tokens without an expiry are treated as still valid."""
        if self.expires_at is None:
            return False
        return self.expires_at <= now + timedelta(seconds=leeway_seconds)


def day_of_week(day: date) -> int:
    """Weekday number used by availability windows: 0 is Sunday, 6 is Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class AvailabilityWindow:
    """
    A recurring weekly window in the creator's own time zone.
    Several windows may share a weekday; a day with only unavailable
    windows (or none, once any window is configured) takes no bookings.
    """

    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool = True


@dataclass(frozen=True)
class BlockedDateRange:
    start_date: date
    end_date: date
    reason: str | None = None

    def covers(self, day: date) -> bool:
        # both ends inclusive
        return self.start_date <= day <= self.end_date
