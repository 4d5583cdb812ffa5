from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone

from creatorhq.application.ports.calendar import CalendarPort
from creatorhq.domain.entities.booking import Booking
from creatorhq.domain.entities.creator import CalendarCredential, CreatorProfile


class MockCalendar(CalendarPort):
    def __init__(self, fail: bool = False, delay_seconds: float = 0.0) -> None:
        self.events: dict[str, tuple[datetime, datetime, str]] = {}
        self.refreshed: list[str] = []
        self.fail = fail
        self.delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def upsert_event(
        self,
        credential: CalendarCredential,
        booking: Booking,
        creator: CreatorProfile | None = None,
    ) -> str:
        if self.delay_seconds:
            threading.Event().wait(self.delay_seconds)
        if self.fail:
            raise RuntimeError("Mock calendar is unavailable")
        event_id = f"mock_event_{booking.id}"
        with self._lock:
            self.events[event_id] = (booking.booking_date, booking.ends_at, credential.access_token)
        self._logger.info("Mock calendar event upserted", extra={"booking_id": booking.id, "event": event_id})
        return event_id

    def refresh(self, credential: CalendarCredential) -> CalendarCredential:
        with self._lock:
            self.refreshed.append(credential.creator_id)
        return CalendarCredential(
            creator_id=credential.creator_id,
            access_token=f"{credential.access_token}-refreshed",
            refresh_token=credential.refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    def authorization_url(self, state: str) -> str:
        return f"https://calendar.mock/authorize?state={state}"

    def exchange_code(self, code: str, creator_id: str) -> CalendarCredential:
        return CalendarCredential(creator_id=creator_id, access_token=f"mock-token-{code}", refresh_token="mock-refresh")
