from __future__ import annotations

from abc import ABC, abstractmethod

from creatorhq.domain.entities.booking import Booking
from creatorhq.domain.entities.creator import CalendarCredential, CreatorProfile


class CalendarPort(ABC):
    @abstractmethod
    def upsert_event(
        self,
        credential: CalendarCredential,
        booking: Booking,
        creator: CreatorProfile | None = None,
    ) -> str:
        """Create or update the calendar event for a booking. Returns event_id."""
        raise NotImplementedError

    @abstractmethod
    def refresh(self, credential: CalendarCredential) -> CalendarCredential:
        """Exchange the refresh token for a new access token."""
        raise NotImplementedError

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """URL the creator visits to grant calendar access."""
        raise NotImplementedError

    @abstractmethod
    def exchange_code(self, code: str, creator_id: str) -> CalendarCredential:
        """Turn an OAuth authorization code into a stored credential."""
        raise NotImplementedError
