from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from creatorhq.application.ports.calendar import CalendarPort
from creatorhq.core.config import settings
from creatorhq.domain.entities.booking import Booking
from creatorhq.domain.entities.creator import CalendarCredential, CreatorProfile

SCOPES = "https://www.googleapis.com/auth/calendar.events"


def event_id_for(booking: Booking) -> str:
    """Google event ids must be base32hex; a hex digest of the booking id qualifies and is stable."""
    return "bk" + hashlib.sha1(booking.id.encode("utf-8")).hexdigest()


class GoogleCalendar(CalendarPort):
    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        base_url: str | None = None,
        token_url: str | None = None,
        auth_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._client_id = client_id or settings.GOOGLE_CLIENT_ID
        self._client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self._redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self._base_url = (base_url or settings.GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._token_url = token_url or settings.GOOGLE_TOKEN_URL
        self._auth_url = auth_url or settings.GOOGLE_AUTH_URL
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

        if not self._client_id or not self._client_secret:
            raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required for Google Calendar")

    def upsert_event(
        self,
        credential: CalendarCredential,
        booking: Booking,
        creator: CreatorProfile | None = None,
    ) -> str:
        event_id = event_id_for(booking)
        headers = {"Authorization": f"Bearer {credential.access_token}"}
        payload = self._event_payload(booking, creator)
        events_url = f"{self._base_url}/calendars/primary/events"

        response = self._client.put(f"{events_url}/{event_id}", json=payload, headers=headers)
        if response.status_code == 404:
            response = self._client.post(events_url, json={"id": event_id, **payload}, headers=headers)
        if response.status_code >= 400:
            self._logger.error(
                "Google Calendar sync failed",
                extra={"booking_id": booking.id, "status": response.status_code, "error": response.text[:200]},
            )
        response.raise_for_status()

        self._logger.info("Calendar event upserted", extra={"booking_id": booking.id, "event": event_id})
        return event_id

    def _event_payload(self, booking: Booking, creator: CreatorProfile | None) -> dict[str, Any]:
        tz = creator.timezone if creator else "UTC"
        description = [f"Client: {booking.client_name} ({booking.client_email})"]
        if booking.phone:
            description.append(f"Phone: {booking.phone}")
        if booking.notes:
            description.append(f"Notes: {booking.notes}")
        if booking.meeting_link:
            description.append(f"Meeting link: {booking.meeting_link}")
        description.append(f"Payment: {booking.payment_status.value}")

        return {
            "summary": f"{booking.service_type.value.capitalize()} with {booking.client_name}",
            "description": "\n".join(description),
            "start": {"dateTime": booking.booking_date.isoformat(), "timeZone": tz},
            "end": {"dateTime": booking.ends_at.isoformat(), "timeZone": tz},
            "attendees": [{"email": booking.client_email, "displayName": booking.client_name}],
            "status": "confirmed",
        }

    def refresh(self, credential: CalendarCredential) -> CalendarCredential:
        if not credential.refresh_token:
            raise ValueError("Calendar credential has no refresh token")
        data = self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
            }
        )
        self._logger.info("Calendar token refreshed", extra={"creator_id": credential.creator_id})
        return CalendarCredential(
            creator_id=credential.creator_id,
            access_token=data["access_token"],
            # Google omits the refresh token on refresh responses
            refresh_token=data.get("refresh_token") or credential.refresh_token,
            expires_at=_expiry(data),
        )

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": SCOPES,
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self._auth_url}?{urlencode(params)}"

    def exchange_code(self, code: str, creator_id: str) -> CalendarCredential:
        data = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            }
        )
        self._logger.info("Calendar connected", extra={"creator_id": creator_id})
        return CalendarCredential(
            creator_id=creator_id,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_expiry(data),
        )

    def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        body = {"client_id": self._client_id, "client_secret": self._client_secret, **form}
        response = self._client.post(self._token_url, data=body)
        if response.status_code >= 400:
            self._logger.error(
                "Google token request failed",
                extra={"status": response.status_code, "error": response.text[:200]},
            )
        response.raise_for_status()
        data = response.json()
        if "access_token" not in data:
            raise ValueError("No access token returned from Google")
        return data


def _expiry(data: dict[str, Any]) -> datetime | None:
    expires_in = data.get("expires_in")
    if expires_in is None:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
