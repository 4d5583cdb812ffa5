from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from creatorhq.api.bookings import creator_scope
from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.application.ports.calendar import CalendarPort
from creatorhq.core.config import settings
from creatorhq.infrastructure.calendar.oauth_state import sign_state, verify_state
from creatorhq.wiring.dependencies import get_calendar, get_repository


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/calendar/connect")
def connect_calendar(
    creator_id: str = Depends(creator_scope),
    calendar: CalendarPort | None = Depends(get_calendar),
) -> dict[str, str]:
    if calendar is None:
        raise HTTPException(status_code=503, detail="Calendar integration is not configured")
    try:
        state = sign_state(creator_id, settings.OAUTH_STATE_SECRET, settings.ENV)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"authorization_url": calendar.authorization_url(state)}


@router.get("/calendar/callback")
def calendar_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    calendar: CalendarPort | None = Depends(get_calendar),
    repository: BookingRepositoryPort = Depends(get_repository),
) -> dict[str, object]:
    if calendar is None:
        raise HTTPException(status_code=503, detail="Calendar integration is not configured")
    if error:
        raise HTTPException(status_code=400, detail=f"Calendar authorization denied: {error}")
    creator_id = verify_state(
        state, settings.OAUTH_STATE_SECRET, settings.ENV, max_age_seconds=settings.OAUTH_STATE_MAX_AGE_SECONDS
    )
    if not code or creator_id is None:
        raise HTTPException(status_code=400, detail="Invalid calendar authorization callback")

    try:
        credential = calendar.exchange_code(code, creator_id)
    except Exception as e:
        logger.exception("Calendar token exchange failed", extra={"creator_id": creator_id, "error": str(e)})
        raise HTTPException(status_code=502, detail="Calendar provider rejected the authorization code")

    repository.save_calendar_credential(credential)
    return {"connected": True, "creator_id": creator_id}
