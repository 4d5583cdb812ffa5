from __future__ import annotations

from fastapi import HTTPException

from creatorhq.application.exceptions import (
    BookingError,
    InvalidTransition,
    NotFound,
    PaymentProviderError,
    SlotConflict,
    ValidationError,
)


def to_http_error(e: BookingError | PaymentProviderError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    if isinstance(e, (SlotConflict, InvalidTransition)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PaymentProviderError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
