from __future__ import annotations


class BookingError(Exception):
    """Base class for errors surfaced to callers of the booking service."""
    pass


class ValidationError(BookingError):
    """Raised when a booking request or edit is malformed. Nothing is persisted."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})


class SlotConflict(BookingError):
    """Raised when the proposed interval overlaps an active booking of the same creator."""

    def __init__(self, message: str = "This time slot is already booked.", conflicting_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids or [])


class InvalidTransition(BookingError):
    """Raised when a lifecycle change is not legal from the booking's current state."""
    pass


class NotFound(BookingError):
    """Raised when a referenced booking, creator or checkout session does not exist."""
    pass


class DependencyFailure(RuntimeError):
    """Raised by adapters when an email, calendar or payment provider call fails."""
    pass


class PaymentProviderError(DependencyFailure):
    """Raised when a checkout session cannot be created. Propagates to the caller."""
    pass
