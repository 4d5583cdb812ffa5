from __future__ import annotations

from dataclasses import dataclass

from creatorhq.application.exceptions import InvalidTransition
from creatorhq.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from creatorhq.domain.entities.lifecycle import BookingEvent

_ANY_PAYMENT = frozenset(PaymentStatus)


@dataclass(frozen=True)
class Transition:
    from_statuses: frozenset[BookingStatus]
    from_payment: frozenset[PaymentStatus]
    to_status: BookingStatus | None = None  # None keeps the current status
    to_payment: PaymentStatus | None = None


TRANSITIONS: dict[BookingEvent, Transition] = {
    BookingEvent.confirmed: Transition(
        frozenset({BookingStatus.pending}),
        frozenset({PaymentStatus.pending}),
        to_status=BookingStatus.confirmed,
    ),
    BookingEvent.payment_succeeded: Transition(
        frozenset({BookingStatus.pending, BookingStatus.confirmed}),
        frozenset({PaymentStatus.pending}),
        to_status=BookingStatus.confirmed,
        to_payment=PaymentStatus.paid,
    ),
    BookingEvent.completed: Transition(
        frozenset({BookingStatus.confirmed}),
        _ANY_PAYMENT,
        to_status=BookingStatus.completed,
    ),
    # paid bookings leave through a refund, otherwise paid => confirmed|completed breaks
    BookingEvent.cancelled: Transition(
        frozenset({BookingStatus.pending, BookingStatus.confirmed}),
        frozenset({PaymentStatus.pending}),
        to_status=BookingStatus.cancelled,
    ),
    BookingEvent.refunded: Transition(
        frozenset({BookingStatus.confirmed, BookingStatus.completed}),
        frozenset({PaymentStatus.paid}),
        to_status=BookingStatus.cancelled,
        to_payment=PaymentStatus.refunded,
    ),
    BookingEvent.payment_expired: Transition(
        frozenset({BookingStatus.pending}),
        frozenset({PaymentStatus.pending}),
        to_status=BookingStatus.cancelled,
    ),
    BookingEvent.payment_requested: Transition(
        frozenset({BookingStatus.pending}),
        frozenset({PaymentStatus.pending}),
    ),
    BookingEvent.rescheduled: Transition(
        frozenset({BookingStatus.pending, BookingStatus.confirmed}),
        _ANY_PAYMENT,
    ),
    BookingEvent.meeting_link_sent: Transition(
        frozenset({BookingStatus.confirmed}),
        _ANY_PAYMENT,
    ),
}


def transition_for(booking: Booking, event: BookingEvent) -> Transition:
    """Return the transition for `event`, or raise InvalidTransition if it is not legal now."""
    transition = TRANSITIONS.get(event)
    if transition is None:
        raise InvalidTransition(f"Event '{event.value}' cannot be applied to an existing booking.")
    if booking.status not in transition.from_statuses or booking.payment_status not in transition.from_payment:
        raise InvalidTransition(
            f"Cannot apply '{event.value}' to a booking that is "
            f"{booking.status.value} with payment {booking.payment_status.value}."
        )
    return transition


def target_fields(booking: Booking, event: BookingEvent) -> dict[str, object]:
    """Status fields the booking should have after `event`. Empty for in-place events."""
    transition = transition_for(booking, event)
    changes: dict[str, object] = {}
    if transition.to_status is not None and transition.to_status != booking.status:
        changes["status"] = transition.to_status
    if transition.to_payment is not None and transition.to_payment != booking.payment_status:
        changes["payment_status"] = transition.to_payment
    return changes


def can_apply(booking: Booking, event: BookingEvent) -> bool:
    try:
        transition_for(booking, event)
    except InvalidTransition:
        return False
    return True
