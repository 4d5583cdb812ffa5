from enum import Enum


class BookingEvent(str, Enum):
    requested = "requested"
    confirmed = "confirmed"
    payment_succeeded = "payment_succeeded"
    payment_requested = "payment_requested"
    payment_expired = "payment_expired"
    completed = "completed"
    cancelled = "cancelled"
    refunded = "refunded"
    rescheduled = "rescheduled"
    meeting_link_sent = "meeting_link_sent"
