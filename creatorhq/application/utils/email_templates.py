from __future__ import annotations

from dataclasses import dataclass
from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from creatorhq.domain.entities.booking import Booking
from creatorhq.domain.entities.creator import CreatorProfile


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str


def _safe_timezone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def format_when(booking: Booking, creator: CreatorProfile | None) -> str:
    tz = _safe_timezone(creator.timezone if creator else None)
    local = booking.booking_date.astimezone(tz)
    return f"{local.strftime('%A, %B %d, %Y %I:%M %p')} ({tz.key})"


def _service_label(booking: Booking) -> str:
    return booking.service_type.value.capitalize()


def _details(booking: Booking, creator: CreatorProfile | None, *, include_client: bool = False) -> str:
    rows = [
        f"<p><strong>Service:</strong> {escape(_service_label(booking))}</p>",
        f"<p><strong>Date:</strong> {escape(format_when(booking, creator))}</p>",
        f"<p><strong>Duration:</strong> {booking.duration_minutes} minutes</p>",
        f"<p><strong>Price:</strong> ${booking.price:.2f}</p>",
    ]
    if booking.meeting_link:
        link = escape(booking.meeting_link, quote=True)
        rows.append(f'<p><strong>Meeting Link:</strong> <a href="{link}">{link}</a></p>')
    if include_client:
        rows.append(f"<p><strong>Client Email:</strong> {escape(booking.client_email)}</p>")
        rows.append(f"<p><strong>Notes:</strong> {escape(booking.notes or 'None')}</p>")
    return (
        '<div style="background: #f9f9f9; padding: 20px; border-radius: 5px; margin: 20px 0;">'
        + "".join(rows)
        + "</div>"
    )


def _wrap(body: str) -> str:
    return f'<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">{body}</div>'


def _creator_name(creator: CreatorProfile | None) -> str:
    return creator.full_name if creator else "your host"


def new_request_for_creator(booking: Booking, creator: CreatorProfile | None) -> EmailContent:
    return EmailContent(
        subject=f"New Booking Request: {_service_label(booking)} with {booking.client_name}",
        html=_wrap(
            "<h1>New Booking Request</h1>"
            f"<p>{escape(booking.client_name)} requested a session with you.</p>"
            + _details(booking, creator, include_client=True)
            + "<p>Confirm the booking or send a payment link from your dashboard.</p>"
        ),
    )


def confirmation_for_client(booking: Booking, creator: CreatorProfile | None) -> EmailContent:
    name = _creator_name(creator)
    return EmailContent(
        subject=f"Booking Confirmed: {_service_label(booking)} with {name}",
        html=_wrap(
            "<h1>Your Booking is Confirmed!</h1>"
            f"<p>Dear {escape(booking.client_name)},</p>"
            "<p>Your booking has been confirmed. Here are the details:</p>"
            + _details(booking, creator)
            + f"<p>If you need to make any changes, please contact {escape(name)} directly.</p>"
        ),
    )


def confirmation_for_creator(booking: Booking, creator: CreatorProfile | None) -> EmailContent:
    return EmailContent(
        subject=f"New Booking: {_service_label(booking)} with {booking.client_name}",
        html=_wrap(
            "<h1>New Booking Confirmed</h1>"
            f"<p>You have a new booking from {escape(booking.client_name)}.</p>"
            + _details(booking, creator, include_client=True)
            + "<p>Please set up the meeting link and update the booking details if needed.</p>"
        ),
    )


def payment_confirmed_for_client(booking: Booking, creator: CreatorProfile | None) -> EmailContent:
    return EmailContent(
        subject="Payment Confirmed",
        html=_wrap(
            "<h1>Payment Confirmed</h1>"
            f"<p>Your payment for the booking with {escape(_creator_name(creator))} has been confirmed.</p>"
            + _details(booking, creator)
        ),
    )


def payment_received_for_creator(booking: Booking, creator: CreatorProfile | None) -> EmailContent:
    return EmailContent(
        subject="Payment Received",
        html=_wrap(
            "<h1>Payment Received</h1>"
            f"<p>Payment received for booking with {escape(booking.client_name)}.</p>"
            f"<p>Amount: ${booking.price:.2f}</p>"
        ),
    )


def payment_request_for_client(
    booking: Booking,
    creator: CreatorProfile | None,
    payment_link: str,
    note: str | None,
) -> EmailContent:
    link = escape(payment_link, quote=True)
    note_html = f"<p><strong>Note from creator:</strong> {escape(note)}</p>" if note else ""
    return EmailContent(
        subject="Complete Your Payment",
        html=_wrap(
            f"<h2>Hey {escape(booking.client_name)},</h2>"
            "<p>Your booking is almost locked in! Just one last step to secure your spot:</p>"
            f"<p><strong>Service:</strong> {escape(_service_label(booking))}</p>"
            f"<p><strong>Price:</strong> ${booking.price:.2f}</p>"
            f'<p><a href="{link}">Complete Your Payment</a></p>'
            + note_html
        ),
    )


def meeting_link_for_client(booking: Booking, creator: CreatorProfile | None, note: str | None) -> EmailContent:
    note_html = f"<p><strong>Note from the creator:</strong><br>{escape(note)}</p>" if note else ""
    return EmailContent(
        subject=f"Your {booking.service_type.value} booking is confirmed!",
        html=_wrap(
            f"<h2>Hey {escape(booking.client_name)},</h2>"
            f"<p>Your <strong>{escape(booking.service_type.value)}</strong> booking is locked in! "
            "Here are the full details:</p>"
            + _details(booking, creator)
            + note_html
            + "<p>If you have any questions or need to reschedule, just reply to this email.</p>"
        ),
    )
