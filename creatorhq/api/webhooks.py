from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PayloadValidationError

from creatorhq.api.schemas import WebhookAckSchema
from creatorhq.application.dto.payment_webhook_event import PaymentWebhookEventDTO
from creatorhq.application.exceptions import InvalidTransition, NotFound
from creatorhq.application.ports.payments import PaymentProviderPort
from creatorhq.application.use_cases.booking_lifecycle import BookingLifecycleService
from creatorhq.wiring.dependencies import get_booking_service, get_payments


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks/stripe", response_model=WebhookAckSchema)
async def stripe_webhook(
    request: Request,
    payments: PaymentProviderPort = Depends(get_payments),
    service: BookingLifecycleService = Depends(get_booking_service),
):
    body = await request.body()
    signature = request.headers.get("Stripe-Signature")

    try:
        payload = payments.parse_webhook(body, signature)
    except ValueError as e:
        logger.warning("Rejected payment webhook", extra={"error": str(e)})
        raise HTTPException(status_code=400, detail="Invalid webhook")

    try:
        event = PaymentWebhookEventDTO.model_validate(payload).to_payment_event()
    except (PayloadValidationError, TypeError, ValueError) as e:
        logger.warning("Malformed payment webhook", extra={"error": str(e)})
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.info("Payment webhook received", extra={"event": payload.get("type"), "booking_id": event.booking_id})

    try:
        booking = await run_in_threadpool(service.handle_payment_webhook, event)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        # Acknowledged so the provider stops redelivering an event that can never apply.
        logger.warning(
            "Payment webhook not applicable",
            extra={"event": payload.get("type"), "booking_id": event.booking_id, "error": str(e)},
        )
        return WebhookAckSchema(applied=False, booking_id=event.booking_id)

    return WebhookAckSchema(applied=booking is not None, booking_id=booking.id if booking else None)
