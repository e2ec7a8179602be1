# backend/parkbook/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /webhook - Payment provider events (signature verified over the raw body)
    GET /verify/{reference} - Booking and payment state for a payment reference

The webhook answers 400 only when the signature does not verify. Every other
outcome, including unknown references and processing failures, is answered
200 so the provider stops retrying; failures are logged.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from ...api.dependencies import get_current_actor, get_payment_service
from ...core.config import settings
from ...core.exceptions import DomainException, InvalidSignatureException, RepositoryException
from ...domain.signatures import verify_signature
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...principal import Actor
from ...schemas.booking import BookingResponse
from ...schemas.payment import WebhookEvent, WebhookResponse
from ...services.payment_service import PaymentService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/webhook", response_model=WebhookResponse)
async def handle_payment_webhook(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """
    Handle payment provider webhook events.

    Processes:
    - charge.success
    - charge.failed

    Raises:
        HTTPException 400: If the signature is missing or invalid
    """
    payload = await request.body()
    signature = request.headers.get(settings.payment_signature_header)
    signature_valid = verify_signature(
        payload, signature, settings.payment_webhook_secret.get_secret_value()
    )
    if not signature_valid:
        logger.warning("Rejected payment webhook with invalid signature")

    try:
        event = WebhookEvent.model_validate_json(payload)
    except ValidationError:
        if not signature_valid:
            handle_domain_exception(InvalidSignatureException())
        logger.error("Verified payment webhook with unparseable body")
        prometheus_metrics.record_webhook_event("unknown", "malformed")
        return WebhookResponse(event=None, outcome="ignored")

    try:
        result = await asyncio.to_thread(
            payment_service.reconcile, event.event, event.data.reference, signature_valid
        )
    except InvalidSignatureException as e:
        handle_domain_exception(e)
    except (DomainException, RepositoryException) as e:
        logger.error(f"Error processing payment webhook {event.event}: {str(e)}")
        prometheus_metrics.record_webhook_event(event.event, "error")
        return WebhookResponse(event=event.event, outcome="error")

    logger.info(f"Processed payment webhook {event.event}: {result.outcome.value}")
    return WebhookResponse(event=event.event, outcome=result.outcome.value)


@router.get("/verify/{reference}", response_model=BookingResponse)
async def verify_payment(
    reference: str,
    current_actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    """Payment status for a reference, visible to the booker and the lot owner."""
    try:
        view = await asyncio.to_thread(payment_service.verify_payment, reference, current_actor)
        return BookingResponse.from_view(view)
    except DomainException as e:
        handle_domain_exception(e)
