# backend/bookingcore/routes/v1/payments.py
"""
Payment event routes - API v1

The payment provider itself is external. Its notifications are reduced to a
provider-neutral {type, payment_intent_id} event before reaching this router.

Endpoints:
    POST /events → Apply a payment-intent event to its booking
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...schemas.booking import PaymentEvent, PaymentEventResult
from ...services.booking_service import BookingService
from ..errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/events", response_model=PaymentEventResult)
async def handle_payment_event(
    event: PaymentEvent,
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentEventResult:
    """Replayed events are acknowledged with changed=false."""
    handlers = {
        "payment_intent.succeeded": booking_service.handle_payment_succeeded,
        "payment_intent.payment_failed": booking_service.handle_payment_failed,
        "payment_intent.canceled": booking_service.handle_payment_canceled,
    }
    logger.info(f"Payment event {event.type} for intent {event.payment_intent_id}")
    try:
        return await asyncio.to_thread(handlers[event.type], event.payment_intent_id)
    except DomainException as e:
        handle_domain_exception(e)
