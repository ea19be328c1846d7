# backend/bookingcore/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST /                          → Book seats on a session
    GET  /                          → List the organization's bookings
    GET  /{booking_id}              → Booking details
    POST /{booking_id}/confirm      → Confirm a pending booking
    POST /{booking_id}/complete     → Mark a confirmed booking completed
    POST /{booking_id}/cancel       → Cancel and release the seats
    POST /{booking_id}/refund       → Record a refund of a paid booking
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies import get_booking_service, get_organization_id
from ...core.exceptions import DomainException, ValidationException
from ...schemas.booking import (
    BookingCancelRequest,
    BookingConfirmation,
    BookingRequest,
    BookingResponse,
)
from ...services.booking_service import BookingService
from ..errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


@router.post("", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingRequest,
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingConfirmation:
    """
    Book seats on a session.

    The tenant comes from the X-Organization-Id header; an organization_id in
    the body must match it. With payment_intent_id the booking is held as
    pending until the payment event arrives; with confirm_immediately it is
    confirmed on the spot.
    """
    try:
        if booking_data.organization_id not in (None, organization_id):
            raise ValidationException(
                "organization_id does not match the X-Organization-Id header",
                code="ORGANIZATION_MISMATCH",
                details={"organization_id": booking_data.organization_id},
            )
        scoped = booking_data.model_copy(update={"organization_id": organization_id})
        return await asyncio.to_thread(booking_service.book, scoped)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    session_id: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings,
            organization_id,
            status=status_filter,
            session_id=session_id,
            customer_id=customer_id,
            skip=skip,
            limit=limit,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id, organization_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.confirm_booking, booking_id, organization_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.complete_booking, booking_id, organization_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    cancel_data: Optional[BookingCancelRequest] = Body(None),
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking. Repeating the call is harmless; seats are released once."""
    reason = cancel_data.reason if cancel_data else None
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, booking_id, organization_id, reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/refund", response_model=BookingResponse)
async def refund_booking(
    booking_id: str,
    organization_id: str = Depends(get_organization_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.mark_refunded, booking_id, organization_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
