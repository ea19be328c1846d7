# backend/bookingcore/schemas/booking.py
"""
Booking schemas.

A booking request names a session, the customer's contact details, and a
party size. An optional payment_intent_id selects the payment-intent path
(booking held as pending until the payment event arrives);
confirm_immediately selects the direct pay-at-venue path.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class CustomerDetails(StrictRequestModel):
    first_name: str = Field("", max_length=120)
    last_name: str = Field("", max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=40)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class BookingRequest(StrictRequestModel):
    # Set from the X-Organization-Id header on the HTTP path
    organization_id: Optional[str] = Field(None, min_length=1)
    session_id: str = Field(..., min_length=1)
    customer: CustomerDetails
    # Range is checked by the service so the error is a domain ValidationException
    party_size: int
    payment_intent_id: Optional[str] = Field(None, max_length=255)
    confirm_immediately: bool = False
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value else value


class BookingConfirmation(StrictModel):
    """Returned by a successful booking transaction."""

    booking_id: str
    booking_number: str
    session_id: str
    customer_id: str
    party_size: int
    total_price: Decimal
    status: str
    payment_status: str
    start_time: datetime


class BookingResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    booking_number: str
    session_id: str
    activity_id: str
    customer_id: str
    organization_id: str
    party_size: int
    total_price: Decimal
    status: str
    payment_status: str
    payment_intent_id: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class BookingCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


PaymentEventType = Literal[
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
]


class PaymentEvent(StrictRequestModel):
    """Provider-neutral payment notification; only the intent reference is interpreted."""

    type: PaymentEventType
    payment_intent_id: str = Field(..., min_length=1)


class PaymentEventResult(StrictModel):
    payment_intent_id: str
    booking_id: str
    status: str
    payment_status: str
    changed: bool
