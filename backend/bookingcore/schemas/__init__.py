# backend/bookingcore/schemas/__init__.py
"""
Pydantic schemas for the booking engine.

ScheduleRules is stored as camelCase JSON on the activity row; every other
schema is snake_case request/response data.
"""

from .activity import ActivityCreate, ActivityResponse, ActivityUpdate, ActivityUpdateResult
from .booking import (
    BookingCancelRequest,
    BookingConfirmation,
    BookingRequest,
    BookingResponse,
    CustomerDetails,
    PaymentEvent,
    PaymentEventResult,
)
from .schedule import BlockedRange, CustomDate, CustomHours, ScheduleRules, TimeWindow
from .session import (
    AvailableSessionsResponse,
    GenerateSessionsRequest,
    GenerationResult,
    RollingWindowSummary,
    SessionResponse,
)

__all__ = [
    "ActivityCreate",
    "ActivityResponse",
    "ActivityUpdate",
    "ActivityUpdateResult",
    "AvailableSessionsResponse",
    "BlockedRange",
    "BookingCancelRequest",
    "BookingConfirmation",
    "BookingRequest",
    "BookingResponse",
    "CustomDate",
    "CustomHours",
    "CustomerDetails",
    "GenerateSessionsRequest",
    "GenerationResult",
    "PaymentEvent",
    "PaymentEventResult",
    "RollingWindowSummary",
    "ScheduleRules",
    "SessionResponse",
    "TimeWindow",
]
