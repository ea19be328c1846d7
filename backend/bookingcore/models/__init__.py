"""
Database models for the booking engine.

- Venue: location and timezone
- Activity: bookable product with capacity, price and schedule template
- ActivitySession: generated, capacity-bearing time slot
- Customer: tenant-scoped identity
- Booking: reservation against a session
"""

from ..domain.booking_lifecycle import BookingStatus, PaymentStatus
from .activity import Activity, ActivityStatus
from .booking import Booking
from .customer import Customer, normalize_email
from .session import ActivitySession
from .venue import Venue

__all__ = [
    "Activity",
    "ActivitySession",
    "ActivityStatus",
    "Booking",
    "BookingStatus",
    "Customer",
    "PaymentStatus",
    "Venue",
    "normalize_email",
]
