# backend/bookingcore/api/dependencies/__init__.py
"""
FastAPI dependencies for the booking engine routes.
"""

from .database import get_db
from .services import (
    get_activity_service,
    get_availability_service,
    get_booking_service,
    get_organization_id,
    get_session_generation_service,
)

__all__ = [
    "get_activity_service",
    "get_availability_service",
    "get_booking_service",
    "get_db",
    "get_organization_id",
    "get_session_generation_service",
]
