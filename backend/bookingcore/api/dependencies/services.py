# backend/bookingcore/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own database session.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...core.request_context import set_organization_id
from ...services.activity_service import ActivityService
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.session_generation_service import SessionGenerationService
from .database import get_db


async def get_organization_id(
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-Id"),
) -> str:
    """Tenant scope for staff endpoints; also stamped onto log records."""
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "X-Organization-Id header is required",
                "code": "ORGANIZATION_REQUIRED",
                "details": {},
            },
        )
    set_organization_id(x_organization_id)
    return x_organization_id


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_session_generation_service(db: Session = Depends(get_db)) -> SessionGenerationService:
    return SessionGenerationService(db)


def get_activity_service(db: Session = Depends(get_db)) -> ActivityService:
    return ActivityService(db)
