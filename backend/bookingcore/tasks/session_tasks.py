# backend/bookingcore/tasks/session_tasks.py
"""
Periodic session and booking maintenance.

The run_* functions hold the logic and take an open Session so they can be
exercised without a broker; the Celery tasks wrap them with a short-lived
session each.
"""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar, cast

from celery import shared_task
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..services.booking_service import BookingService
from ..services.session_generation_service import SessionGenerationService
from .celery_app import EXPIRE_PENDING_BOOKINGS_TASK, EXTEND_ROLLING_WINDOW_TASK

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


def run_extend_rolling_window(db: Session, horizon_days: Optional[int] = None) -> Dict[str, Any]:
    summary = SessionGenerationService(db).extend_rolling_window(horizon_days)
    if summary.failures:
        logger.warning(
            "[ROLLING-WINDOW] %d activities failed: %s",
            len(summary.failures),
            ", ".join(sorted(summary.failures)),
        )
    logger.info(
        "[ROLLING-WINDOW] %d sessions created across %d activities",
        summary.sessions_created,
        len(summary.results),
    )
    return {
        "horizon_days": summary.horizon_days,
        "sessions_created": summary.sessions_created,
        "activities": len(summary.results),
        "failures": dict(summary.failures),
    }


def run_expire_pending_bookings(db: Session, older_than_minutes: Optional[int] = None) -> int:
    expired = BookingService(db).expire_pending_bookings(older_than_minutes)
    if expired:
        logger.info("[EXPIRY] Cancelled %d unpaid bookings", expired)
    return expired


@_typed_shared_task(name=EXTEND_ROLLING_WINDOW_TASK, ignore_result=True)
def extend_rolling_window(horizon_days: Optional[int] = None) -> Dict[str, Any]:
    """Keep every active activity generated to today + horizon."""
    with get_db_session() as db:
        return run_extend_rolling_window(db, horizon_days)


@_typed_shared_task(name=EXPIRE_PENDING_BOOKINGS_TASK, ignore_result=True)
def expire_pending_bookings(older_than_minutes: Optional[int] = None) -> int:
    """Release capacity held by bookings whose payment never arrived."""
    with get_db_session() as db:
        return run_expire_pending_bookings(db, older_than_minutes)
