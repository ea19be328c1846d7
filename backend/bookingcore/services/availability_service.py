# backend/bookingcore/services/availability_service.py
"""
Availability reads and session open/close management.

Reads take no locks. The remaining-capacity figure they return may already be
stale by the time a booking is attempted; the booking transaction is what
guarantees a session is never oversold.
"""

from datetime import date, datetime, time, timedelta
import logging
from typing import Callable, List, Optional, Tuple, Union

import pytz
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ActivityNotFoundException,
    SessionNotFoundException,
    ValidationException,
)
from ..core.timezone_utils import combine_local, parse_hhmm, utc_now
from ..models.activity import Activity
from ..models.session import ActivitySession
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .session_generation_service import load_schedule_rules

logger = logging.getLogger(__name__)

WindowBound = Union[date, datetime]


def advance_booking_days(activity: Activity) -> int:
    if not activity.schedule:
        return 0
    return load_schedule_rules(activity).advance_booking


def earliest_bookable_start(activity: Activity, now: datetime) -> datetime:
    """Sessions starting before this instant can no longer be booked."""
    return now + timedelta(days=advance_booking_days(activity))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def resolve_window(start: WindowBound, end: WindowBound, tz_name: str) -> Tuple[datetime, datetime]:
    """
    Turn request bounds into a UTC half-open window.

    Plain dates are venue-local calendar days and the end date is inclusive.
    Datetimes are instants; naive ones are taken as UTC.
    """
    if isinstance(start, datetime):
        window_start = _as_utc(start)
    else:
        window_start = combine_local(start, time(0, 0), tz_name)
    if isinstance(end, datetime):
        window_end = _as_utc(end)
    else:
        window_end = combine_local(end + timedelta(days=1), time(0, 0), tz_name)
    if window_end <= window_start:
        raise ValidationException(
            "Window end must be after its start",
            code="INVALID_WINDOW",
            details={"start": str(start), "end": str(end)},
        )
    return window_start, window_end


class AvailabilityService(BaseService):
    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        super().__init__(db)
        self.activity_repository = RepositoryFactory.create_activity_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.clock = clock

    def _get_activity(self, activity_id: str) -> Activity:
        activity = self.activity_repository.get_with_venue(activity_id)
        if activity is None:
            raise ActivityNotFoundException(activity_id)
        return activity

    @staticmethod
    def _timezone_of(activity: Activity) -> str:
        if activity.venue is not None and activity.venue.timezone:
            return activity.venue.timezone
        return settings.default_venue_timezone

    def resolve_activity_window(
        self, activity_id: str, start: WindowBound, end: WindowBound
    ) -> Tuple[datetime, datetime]:
        """UTC bounds of a request window, with plain dates read in the venue's timezone."""
        return resolve_window(start, end, self._timezone_of(self._get_activity(activity_id)))

    @BaseService.measure_operation("list_available")
    def list_available(
        self, activity_id: str, start: WindowBound, end: WindowBound
    ) -> List[ActivitySession]:
        """
        Open sessions with remaining capacity overlapping the window.

        Sessions inside the advance-booking lead time are left out. An empty
        list means no availability, not an error.
        """
        activity = self._get_activity(activity_id)
        window_start, window_end = resolve_window(start, end, self._timezone_of(activity))
        not_before = earliest_bookable_start(activity, self.clock())
        return self.session_repository.list_available(
            activity_id, window_start, window_end, not_before=not_before
        )

    def get_session(
        self, session_id: str, organization_id: Optional[str] = None
    ) -> ActivitySession:
        session = self.session_repository.get_by_id(session_id)
        if session is None or (
            organization_id is not None and session.organization_id != organization_id
        ):
            raise SessionNotFoundException(session_id)
        return session

    def get_session_by_time(
        self, activity_id: str, start_time: datetime
    ) -> Optional[ActivitySession]:
        """Exact-instant lookup of an activity's session."""
        return self.session_repository.get_by_activity_and_start(activity_id, _as_utc(start_time))

    def find_session_for_local_slot(
        self, activity_id: str, local_date: date, local_time: str
    ) -> Optional[ActivitySession]:
        """
        Look up the session for a venue wall-clock slot such as (2025-06-14, "19:30").

        The wall clock goes through the same conversion the generator used, so
        the instants match exactly.
        """
        activity = self._get_activity(activity_id)
        start_utc = combine_local(local_date, parse_hhmm(local_time), self._timezone_of(activity))
        return self.session_repository.get_by_activity_and_start(activity_id, start_utc)

    @BaseService.measure_operation("close_session")
    def close_session(
        self, session_id: str, organization_id: Optional[str] = None
    ) -> ActivitySession:
        """Take a session off sale; existing bookings are untouched."""
        return self._set_closed(session_id, True, organization_id)

    @BaseService.measure_operation("reopen_session")
    def reopen_session(
        self, session_id: str, organization_id: Optional[str] = None
    ) -> ActivitySession:
        return self._set_closed(session_id, False, organization_id)

    def _set_closed(
        self, session_id: str, closed: bool, organization_id: Optional[str]
    ) -> ActivitySession:
        with self.transaction():
            self.get_session(session_id, organization_id)
            changed = self.session_repository.set_closed(session_id, closed)
        self.log_operation(
            "close_session" if closed else "reopen_session",
            session_id=session_id,
            changed=changed,
        )
        session = self.session_repository.get_fresh(session_id)
        if session is None:
            raise SessionNotFoundException(session_id)
        return session
