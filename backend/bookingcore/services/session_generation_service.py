# backend/bookingcore/services/session_generation_service.py
"""
Session generation (rolling window).

generate(activity_id, horizon_days) expands the activity's ScheduleRules over
[resume_date, resume_date + horizon_days) where resume_date is the venue-local
day after the latest session already stored, or the venue-local today when
none exist. Re-running therefore never duplicates sessions and needs no
separate "already generated" ledger.

Rows are written in chunks, each committed on its own. Chunks end on day
boundaries, so whatever was durably committed leaves the resume point at the
start of a day that has not been written yet.
"""

from datetime import date, datetime, timedelta
from itertools import groupby
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ActivityNotFoundException,
    DomainException,
    GenerationInProgressException,
    InvalidScheduleException,
    RepositoryException,
    SessionGenerationFailedException,
    ValidationException,
    VenueNotFoundException,
)
from ..core.generation_lock import generation_lock
from ..core.timezone_utils import get_venue_timezone, utc_now, utc_to_local, venue_today
from ..models.activity import Activity
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.schedule import ScheduleRules
from ..schemas.session import GenerationResult, RollingWindowSummary
from .base import BaseService
from .session_generator import GeneratedSlot, expand_schedule

logger = logging.getLogger(__name__)


def chunk_by_day(slots: List[GeneratedSlot], chunk_size: int) -> List[List[GeneratedSlot]]:
    """
    Group consecutive days into chunks of at most ``chunk_size`` slots.

    A single day with more slots than chunk_size becomes a chunk of its own.
    """
    chunks: List[List[GeneratedSlot]] = []
    current: List[GeneratedSlot] = []
    for _, day_slots in groupby(slots, key=lambda slot: slot.local_date):
        day = list(day_slots)
        if current and len(current) + len(day) > chunk_size:
            chunks.append(current)
            current = []
        current.extend(day)
    if current:
        chunks.append(current)
    return chunks


def load_schedule_rules(activity: Activity) -> ScheduleRules:
    """Parse the stored schedule, raising InvalidScheduleException when absent or malformed."""
    if not activity.schedule:
        raise InvalidScheduleException(
            "Activity has no schedule", details={"activity_id": activity.id}
        )
    try:
        return ScheduleRules.model_validate(activity.schedule)
    except ValidationError as exc:
        raise InvalidScheduleException(
            "Activity schedule is invalid",
            details={
                "activity_id": activity.id,
                "errors": exc.errors(include_url=False, include_context=False, include_input=False),
            },
        ) from exc


class SessionGenerationService(BaseService):
    """Turns schedule templates into stored sessions."""

    def __init__(
        self,
        db: Session,
        chunk_size: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.activity_repository = RepositoryFactory.create_activity_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.chunk_size = chunk_size or settings.generation_chunk_size
        self.clock = clock

    def resolve_resume_date(self, activity_id: str, tz_name: str) -> date:
        """Venue-local day after the latest stored session, or venue-local today."""
        latest = self.session_repository.latest_start_time(activity_id)
        if latest is None:
            return venue_today(tz_name, self.clock())
        return utc_to_local(latest, tz_name).date() + timedelta(days=1)

    @BaseService.measure_operation("generate_sessions")
    def generate(
        self,
        activity_id: str,
        horizon_days: Optional[int] = None,
        until: Optional[date] = None,
    ) -> GenerationResult:
        """
        Generate sessions for the next ``horizon_days`` days from the resume date.

        Args:
            activity_id: Activity to generate for
            horizon_days: Days to cover from the resume date (settings default)
            until: Optional exclusive venue-local end date capping the range

        Returns:
            GenerationResult with counts of what was committed

        Raises:
            ActivityNotFoundException / VenueNotFoundException
            InvalidScheduleException: schedule missing or malformed
            GenerationInProgressException: another worker holds the lock
            SessionGenerationFailedException: a chunk failed; earlier chunks stay committed
        """
        horizon = horizon_days if horizon_days is not None else settings.generation_horizon_days
        if horizon <= 0:
            raise ValidationException(
                "horizon_days must be positive",
                code="INVALID_HORIZON",
                details={"horizon_days": horizon},
            )

        with generation_lock(activity_id) as acquired:
            if not acquired:
                raise GenerationInProgressException(activity_id)
            return self._generate_locked(activity_id, horizon, until)

    def _generate_locked(
        self, activity_id: str, horizon: int, until: Optional[date]
    ) -> GenerationResult:
        activity = self.activity_repository.get_with_venue(activity_id)
        if activity is None:
            raise ActivityNotFoundException(activity_id)
        if activity.venue is None:
            raise VenueNotFoundException(activity.venue_id)

        rules = load_schedule_rules(activity)
        tz_name = activity.venue.timezone or settings.default_venue_timezone
        get_venue_timezone(tz_name)  # unknown zones fail before anything is written

        resume_date = self.resolve_resume_date(activity_id, tz_name)
        days = horizon
        if until is not None:
            days = min(days, (until - resume_date).days)
        if days <= 0:
            self.logger.info(
                "Generation window already covered",
                extra={"activity_id": activity_id, "resume_date": resume_date.isoformat()},
            )
            return GenerationResult(
                activity_id=activity_id,
                resume_date=resume_date,
                end_date=resume_date,
                skipped_reason="window_covered",
            )

        self.log_operation(
            "generate_sessions",
            activity_id=activity_id,
            resume_date=resume_date.isoformat(),
            days=days,
            timezone=tz_name,
        )
        slots = expand_schedule(rules, tz_name, resume_date, days)

        committed = 0
        chunks_committed = 0
        for chunk in chunk_by_day(slots, self.chunk_size):
            rows = [self._row_for(activity, slot) for slot in chunk]
            try:
                self.session_repository.bulk_insert_chunk(rows)
                self.db.commit()
            except (RepositoryException, SQLAlchemyError) as exc:
                self.db.rollback()
                self.logger.error(
                    f"Session chunk insert failed for activity {activity_id} "
                    f"after {committed} committed sessions: {exc}"
                )
                raise SessionGenerationFailedException(
                    activity_id, committed, reason=str(exc)
                ) from exc
            committed += len(rows)
            chunks_committed += 1

        prometheus_metrics.record_sessions_generated(committed)
        self.logger.info(
            f"Generated {committed} sessions for activity {activity_id} "
            f"in {chunks_committed} chunk(s)"
        )
        return GenerationResult(
            activity_id=activity_id,
            resume_date=resume_date,
            end_date=resume_date + timedelta(days=days),
            sessions_created=committed,
            chunks_committed=chunks_committed,
        )

    @staticmethod
    def _row_for(activity: Activity, slot: GeneratedSlot) -> Dict[str, Any]:
        return {
            "activity_id": activity.id,
            "venue_id": activity.venue_id,
            "organization_id": activity.organization_id,
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "capacity_total": activity.capacity,
            "capacity_remaining": activity.capacity,
            "price_at_generation": activity.price,
            "is_closed": False,
        }

    @BaseService.measure_operation("extend_rolling_window")
    def extend_rolling_window(self, horizon_days: Optional[int] = None) -> RollingWindowSummary:
        """
        Keep every active activity generated ``horizon_days`` ahead of today.

        Each activity is generated independently; a failure is recorded and the
        remaining activities still run.
        """
        horizon = horizon_days if horizon_days is not None else settings.generation_horizon_days
        summary = RollingWindowSummary(horizon_days=horizon)

        for activity_id in self.activity_repository.list_active_ids():
            try:
                activity = self.activity_repository.get_with_venue(activity_id)
                tz_name = (
                    activity.venue.timezone
                    if activity is not None and activity.venue is not None
                    else settings.default_venue_timezone
                )
                until = venue_today(tz_name, self.clock()) + timedelta(days=horizon)
                summary.results[activity_id] = self.generate(activity_id, horizon, until=until)
            except DomainException as exc:
                self.db.rollback()
                summary.failures[activity_id] = exc.message
                self.logger.error(
                    f"Rolling window extension failed for activity {activity_id}: {exc.message}",
                    extra={"activity_id": activity_id, "code": exc.code},
                )

        self.logger.info(
            f"Rolling window extended: {summary.sessions_created} sessions, "
            f"{len(summary.failures)} failure(s)"
        )
        return summary
