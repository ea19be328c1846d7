# backend/bookingcore/repositories/session_repository.py
"""
Session Repository.

Owns every read and write of activity_sessions. Capacity is only ever changed
through try_decrement_capacity / release_capacity, each a single conditional
UPDATE, so concurrent bookings are arbitrated by the database row lock rather
than by application code.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.session import ActivitySession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionRepository(BaseRepository[ActivitySession]):
    def __init__(self, db: Session):
        super().__init__(db, ActivitySession)

    # Generation support

    def latest_start_time(self, activity_id: str) -> Optional[datetime]:
        """Start of the most recent session generated for an activity, if any."""
        query = (
            self.db.query(ActivitySession.start_time)
            .filter(ActivitySession.activity_id == activity_id)
            .order_by(ActivitySession.start_time.desc())
            .limit(1)
        )
        row = self._execute_first(query)
        return row[0] if row else None

    def bulk_insert_chunk(self, rows: List[Dict[str, Any]]) -> int:
        """
        Insert one chunk of generated sessions.

        Raises:
            RepositoryException: if any row of the chunk is rejected; the caller
                must roll back before retrying.
        """
        if not rows:
            return 0
        self.bulk_create(rows)
        self.logger.debug("Flushed %d generated sessions", len(rows))
        return len(rows)

    def list_for_activity(self, activity_id: str) -> List[ActivitySession]:
        query = (
            self._build_query()
            .filter(ActivitySession.activity_id == activity_id)
            .order_by(ActivitySession.start_time.asc())
        )
        return self._execute_query(query)

    # Availability

    def list_available(
        self,
        activity_id: str,
        window_start: datetime,
        window_end: datetime,
        not_before: Optional[datetime] = None,
    ) -> List[ActivitySession]:
        """
        Open sessions with seats left that overlap [window_start, window_end).

        Args:
            activity_id: Activity whose sessions to list
            window_start: Inclusive UTC lower bound of the window
            window_end: Exclusive UTC upper bound of the window
            not_before: Optional lead-time cut-off; sessions starting earlier are excluded

        Returns:
            Sessions ordered by start_time ascending
        """
        query = self._build_query().filter(
            ActivitySession.activity_id == activity_id,
            ActivitySession.start_time < window_end,
            ActivitySession.end_time > window_start,
            ActivitySession.is_closed.is_(False),
            ActivitySession.capacity_remaining > 0,
        )
        if not_before is not None:
            query = query.filter(ActivitySession.start_time >= not_before)
        return self._execute_query(query.order_by(ActivitySession.start_time.asc()))

    def get_by_activity_and_start(
        self, activity_id: str, start_time: datetime
    ) -> Optional[ActivitySession]:
        query = self._build_query().filter(
            ActivitySession.activity_id == activity_id,
            ActivitySession.start_time == start_time,
        )
        return self._execute_first(query)

    # Capacity

    def try_decrement_capacity(self, session_id: str, seats: int) -> bool:
        """
        Take ``seats`` from an open session if at least that many remain.

        Returns False when the session is closed or short of seats; the caller
        re-reads the row to tell which.
        """
        if seats <= 0:
            raise RepositoryException(f"Cannot take {seats} seats")
        return self.conditional_update(
            session_id,
            [
                ActivitySession.is_closed.is_(False),
                ActivitySession.capacity_remaining >= seats,
            ],
            capacity_remaining=ActivitySession.capacity_remaining - seats,
            version=ActivitySession.version + 1,
        )

    def release_capacity(self, session_id: str, seats: int) -> bool:
        """Give ``seats`` back to a session, never exceeding capacity_total."""
        if seats <= 0:
            raise RepositoryException(f"Cannot release {seats} seats")
        restored = ActivitySession.capacity_remaining + seats
        return self.conditional_update(
            session_id,
            [],
            capacity_remaining=case(
                (restored > ActivitySession.capacity_total, ActivitySession.capacity_total),
                else_=restored,
            ),
            version=ActivitySession.version + 1,
        )

    def set_closed(self, session_id: str, closed: bool) -> bool:
        """Toggle is_closed; returns False when it already had that value."""
        return self.conditional_update(
            session_id,
            [ActivitySession.is_closed.is_(not closed)],
            is_closed=closed,
            version=ActivitySession.version + 1,
        )
