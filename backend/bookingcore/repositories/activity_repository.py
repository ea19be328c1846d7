# backend/bookingcore/repositories/activity_repository.py
"""Activity Repository: lookups used by generation and activity management."""

from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..models.activity import Activity, ActivityStatus
from .base_repository import BaseRepository


class ActivityRepository(BaseRepository[Activity]):
    def __init__(self, db: Session):
        super().__init__(db, Activity)

    def get_with_venue(self, activity_id: str) -> Optional[Activity]:
        """Activity plus its venue (needed for the timezone) in one query."""
        query = (
            self._build_query()
            .options(joinedload(Activity.venue))
            .filter(Activity.id == activity_id)
        )
        return self._execute_first(query)

    def list_active_ids(self) -> List[str]:
        """Active activities that have a schedule to expand."""
        query = (
            self.db.query(Activity.id)
            .filter(Activity.status == ActivityStatus.ACTIVE.value, Activity.schedule.isnot(None))
            .order_by(Activity.id.asc())
        )
        return [row[0] for row in self._execute_query(query)]
