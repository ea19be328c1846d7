# backend/bookingcore/services/activity_service.py
"""
Activity management.

Capacity and price on the activity are canonical; sessions take a snapshot of
both when generated. Editing them therefore only affects sessions generated
afterwards, never sessions (or bookings) that already exist.
"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.exceptions import ActivityNotFoundException, VenueNotFoundException
from ..models.activity import Activity
from ..repositories.factory import RepositoryFactory
from ..schemas.activity import (
    GENERATION_FIELDS,
    ActivityCreate,
    ActivityUpdate,
    ActivityUpdateResult,
)
from ..schemas.schedule import ScheduleRules
from .base import BaseService

logger = logging.getLogger(__name__)


def _stored_value(field: str, value: Any) -> Any:
    if field == "schedule" and value is not None:
        return value.model_dump(mode="json", by_alias=True)
    return value


def _current_value(activity: Activity, field: str) -> Any:
    """Stored value in the same shape _stored_value produces."""
    value = getattr(activity, field)
    if field == "schedule" and value:
        try:
            return ScheduleRules.model_validate(value).model_dump(mode="json", by_alias=True)
        except ValidationError:
            # A malformed stored schedule always differs from a valid one
            return value
    return value


class ActivityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_activity_repository(db)
        self.venue_repository = RepositoryFactory.create_venue_repository(db)

    def get_activity(self, activity_id: str) -> Activity:
        activity = self.repository.get_with_venue(activity_id)
        if activity is None:
            raise ActivityNotFoundException(activity_id)
        return activity

    @BaseService.measure_operation("create_activity")
    def create_activity(self, data: ActivityCreate) -> Activity:
        """
        Create an activity under an existing venue of the same organization.

        The schedule, when given, has already been validated by ActivityCreate
        and is stored in its camelCase form.
        """
        with self.transaction():
            venue = self.venue_repository.get_by_id(data.venue_id)
            if venue is None or venue.organization_id != data.organization_id:
                raise VenueNotFoundException(data.venue_id)
            fields = {name: _stored_value(name, value) for name, value in data}
            activity = self.repository.create(**fields)

        self.log_operation(
            "create_activity",
            activity_id=activity.id,
            venue_id=activity.venue_id,
            has_schedule=activity.schedule is not None,
        )
        return activity

    @BaseService.measure_operation("update_activity")
    def update_activity(self, activity_id: str, update: ActivityUpdate) -> ActivityUpdateResult:
        """
        Apply an explicit update.

        Only fields present in the request are considered, and only those whose
        value actually differs are written and reported.
        """
        requested = update.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}

        with self.transaction():
            activity = self.get_activity(activity_id)
            for name in requested:
                value = _stored_value(name, getattr(update, name))
                if value is None and name != "schedule":
                    continue
                if _current_value(activity, name) != value:
                    changes[name] = value
            if changes:
                self.repository.update(activity_id, **changes)

        changed_fields: List[str] = sorted(changes)
        affects = bool(GENERATION_FIELDS.intersection(changed_fields))
        self.log_operation(
            "update_activity",
            activity_id=activity_id,
            changed_fields=changed_fields,
            affects_future_sessions=affects,
        )
        return ActivityUpdateResult(
            activity_id=activity_id,
            changed_fields=changed_fields,
            affects_future_sessions=affects,
        )
