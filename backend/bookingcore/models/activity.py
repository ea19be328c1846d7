# backend/bookingcore/models/activity.py
"""
Activity model.

An activity (an escape room, an axe-throwing lane) carries the canonical
capacity and price plus the ScheduleRules template that the session generator
expands. Sessions snapshot capacity and price when they are generated, so edits
here never touch sessions that already exist.
"""

from enum import Enum

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, now_utc


class ActivityStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    organization_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(26), ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    capacity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ActivityStatus.ACTIVE.value, index=True)
    schedule = Column(JSON(none_as_null=True), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=now_utc)

    venue = relationship("Venue", back_populates="activities")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_activities_capacity_positive"),
        CheckConstraint("price >= 0", name="ck_activities_price_non_negative"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'maintenance')", name="ck_activities_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Activity {self.id}: {self.name} capacity={self.capacity} price={self.price}>"
