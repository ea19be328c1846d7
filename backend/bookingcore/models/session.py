# backend/bookingcore/models/session.py
"""
ActivitySession model: one bookable time slot.

start_time/end_time are absolute UTC instants; the venue timezone has already
been applied by the generator. capacity_remaining is mutated only through the
conditional updates in SessionRepository, never by assigning the attribute.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, now_utc


class ActivitySession(Base):
    __tablename__ = "activity_sessions"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    activity_id = Column(String(26), ForeignKey("activities.id"), nullable=False)
    venue_id = Column(String(26), ForeignKey("venues.id"), nullable=False)
    organization_id = Column(String(64), nullable=False, index=True)

    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)

    capacity_total = Column(Integer, nullable=False)
    capacity_remaining = Column(Integer, nullable=False)
    price_at_generation = Column(Numeric(10, 2), nullable=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    # Bumped on every capacity mutation
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    __table_args__ = (
        UniqueConstraint("activity_id", "start_time", name="uq_activity_sessions_activity_start"),
        CheckConstraint("capacity_total > 0", name="ck_activity_sessions_total_positive"),
        CheckConstraint("capacity_remaining >= 0", name="ck_activity_sessions_remaining_floor"),
        CheckConstraint(
            "capacity_remaining <= capacity_total", name="ck_activity_sessions_remaining_ceiling"
        ),
        CheckConstraint("end_time > start_time", name="ck_activity_sessions_time_order"),
        Index("ix_activity_sessions_activity_window", "activity_id", "start_time", "end_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivitySession {self.id}: activity={self.activity_id} "
            f"{self.start_time.isoformat() if self.start_time else None} "
            f"remaining={self.capacity_remaining}/{self.capacity_total}>"
        )
