# backend/bookingcore/models/venue.py
"""Venue model: the physical location whose timezone anchors every schedule."""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, now_utc


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    organization_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    activities = relationship("Activity", back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue {self.id}: {self.name} ({self.timezone})>"
