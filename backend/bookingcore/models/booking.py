# backend/bookingcore/models/booking.py
"""
Booking model.

A booking owns its party_size claim on a session's capacity. The session keeps
only the remaining-seat counter; it never points back at bookings.
Status changes go through BookingRepository.transition_status so concurrent
transitions are decided by the database, not by whoever wrote last.
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
    Text,
)

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.booking_lifecycle import BookingStatus, PaymentStatus
from .types import UTCDateTime, now_utc


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    booking_number = Column(String(32), nullable=False, unique=True)

    session_id = Column(String(26), ForeignKey("activity_sessions.id"), nullable=False, index=True)
    activity_id = Column(String(26), ForeignKey("activities.id"), nullable=False)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    organization_id = Column(String(64), nullable=False, index=True)

    party_size = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_intent_id = Column(String(255), nullable=True, unique=True)
    # Set once when the seats go back to the session
    capacity_released = Column(Boolean, nullable=False, default=False)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=now_utc)
    confirmed_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("party_size >= 1", name="ck_bookings_party_size_positive"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="ck_bookings_payment_status",
        ),
        Index("ix_bookings_pending_created", "status", "payment_status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} ({self.booking_number}): session={self.session_id}, "
            f"party={self.party_size}, status={self.status}/{self.payment_status}>"
        )
