# backend/bookingcore/models/customer.py
"""Customer model, unique per (organization, normalized email)."""

from sqlalchemy import Column, Integer, Numeric, String, UniqueConstraint

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, now_utc


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    organization_id = Column(String(64), nullable=False, index=True)
    email = Column(String(320), nullable=False)
    first_name = Column(String(120), nullable=False, default="")
    last_name = Column(String(120), nullable=False, default="")
    phone = Column(String(40), nullable=True)

    # Derived aggregates, not billing records
    total_bookings = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)

    created_via = Column(String(40), nullable=False, default="booking")
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=now_utc)

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_customers_organization_email"),
    )

    def __repr__(self) -> str:
        return f"<Customer {self.id}: {self.email} org={self.organization_id}>"
