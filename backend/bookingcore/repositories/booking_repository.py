# backend/bookingcore/repositories/booking_repository.py
"""
Booking Repository.

This repository handles:
- Booking creation (booking_number collisions surface as IntegrityError)
- Tenant-scoped lookups and listing
- Conditional status/payment transitions
- The exactly-once capacity_released guard
- Stale pending-payment holds for expiry
"""

from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..domain.booking_lifecycle import BookingStatus, PaymentStatus
from ..models.booking import Booking
from .base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    # Lookups

    def get_for_org(self, booking_id: str, organization_id: str) -> Optional[Booking]:
        query = self._build_query().filter(
            Booking.id == booking_id,
            Booking.organization_id == organization_id,
        )
        return self._execute_first(query)

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Booking]:
        query = self._build_query().filter(Booking.payment_intent_id == payment_intent_id)
        return self._execute_first(query)

    def list_bookings(
        self,
        organization_id: str,
        status: Optional[str] = None,
        session_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        query = self._build_query().filter(Booking.organization_id == organization_id)
        if status:
            query = query.filter(Booking.status == status)
        if session_id:
            query = query.filter(Booking.session_id == session_id)
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
        return self._execute_query(query.offset(skip).limit(limit))

    def find_stale_pending(self, created_before: datetime, limit: int = 500) -> List[Booking]:
        """Pending bookings still awaiting payment that were created before the cut-off."""
        query = (
            self._build_query()
            .filter(
                Booking.status == BookingStatus.PENDING.value,
                Booking.payment_status == PaymentStatus.PENDING.value,
                Booking.created_at < created_before,
            )
            .order_by(Booking.created_at.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    # Conditional transitions

    def transition_status(
        self,
        booking_id: str,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        from_payment_statuses: Optional[Iterable[PaymentStatus]] = None,
        **fields: Any,
    ) -> bool:
        """
        Move a booking to ``to_status`` only if it is currently in ``from_statuses``.

        Extra keyword fields (timestamps, payment_status, reason) are written in
        the same statement. Returns False when another writer got there first.
        """
        conditions = [Booking.status.in_([s.value for s in from_statuses])]
        if from_payment_statuses is not None:
            conditions.append(
                Booking.payment_status.in_([s.value for s in from_payment_statuses])
            )
        return self.conditional_update(
            booking_id, conditions, status=to_status.value, **fields
        )

    def set_payment_status(
        self,
        booking_id: str,
        from_statuses: Iterable[PaymentStatus],
        to_status: PaymentStatus,
        **fields: Any,
    ) -> bool:
        return self.conditional_update(
            booking_id,
            [Booking.payment_status.in_([s.value for s in from_statuses])],
            payment_status=to_status.value,
            **fields,
        )

    def mark_capacity_released(self, booking_id: str) -> bool:
        """
        Flip capacity_released false -> true.

        Only the caller that wins this flip may hand the seats back.
        """
        return self.conditional_update(
            booking_id,
            [Booking.capacity_released.is_(False)],
            capacity_released=True,
        )
