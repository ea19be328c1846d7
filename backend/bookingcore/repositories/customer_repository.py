# backend/bookingcore/repositories/customer_repository.py
"""
Customer Repository.

Customers are unique per (organization_id, normalized email). The unique
constraint, not a lookup, is what prevents duplicates; insert_customer lets
the IntegrityError through so the resolver can treat a lost race as a lookup.
"""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.customer import Customer, normalize_email
from .base_repository import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def find_by_org_email(self, organization_id: str, email: str) -> Optional[Customer]:
        query = self._build_query().filter(
            Customer.organization_id == organization_id,
            Customer.email == normalize_email(email),
        )
        return self._execute_first(query)

    def insert_customer(self, **kwargs: Any) -> Customer:
        """Create a customer, exposing integrity errors for conflict handling."""
        kwargs["email"] = normalize_email(kwargs["email"])
        try:
            return self.create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def add_booking_aggregates(self, customer_id: str, amount: Decimal) -> bool:
        """Bump total_bookings and total_spent in place."""
        return self.conditional_update(
            customer_id,
            [],
            total_bookings=Customer.total_bookings + 1,
            total_spent=Customer.total_spent + amount,
        )
