# backend/bookingcore/services/customer_service.py
"""
Customer identity resolution.

resolve() finds or creates the customer for (organization, normalized email).
It runs inside the caller's transaction: the insert is wrapped in a SAVEPOINT
so that losing a race on the unique constraint rolls back only the insert, and
the winner's row is then read back.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import CustomerResolutionFailedException, RepositoryException
from ..models.customer import Customer, normalize_email
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import CustomerDetails
from .base import BaseService

logger = logging.getLogger(__name__)


class CustomerService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_customer_repository(db)

    def resolve(
        self, organization_id: str, details: CustomerDetails, created_via: str = "booking"
    ) -> Customer:
        """
        Find or create the tenant's customer for these contact details.

        Does not commit. Existing customers keep their stored name and phone.

        Raises:
            CustomerResolutionFailedException: the store failed, or the
                customer could not be found even after a conflicting insert
        """
        email = normalize_email(str(details.email))
        try:
            customer = self.repository.find_by_org_email(organization_id, email)
            if customer is not None:
                return customer
            return self._insert_or_lookup(organization_id, email, details, created_via)
        except (RepositoryException, SQLAlchemyError) as exc:
            self.logger.error(f"Customer resolution failed for org {organization_id}: {exc}")
            raise CustomerResolutionFailedException(organization_id, email) from exc

    def _insert_or_lookup(
        self,
        organization_id: str,
        email: str,
        details: CustomerDetails,
        created_via: str,
    ) -> Customer:
        savepoint = self.db.begin_nested()
        try:
            customer = self.repository.insert_customer(
                organization_id=organization_id,
                email=email,
                first_name=details.first_name,
                last_name=details.last_name,
                phone=details.phone,
                total_bookings=0,
                total_spent=0,
                created_via=created_via,
            )
            savepoint.commit()
            self.logger.info(f"Created customer {customer.id} for org {organization_id}")
            return customer
        except IntegrityError:
            savepoint.rollback()
            self.logger.info(
                f"Concurrent customer insert for org {organization_id}; reading existing row"
            )

        existing: Optional[Customer] = self.repository.find_by_org_email(organization_id, email)
        if existing is None:
            raise CustomerResolutionFailedException(organization_id, email)
        return existing
