from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Callable

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookingcore.core.ulid_helper import generate_ulid
from bookingcore.domain.booking_lifecycle import BookingStatus, PaymentStatus
from bookingcore.models.booking import Booking
from bookingcore.models.customer import Customer
from bookingcore.models.session import ActivitySession
from bookingcore.repositories.booking_repository import BookingRepository
from bookingcore.repositories.factory import RepositoryFactory


@pytest.fixture
def repo(db: Session) -> BookingRepository:
    return RepositoryFactory.create_booking_repository(db)


@pytest.fixture
def customer(db: Session, org_id: str) -> Customer:
    row = RepositoryFactory.create_customer_repository(db).insert_customer(
        organization_id=org_id, email="Sam@Example.com", first_name="Sam", last_name="Lee"
    )
    db.commit()
    return row


@pytest.fixture
def make_booking(
    db: Session,
    clock,
    repo: BookingRepository,
    customer: Customer,
    make_session: Callable[..., ActivitySession],
) -> Callable[..., Booking]:
    def _make(**overrides: object) -> Booking:
        session = overrides.pop("session", None) or make_session()
        fields = {
            "booking_number": overrides.pop("booking_number", None) or f"BK-{generate_ulid()}",
            "session_id": session.id,
            "activity_id": session.activity_id,
            "customer_id": customer.id,
            "organization_id": session.organization_id,
            "party_size": 2,
            "total_price": Decimal("50.00"),
            "created_at": clock.now,
        }
        fields.update(overrides)
        booking = repo.create(**fields)
        db.commit()
        return booking

    return _make


class TestBookingRepository:
    def test_customer_email_is_normalized(self, customer: Customer) -> None:
        assert customer.email == "sam@example.com"

    def test_duplicate_booking_number_raises_integrity_error(
        self, db: Session, make_booking: Callable[..., Booking]
    ) -> None:
        make_booking(booking_number="BK-1")
        with pytest.raises(IntegrityError):
            make_booking(booking_number="BK-1")
        db.rollback()

    def test_transition_only_from_expected_status(
        self, repo: BookingRepository, make_booking: Callable[..., Booking]
    ) -> None:
        booking = make_booking()

        assert repo.transition_status(booking.id, [BookingStatus.PENDING], BookingStatus.CONFIRMED)
        assert not repo.transition_status(
            booking.id, [BookingStatus.PENDING], BookingStatus.CANCELLED
        )
        assert repo.get_fresh(booking.id).status == "confirmed"

    def test_transition_checks_payment_status_too(
        self, repo: BookingRepository, make_booking: Callable[..., Booking]
    ) -> None:
        booking = make_booking(payment_status=PaymentStatus.PAID.value)

        assert not repo.transition_status(
            booking.id,
            [BookingStatus.PENDING],
            BookingStatus.CANCELLED,
            from_payment_statuses=[PaymentStatus.PENDING],
        )

    def test_capacity_released_flag_flips_once(
        self, repo: BookingRepository, make_booking: Callable[..., Booking]
    ) -> None:
        booking = make_booking()
        assert repo.mark_capacity_released(booking.id) is True
        assert repo.mark_capacity_released(booking.id) is False

    def test_find_stale_pending(
        self, clock, repo: BookingRepository, make_booking: Callable[..., Booking]
    ) -> None:
        old = make_booking(booking_number="BK-OLD", created_at=clock.now - timedelta(hours=1))
        make_booking(booking_number="BK-NEW")
        make_booking(
            booking_number="BK-CONF",
            status=BookingStatus.CONFIRMED.value,
            created_at=clock.now - timedelta(hours=1),
        )

        stale = repo.find_stale_pending(clock.now - timedelta(minutes=30))

        assert [b.id for b in stale] == [old.id]

    def test_list_bookings_is_tenant_scoped(
        self, org_id: str, repo: BookingRepository, make_booking: Callable[..., Booking]
    ) -> None:
        booking = make_booking()
        assert [b.id for b in repo.list_bookings(org_id)] == [booking.id]
        assert repo.list_bookings("someone-else") == []
        assert repo.get_for_org(booking.id, "someone-else") is None
