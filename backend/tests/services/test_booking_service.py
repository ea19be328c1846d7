from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, List

import pytest
from sqlalchemy.orm import Session, sessionmaker

from bookingcore.core.exceptions import (
    BookingNotFoundException,
    BookingWindowException,
    ConcurrentUpdateException,
    InsufficientCapacityException,
    InvalidPartySizeException,
    InvalidStatusTransitionException,
    PaymentIntentInUseException,
    PaymentIntentNotFoundException,
    SessionClosedException,
    SessionNotFoundException,
    ValidationException,
)
from bookingcore.database import Base, create_db_engine
from bookingcore.models.activity import Activity
from bookingcore.models.booking import Booking
from bookingcore.models.session import ActivitySession
from bookingcore.models.venue import Venue
from bookingcore.repositories.factory import RepositoryFactory
from bookingcore.schemas.booking import BookingRequest, CustomerDetails
from bookingcore.services import booking_service as booking_service_module
from bookingcore.services.booking_service import BookingService


def _request(session: ActivitySession, **overrides: Any) -> BookingRequest:
    fields: dict = {
        "organization_id": session.organization_id,
        "session_id": session.id,
        "customer": CustomerDetails(
            first_name="Sam",
            last_name="Lee",
            email=overrides.pop("email", "sam@lee.dev"),
        ),
        "party_size": 2,
    }
    fields.update(overrides)
    return BookingRequest(**fields)


def _remaining(db: Session, session_id: str) -> int:
    return RepositoryFactory.create_session_repository(db).get_fresh(session_id).capacity_remaining


def _booking(db: Session, booking_id: str) -> Booking:
    return RepositoryFactory.create_booking_repository(db).get_fresh(booking_id)


@pytest.fixture
def service(db: Session, clock) -> BookingService:
    return BookingService(db, clock=clock)


@pytest.fixture
def session(make_session: Callable[..., ActivitySession]) -> ActivitySession:
    return make_session(capacity=6)


class TestBook:
    def test_books_seats_and_creates_customer(
        self, db: Session, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session))

        assert confirmation.status == "pending"
        assert confirmation.payment_status == "pending"
        assert confirmation.total_price == Decimal("50.00")
        assert confirmation.booking_number.startswith("BK-")
        assert confirmation.start_time == session.start_time
        assert _remaining(db, session.id) == 4

        customer = RepositoryFactory.create_customer_repository(db).find_by_org_email(
            org_id, "sam@lee.dev"
        )
        assert customer.id == confirmation.customer_id
        assert customer.total_bookings == 1
        assert customer.total_spent == Decimal("50.00")

    def test_capacity_is_never_oversold(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        service.book(_request(session, party_size=2))

        with pytest.raises(InsufficientCapacityException) as exc_info:
            service.book(_request(session, party_size=5))
        assert exc_info.value.details["remaining"] == 4
        assert _remaining(db, session.id) == 4

        service.book(_request(session, party_size=4))
        assert _remaining(db, session.id) == 0

        with pytest.raises(InsufficientCapacityException):
            service.book(_request(session, party_size=1))

    def test_confirm_immediately(
        self, db: Session, clock, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session, confirm_immediately=True))

        booking = _booking(db, confirmation.booking_id)
        assert booking.status == "confirmed"
        assert booking.payment_status == "pending"
        assert booking.confirmed_at == clock.now

    @pytest.mark.parametrize("party_size", [0, -3])
    def test_party_size_must_be_positive(
        self, db: Session, service: BookingService, session: ActivitySession, party_size: int
    ) -> None:
        with pytest.raises(InvalidPartySizeException):
            service.book(_request(session, party_size=party_size))
        assert _remaining(db, session.id) == 6

    def test_organization_is_required(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        with pytest.raises(ValidationException) as exc_info:
            service.book(_request(session, organization_id=None))
        assert exc_info.value.code == "ORGANIZATION_REQUIRED"
        assert _remaining(db, session.id) == 6

    def test_payment_intent_and_confirm_immediately_conflict(
        self, service: BookingService, session: ActivitySession
    ) -> None:
        with pytest.raises(ValidationException) as exc_info:
            service.book(_request(session, payment_intent_id="pi_1", confirm_immediately=True))
        assert exc_info.value.code == "CONFLICTING_BOOKING_PATH"

    def test_closed_session(
        self, service: BookingService, make_session: Callable[..., ActivitySession]
    ) -> None:
        closed = make_session(is_closed=True)
        with pytest.raises(SessionClosedException):
            service.book(_request(closed))

    def test_started_session(
        self, clock, service: BookingService, make_session: Callable[..., ActivitySession]
    ) -> None:
        started = make_session(start_time=clock.now - timedelta(minutes=30))
        with pytest.raises(BookingWindowException):
            service.book(_request(started))

    def test_inside_advance_booking_lead_time(
        self,
        service: BookingService,
        make_activity: Callable[..., Activity],
        make_session: Callable[..., ActivitySession],
        schedule_factory: Callable[..., Any],
    ) -> None:
        activity = make_activity(schedule=schedule_factory(advanceBooking=3))
        too_soon = make_session(activity=activity)

        with pytest.raises(BookingWindowException) as exc_info:
            service.book(_request(too_soon))
        assert exc_info.value.details["advance_booking_days"] == 3

    def test_session_of_another_tenant_is_not_found(
        self, service: BookingService, session: ActivitySession
    ) -> None:
        with pytest.raises(SessionNotFoundException):
            service.book(_request(session, organization_id="org-other"))
        with pytest.raises(SessionNotFoundException):
            service.book(_request(session, session_id="missing"))

    def test_customer_resolved_by_normalized_email(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        first = service.book(_request(session, email="Sam@Lee.dev", party_size=1))
        second = service.book(_request(session, email="sam@lee.dev", party_size=1))

        assert first.customer_id == second.customer_id
        customer = RepositoryFactory.create_customer_repository(db).get_fresh(first.customer_id)
        assert customer.total_bookings == 2

    def test_payment_intent_cannot_back_two_bookings(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        service.book(_request(session, payment_intent_id="pi_dup"))

        with pytest.raises(PaymentIntentInUseException):
            service.book(_request(session, email="kim@lee.dev", payment_intent_id="pi_dup"))

        assert _remaining(db, session.id) == 4
        assert (
            RepositoryFactory.create_customer_repository(db).find_by_org_email(
                session.organization_id, "kim@lee.dev"
            )
            is None
        )

    def test_booking_number_collision_is_regenerated(
        self,
        monkeypatch: pytest.MonkeyPatch,
        service: BookingService,
        session: ActivitySession,
    ) -> None:
        numbers = iter(["BK-000001001", "BK-000001001", "BK-000001002"])
        monkeypatch.setattr(
            booking_service_module, "generate_booking_number", lambda prefix: next(numbers)
        )

        first = service.book(_request(session, party_size=1))
        second = service.book(_request(session, party_size=1))

        assert first.booking_number == "BK-000001001"
        assert second.booking_number == "BK-000001002"


class TestConflictRetry:
    def test_store_conflict_retried_once(
        self, monkeypatch: pytest.MonkeyPatch, service: BookingService, session: ActivitySession
    ) -> None:
        original = service._book_once
        calls: List[str] = []

        def flaky(request: BookingRequest):
            calls.append(request.session_id)
            if len(calls) == 1:
                raise ConcurrentUpdateException()
            return original(request)

        monkeypatch.setattr(service, "_book_once", flaky)

        confirmation = service.book(_request(session))

        assert len(calls) == 2
        assert confirmation.party_size == 2

    def test_persistent_conflict_surfaces(
        self, monkeypatch: pytest.MonkeyPatch, service: BookingService, session: ActivitySession
    ) -> None:
        calls: List[str] = []

        def always_conflicts(request: BookingRequest):
            calls.append(request.session_id)
            raise ConcurrentUpdateException()

        monkeypatch.setattr(service, "_book_once", always_conflicts)

        with pytest.raises(ConcurrentUpdateException):
            service.book(_request(session))
        assert len(calls) == 2

    def test_insufficient_capacity_is_not_retried(
        self, monkeypatch: pytest.MonkeyPatch, service: BookingService, session: ActivitySession
    ) -> None:
        original = service._book_once
        calls: List[str] = []

        def counting(request: BookingRequest):
            calls.append(request.session_id)
            return original(request)

        monkeypatch.setattr(service, "_book_once", counting)

        with pytest.raises(InsufficientCapacityException):
            service.book(_request(session, party_size=7))
        assert len(calls) == 1


class TestInterleavedBookings:
    def test_stale_read_cannot_oversell(self, tmp_path: Path, clock) -> None:
        """Two sessions read the same remaining count; the second writer loses."""
        engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        try:
            setup = factory()
            venue = Venue(organization_id="org-race", name="Race", timezone="UTC")
            setup.add(venue)
            setup.flush()
            activity = Activity(
                organization_id="org-race",
                venue_id=venue.id,
                name="Heist",
                capacity=4,
                price=Decimal("30.00"),
            )
            setup.add(activity)
            setup.flush()
            start = clock.now + timedelta(days=2)
            target = ActivitySession(
                activity_id=activity.id,
                venue_id=venue.id,
                organization_id="org-race",
                start_time=start,
                end_time=start + timedelta(hours=1),
                capacity_total=4,
                capacity_remaining=4,
                price_at_generation=Decimal("30.00"),
            )
            setup.add(target)
            setup.commit()
            setup.close()

            first_db, second_db = factory(), factory()
            first = BookingService(first_db, clock=clock)
            second = BookingService(second_db, clock=clock)

            stale = second.session_repository.get_by_id(target.id)
            assert stale.capacity_remaining == 4
            second_db.commit()

            first.book(_request(target, email="first@lee.dev", party_size=3))
            assert stale.capacity_remaining == 4

            with pytest.raises(InsufficientCapacityException) as exc_info:
                second.book(_request(target, email="second@lee.dev", party_size=3))

            assert exc_info.value.details["remaining"] == 1
            check = factory()
            assert check.get(ActivitySession, target.id).capacity_remaining == 1
            assert check.query(Booking).count() == 1
            check.close()
            first_db.close()
            second_db.close()
        finally:
            engine.dispose()


class TestLifecycle:
    def test_cancel_twice_credits_capacity_once(
        self, db: Session, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session, confirm_immediately=True))
        assert _remaining(db, session.id) == 4

        cancelled = service.cancel_booking(confirmation.booking_id, org_id, "weather")
        again = service.cancel_booking(confirmation.booking_id, org_id, "weather")

        assert cancelled.status == again.status == "cancelled"
        assert again.cancellation_reason == "weather"
        assert again.capacity_released is True
        assert _remaining(db, session.id) == 6

    def test_customer_aggregates_kept_on_cancel(
        self, db: Session, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session))
        service.cancel_booking(confirmation.booking_id, org_id)

        customer = RepositoryFactory.create_customer_repository(db).get_fresh(
            confirmation.customer_id
        )
        assert customer.total_bookings == 1

    def test_confirm_then_complete(
        self, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session)).booking_id

        assert service.confirm_booking(booking_id, org_id).status == "confirmed"
        assert service.confirm_booking(booking_id, org_id).status == "confirmed"
        completed = service.complete_booking(booking_id, org_id)

        assert completed.status == "completed"
        assert completed.completed_at is not None

    def test_completed_booking_cannot_be_cancelled(
        self, db: Session, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session, confirm_immediately=True)).booking_id
        service.complete_booking(booking_id, org_id)

        with pytest.raises(InvalidStatusTransitionException):
            service.cancel_booking(booking_id, org_id)
        assert _remaining(db, session.id) == 4

    def test_pending_booking_cannot_be_completed(
        self, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session)).booking_id
        with pytest.raises(InvalidStatusTransitionException):
            service.complete_booking(booking_id, org_id)

    def test_lookup_is_tenant_scoped(
        self, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session)).booking_id

        assert service.get_booking(booking_id, org_id).id == booking_id
        with pytest.raises(BookingNotFoundException):
            service.get_booking(booking_id, "org-other")

    def test_list_bookings_filters(
        self, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        kept = service.book(_request(session, confirm_immediately=True)).booking_id
        service.book(_request(session, email="kim@lee.dev"))

        confirmed = service.list_bookings(org_id, status="confirmed")

        assert [b.id for b in confirmed] == [kept]
        assert len(service.list_bookings(org_id, session_id=session.id)) == 2
        with pytest.raises(ValidationException):
            service.list_bookings(org_id, status="bogus")


class TestPaymentEvents:
    def test_success_confirms_and_replay_is_noop(
        self, service: BookingService, session: ActivitySession
    ) -> None:
        service.book(_request(session, payment_intent_id="pi_ok"))

        first = service.handle_payment_succeeded("pi_ok")
        replay = service.handle_payment_succeeded("pi_ok")

        assert (first.status, first.payment_status, first.changed) == ("confirmed", "paid", True)
        assert (replay.status, replay.payment_status, replay.changed) == (
            "confirmed",
            "paid",
            False,
        )

    def test_failure_after_success_is_ignored(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        service.book(_request(session, payment_intent_id="pi_ok"))
        service.handle_payment_succeeded("pi_ok")

        result = service.handle_payment_failed("pi_ok")

        assert (result.status, result.payment_status, result.changed) == (
            "confirmed",
            "paid",
            False,
        )
        assert _remaining(db, session.id) == 4

    def test_failure_cancels_and_releases_once(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session, payment_intent_id="pi_bad"))

        failed = service.handle_payment_failed("pi_bad")
        replay = service.handle_payment_failed("pi_bad")

        assert (failed.status, failed.payment_status, failed.changed) == (
            "cancelled",
            "failed",
            True,
        )
        assert replay.changed is False
        assert _remaining(db, session.id) == 6
        assert _booking(db, confirmation.booking_id).cancellation_reason == "payment_failed"

    def test_canceled_intent_cancels_booking(
        self, db: Session, service: BookingService, session: ActivitySession
    ) -> None:
        confirmation = service.book(_request(session, payment_intent_id="pi_gone"))

        result = service.handle_payment_canceled("pi_gone")

        assert result.status == "cancelled"
        assert _booking(db, confirmation.booking_id).cancellation_reason == "payment_canceled"
        assert _remaining(db, session.id) == 6

    def test_events_after_refund_are_ignored(
        self, db: Session, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session, payment_intent_id="pi_refunded")).booking_id
        service.handle_payment_succeeded("pi_refunded")
        service.mark_refunded(booking_id, org_id)

        failed = service.handle_payment_failed("pi_refunded")
        canceled = service.handle_payment_canceled("pi_refunded")

        for result in (failed, canceled):
            assert (result.status, result.payment_status, result.changed) == (
                "confirmed",
                "refunded",
                False,
            )
        assert _booking(db, booking_id).capacity_released is False
        assert _remaining(db, session.id) == 4

    def test_unknown_intent(self, service: BookingService) -> None:
        with pytest.raises(PaymentIntentNotFoundException):
            service.handle_payment_succeeded("pi_nobody")

    def test_refund_requires_payment(
        self, org_id: str, service: BookingService, session: ActivitySession
    ) -> None:
        booking_id = service.book(_request(session, payment_intent_id="pi_r")).booking_id

        with pytest.raises(InvalidStatusTransitionException):
            service.mark_refunded(booking_id, org_id)

        service.handle_payment_succeeded("pi_r")
        assert service.mark_refunded(booking_id, org_id).payment_status == "refunded"


class TestExpirePendingBookings:
    def test_only_stale_unpaid_holds_expire(
        self, db: Session, clock, service: BookingService, session: ActivitySession
    ) -> None:
        held = service.book(_request(session, payment_intent_id="pi_hold"))
        direct = service.book(_request(session, email="kim@lee.dev", confirm_immediately=True))
        clock.advance(minutes=31)
        recent = service.book(_request(session, email="ali@lee.dev", payment_intent_id="pi_new"))
        assert _remaining(db, session.id) == 0

        assert service.expire_pending_bookings() == 1

        expired = _booking(db, held.booking_id)
        assert expired.status == "cancelled"
        assert expired.payment_status == "pending"
        assert expired.cancellation_reason == "payment_hold_expired"
        assert _booking(db, direct.booking_id).status == "confirmed"
        assert _booking(db, recent.booking_id).status == "pending"
        assert _remaining(db, session.id) == 2
        assert service.expire_pending_bookings() == 0

    def test_late_payment_on_expired_hold_is_recorded_for_refund(
        self, db: Session, clock, service: BookingService, session: ActivitySession
    ) -> None:
        held = service.book(_request(session, payment_intent_id="pi_late"))
        clock.advance(minutes=45)
        service.expire_pending_bookings()

        result = service.handle_payment_succeeded("pi_late")

        assert (result.status, result.payment_status, result.changed) == (
            "cancelled",
            "paid",
            True,
        )
        assert _remaining(db, session.id) == 6
        assert _booking(db, held.booking_id).status == "cancelled"

    def test_zero_minutes_expires_every_pending_hold(
        self, db: Session, clock, service: BookingService, session: ActivitySession
    ) -> None:
        held = service.book(_request(session, payment_intent_id="pi_now"))
        clock.advance(seconds=1)

        assert service.expire_pending_bookings(older_than_minutes=0) == 1
        assert _booking(db, held.booking_id).status == "cancelled"
        assert _remaining(db, session.id) == 6
