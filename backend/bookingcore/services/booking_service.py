# backend/bookingcore/services/booking_service.py
"""
Booking Service for the booking engine.

book() is the capacity-safe reservation transaction. Within one database
transaction it:

1. reads the session and checks it is open, bookable and large enough
   (a fast, possibly stale rejection);
2. resolves the customer (find-or-create, see CustomerService);
3. takes the seats with a single conditional UPDATE that only succeeds while
   capacity_remaining >= party_size. This statement, not step 1, is what makes
   two concurrent bookings unable to oversell a session;
4. inserts the booking and bumps the customer's aggregates.

Everything commits together or rolls back together, so a decrement without a
booking (or the reverse) cannot be left behind. A store conflict (deadlock or
serialization failure) is retried once with a fresh read; running out of
capacity is reported to the caller and never retried.

Cancellation gives seats back exactly once, guarded by Booking.capacity_released.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BookingNotFoundException,
    BookingWindowException,
    ConcurrentUpdateException,
    DomainException,
    InsufficientCapacityException,
    InvalidPartySizeException,
    InvalidStatusTransitionException,
    PaymentIntentInUseException,
    PaymentIntentNotFoundException,
    SessionClosedException,
    SessionNotFoundException,
    UpstreamException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_booking_number
from ..domain.booking_lifecycle import (
    BookingStatus,
    PaymentStatus,
    can_transition,
    can_transition_payment,
    payment_sources_for,
    sources_for,
)
from ..models.booking import Booking
from ..models.session import ActivitySession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingConfirmation, BookingRequest, PaymentEventResult
from .availability_service import advance_booking_days
from .base import BaseService
from .customer_service import CustomerService

logger = logging.getLogger(__name__)

BOOKING_ATTEMPTS = 2
BOOKING_NUMBER_ATTEMPTS = 3


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Owns the booking transaction, the lifecycle transitions that follow it,
    and the payment-event handlers.
    """

    def __init__(
        self,
        db: Session,
        customer_service: Optional[CustomerService] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            customer_service: Optional CustomerService sharing the same session
            clock: Source of the current UTC instant
        """
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.activity_repository = RepositoryFactory.create_activity_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self.customer_service = customer_service or CustomerService(db)
        self.clock = clock

    # Booking transaction

    @BaseService.measure_operation("book")
    def book(self, request: BookingRequest) -> BookingConfirmation:
        """
        Reserve ``party_size`` seats on a session for a customer.

        Args:
            request: Session, customer details, party size and payment path

        Returns:
            BookingConfirmation with the booking id and confirmation code

        Raises:
            InvalidPartySizeException: party_size < 1
            SessionNotFoundException: unknown session or another tenant's
            SessionClosedException: session closed by staff
            BookingWindowException: session started or inside the lead time
            InsufficientCapacityException: not enough seats, including seats
                taken by a concurrent booking between read and commit
            CustomerResolutionFailedException: customer could not be resolved
            ConcurrentUpdateException: store conflict persisted after one retry
        """
        if not request.organization_id:
            raise ValidationException(
                "organization_id is required", code="ORGANIZATION_REQUIRED"
            )
        if request.party_size < 1:
            raise InvalidPartySizeException(request.party_size)
        if request.payment_intent_id and request.confirm_immediately:
            raise ValidationException(
                "A booking is either confirmed immediately or held for payment, not both",
                code="CONFLICTING_BOOKING_PATH",
            )

        self.log_operation(
            "book",
            session_id=request.session_id,
            party_size=request.party_size,
            payment_path="intent" if request.payment_intent_id else "direct",
        )

        for attempt in range(1, BOOKING_ATTEMPTS + 1):
            try:
                return self._book_once(request)
            except ConcurrentUpdateException:
                if attempt == BOOKING_ATTEMPTS:
                    raise
                prometheus_metrics.record_booking("conflict_retry")
                self.logger.warning(
                    f"Store conflict booking session {request.session_id}; "
                    "retrying with a fresh read"
                )
                self.db.expire_all()
        raise UpstreamException("Booking attempts exhausted", code="BOOKING_FAILED")

    def _book_once(self, request: BookingRequest) -> BookingConfirmation:
        now = self.clock()
        with self.transaction():
            session = self._load_bookable_session(request, now)
            customer = self.customer_service.resolve(request.organization_id, request.customer)

            if not self.session_repository.try_decrement_capacity(session.id, request.party_size):
                self._raise_decrement_failure(session.id, request.party_size)

            total_price = Decimal(session.price_at_generation) * request.party_size
            if request.confirm_immediately:
                status, confirmed_at = BookingStatus.CONFIRMED, now
            else:
                status, confirmed_at = BookingStatus.PENDING, None

            booking = self._insert_booking(
                session_id=session.id,
                activity_id=session.activity_id,
                customer_id=customer.id,
                organization_id=request.organization_id,
                party_size=request.party_size,
                total_price=total_price,
                status=status.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_intent_id=request.payment_intent_id,
                notes=request.notes,
                created_at=now,
                confirmed_at=confirmed_at,
            )
            self.customer_repository.add_booking_aggregates(customer.id, total_price)

        prometheus_metrics.record_booking("created")
        self.logger.info(
            f"Booked {request.party_size} seat(s) on session {session.id} "
            f"as {booking.booking_number} ({booking.status})"
        )
        return BookingConfirmation(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            session_id=session.id,
            customer_id=customer.id,
            party_size=booking.party_size,
            total_price=total_price,
            status=booking.status,
            payment_status=booking.payment_status,
            start_time=session.start_time,
        )

    def _load_bookable_session(self, request: BookingRequest, now: datetime) -> ActivitySession:
        session = self.session_repository.get_by_id(request.session_id)
        if session is None or session.organization_id != request.organization_id:
            raise SessionNotFoundException(request.session_id)
        if session.is_closed:
            raise SessionClosedException(session.id)

        activity = self.activity_repository.get_by_id(session.activity_id)
        advance_days = advance_booking_days(activity) if activity is not None else 0
        if session.start_time <= now:
            raise BookingWindowException(
                session.id, advance_days, message="Session has already started"
            )
        if session.start_time < now + timedelta(days=advance_days):
            raise BookingWindowException(session.id, advance_days)

        if request.party_size > session.capacity_remaining:
            prometheus_metrics.record_booking("insufficient_capacity")
            raise InsufficientCapacityException(
                session.id, request.party_size, session.capacity_remaining
            )
        return session

    def _raise_decrement_failure(self, session_id: str, party_size: int) -> None:
        """The conditional UPDATE matched nothing; find out why from the current row."""
        current = self.session_repository.get_fresh(session_id)
        if current is None:
            raise SessionNotFoundException(session_id)
        if current.is_closed:
            raise SessionClosedException(session_id)
        prometheus_metrics.record_booking("insufficient_capacity")
        self.logger.info(
            f"Capacity taken concurrently on session {session_id}: "
            f"requested {party_size}, {current.capacity_remaining} left"
        )
        raise InsufficientCapacityException(session_id, party_size, current.capacity_remaining)

    def _insert_booking(self, **fields: Any) -> Booking:
        """
        Insert the booking row under a fresh confirmation code.

        The insert runs in a SAVEPOINT so a code collision only rolls back the
        insert, not the seats already taken in this transaction.
        """
        payment_intent_id = fields.get("payment_intent_id")
        for _ in range(BOOKING_NUMBER_ATTEMPTS):
            number = generate_booking_number(settings.booking_number_prefix)
            savepoint = self.db.begin_nested()
            try:
                booking = self.repository.create(booking_number=number, **fields)
                savepoint.commit()
                return booking
            except IntegrityError:
                savepoint.rollback()
                if payment_intent_id and self.repository.get_by_payment_intent(payment_intent_id):
                    raise PaymentIntentInUseException(payment_intent_id)
                self.logger.warning(f"Booking number collision on {number}; regenerating")
        raise UpstreamException(
            "Could not allocate a unique booking number", code="BOOKING_NUMBER_EXHAUSTED"
        )

    # Lookups

    def get_booking(self, booking_id: str, organization_id: str) -> Booking:
        booking = self.repository.get_for_org(booking_id, organization_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    def list_bookings(
        self,
        organization_id: str,
        status: Optional[str] = None,
        session_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        if status is not None:
            try:
                BookingStatus(status)
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown booking status: {status}", code="INVALID_STATUS"
                ) from exc
        return self.repository.list_bookings(
            organization_id,
            status=status,
            session_id=session_id,
            customer_id=customer_id,
            skip=skip,
            limit=limit,
        )

    # Staff lifecycle actions

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, booking_id: str, organization_id: str) -> Booking:
        with self.transaction():
            booking = self.get_booking(booking_id, organization_id)
            self._transition(booking, BookingStatus.CONFIRMED, confirmed_at=self.clock())
        return self._reload(booking_id)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, booking_id: str, organization_id: str) -> Booking:
        with self.transaction():
            booking = self.get_booking(booking_id, organization_id)
            self._transition(booking, BookingStatus.COMPLETED, completed_at=self.clock())
        return self._reload(booking_id)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, organization_id: str, reason: Optional[str] = None
    ) -> Booking:
        """
        Cancel a pending or confirmed booking and give its seats back.

        Cancelling an already-cancelled booking changes nothing, so seats are
        never credited twice.
        """
        with self.transaction():
            booking = self.get_booking(booking_id, organization_id)
            self._cancel(booking, reason, release_reason="cancelled")
        return self._reload(booking_id)

    @BaseService.measure_operation("mark_refunded")
    def mark_refunded(self, booking_id: str, organization_id: str) -> Booking:
        with self.transaction():
            booking = self.get_booking(booking_id, organization_id)
            self._transition_payment(booking, PaymentStatus.REFUNDED)
        return self._reload(booking_id)

    # Payment events

    @BaseService.measure_operation("handle_payment_succeeded")
    def handle_payment_succeeded(self, payment_intent_id: str) -> PaymentEventResult:
        """
        Payment captured: pending -> confirmed, payment pending -> paid.

        If the hold already expired the booking stays cancelled (its seats are
        gone) and is only marked paid, so the money can be refunded.
        """
        with self.transaction():
            booking = self._get_by_intent(payment_intent_id)
            changed = self._transition_payment(booking, PaymentStatus.PAID)
            if booking.status == BookingStatus.PENDING.value:
                changed = self._transition(
                    booking, BookingStatus.CONFIRMED, confirmed_at=self.clock()
                ) or changed
            elif booking.status == BookingStatus.CANCELLED.value and changed:
                self.logger.warning(
                    f"Payment {payment_intent_id} succeeded for cancelled booking "
                    f"{booking.id}; refund required"
                )
        return self._payment_result(payment_intent_id, booking.id, changed)

    @BaseService.measure_operation("handle_payment_failed")
    def handle_payment_failed(self, payment_intent_id: str) -> PaymentEventResult:
        return self._fail_payment(payment_intent_id, "payment_failed")

    @BaseService.measure_operation("handle_payment_canceled")
    def handle_payment_canceled(self, payment_intent_id: str) -> PaymentEventResult:
        return self._fail_payment(payment_intent_id, "payment_canceled")

    def _fail_payment(self, payment_intent_id: str, reason: str) -> PaymentEventResult:
        with self.transaction():
            booking = self._get_by_intent(payment_intent_id)
            if booking.payment_status in (PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value):
                self.logger.warning(
                    f"Ignoring {reason} for settled payment intent {payment_intent_id}"
                )
                return self._payment_result(payment_intent_id, booking.id, False)
            changed = self._transition_payment(booking, PaymentStatus.FAILED)
            changed = self._cancel(booking, reason, release_reason=reason) or changed
        return self._payment_result(payment_intent_id, booking.id, changed)

    # Stale holds

    @BaseService.measure_operation("expire_pending_bookings")
    def expire_pending_bookings(self, older_than_minutes: Optional[int] = None) -> int:
        """
        Cancel pending bookings still awaiting payment past the hold period.

        Each booking is expired in its own transaction; a failure is logged and
        the rest still run. Returns how many bookings were expired.
        """
        minutes = (
            older_than_minutes
            if older_than_minutes is not None
            else settings.pending_payment_ttl_minutes
        )
        cutoff = self.clock() - timedelta(minutes=minutes)
        expired = 0
        for stale in self.repository.find_stale_pending(cutoff):
            try:
                with self.transaction():
                    won = self.repository.transition_status(
                        stale.id,
                        [BookingStatus.PENDING],
                        BookingStatus.CANCELLED,
                        from_payment_statuses=[PaymentStatus.PENDING],
                        cancelled_at=self.clock(),
                        cancellation_reason="payment_hold_expired",
                    )
                    if won:
                        self._release_capacity(stale, "expired")
            except DomainException as exc:
                self.logger.error(f"Failed to expire booking {stale.id}: {exc.message}")
                continue
            if won:
                expired += 1

        if expired:
            self.logger.info(f"Expired {expired} pending booking(s) older than {minutes} minutes")
        return expired

    # Helpers

    def _get_by_intent(self, payment_intent_id: str) -> Booking:
        booking = self.repository.get_by_payment_intent(payment_intent_id)
        if booking is None:
            raise PaymentIntentNotFoundException(payment_intent_id)
        return booking

    def _reload(self, booking_id: str) -> Booking:
        booking = self.repository.get_fresh(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    def _payment_result(
        self, payment_intent_id: str, booking_id: str, changed: bool
    ) -> PaymentEventResult:
        booking = self._reload(booking_id)
        return PaymentEventResult(
            payment_intent_id=payment_intent_id,
            booking_id=booking.id,
            status=booking.status,
            payment_status=booking.payment_status,
            changed=changed,
        )

    def _transition(self, booking: Booking, target: BookingStatus, **fields: Any) -> bool:
        """
        Move the booking to ``target`` with a conditional update.

        Returns False when the booking is already in ``target`` (a replay).
        """
        if booking.status == target.value:
            return False
        if not can_transition(booking.status, target.value):
            raise InvalidStatusTransitionException(booking.id, booking.status, target.value)
        if self.repository.transition_status(booking.id, sources_for(target), target, **fields):
            self.repository.get_fresh(booking.id)
            return True

        current = self._reload(booking.id)
        if current.status == target.value:
            return False
        raise InvalidStatusTransitionException(booking.id, current.status, target.value)

    def _transition_payment(self, booking: Booking, target: PaymentStatus) -> bool:
        if booking.payment_status == target.value:
            return False
        if not can_transition_payment(booking.payment_status, target.value):
            raise InvalidStatusTransitionException(
                booking.id, f"payment:{booking.payment_status}", f"payment:{target.value}"
            )
        if self.repository.set_payment_status(booking.id, payment_sources_for(target), target):
            self.repository.get_fresh(booking.id)
            return True

        current = self._reload(booking.id)
        if current.payment_status == target.value:
            return False
        raise InvalidStatusTransitionException(
            booking.id, f"payment:{current.payment_status}", f"payment:{target.value}"
        )

    def _cancel(self, booking: Booking, reason: Optional[str], release_reason: str) -> bool:
        changed = self._transition(
            booking,
            BookingStatus.CANCELLED,
            cancelled_at=self.clock(),
            cancellation_reason=reason,
        )
        if changed:
            self._release_capacity(booking, release_reason)
        return changed

    def _release_capacity(self, booking: Booking, reason: str) -> None:
        """Hand the booking's seats back to its session, at most once per booking."""
        if not self.repository.mark_capacity_released(booking.id):
            self.logger.info(f"Capacity for booking {booking.id} was already released")
            return
        self.session_repository.release_capacity(booking.session_id, booking.party_size)
        prometheus_metrics.record_capacity_released(reason, booking.party_size)
        self.logger.info(
            f"Released {booking.party_size} seat(s) on session {booking.session_id} "
            f"from booking {booking.id} ({reason})"
        )
