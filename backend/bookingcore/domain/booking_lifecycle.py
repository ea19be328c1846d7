"""
Booking lifecycle state machine.

Two independent axes:

    status:          pending -> confirmed -> completed
                     pending | confirmed -> cancelled
    payment_status:  pending -> paid | failed
                     paid -> refunded

completed and cancelled are terminal. A cancelled booking whose seats were
taken from its session must give them back exactly once; whether that has
happened is tracked on the booking (capacity_released), not here.
"""

from enum import Enum
from typing import Dict, FrozenSet


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


STATUS_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, targets in STATUS_TRANSITIONS.items() if not targets
)


def can_transition(current: str, target: str) -> bool:
    return BookingStatus(target) in STATUS_TRANSITIONS[BookingStatus(current)]


def can_transition_payment(current: str, target: str) -> bool:
    return PaymentStatus(target) in PAYMENT_TRANSITIONS[PaymentStatus(current)]


def sources_for(target: BookingStatus) -> FrozenSet[BookingStatus]:
    """Every status from which ``target`` is reachable in one step."""
    return frozenset(source for source, targets in STATUS_TRANSITIONS.items() if target in targets)


def payment_sources_for(target: PaymentStatus) -> FrozenSet[PaymentStatus]:
    return frozenset(
        source for source, targets in PAYMENT_TRANSITIONS.items() if target in targets
    )


def is_terminal(status: str) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES
