from __future__ import annotations

import re

import pytest

from bookingcore.core.ulid_helper import generate_booking_number, generate_ulid, is_valid_ulid
from bookingcore.domain.booking_lifecycle import (
    BookingStatus,
    PaymentStatus,
    can_transition,
    can_transition_payment,
    is_terminal,
    payment_sources_for,
    sources_for,
)


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "confirmed"),
            ("pending", "cancelled"),
            ("confirmed", "completed"),
            ("confirmed", "cancelled"),
        ],
    )
    def test_allowed(self, current: str, target: str) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "completed"),
            ("cancelled", "confirmed"),
            ("cancelled", "pending"),
            ("completed", "cancelled"),
            ("confirmed", "pending"),
        ],
    )
    def test_rejected(self, current: str, target: str) -> None:
        assert not can_transition(current, target)

    def test_terminal_statuses(self) -> None:
        assert is_terminal("cancelled")
        assert is_terminal("completed")
        assert not is_terminal("pending")

    def test_sources(self) -> None:
        assert sources_for(BookingStatus.CANCELLED) == {
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
        }
        assert sources_for(BookingStatus.COMPLETED) == {BookingStatus.CONFIRMED}


class TestPaymentTransitions:
    def test_payment_axis(self) -> None:
        assert can_transition_payment("pending", "paid")
        assert can_transition_payment("pending", "failed")
        assert can_transition_payment("paid", "refunded")
        assert not can_transition_payment("failed", "paid")
        assert not can_transition_payment("pending", "refunded")

    def test_refund_only_from_paid(self) -> None:
        assert payment_sources_for(PaymentStatus.REFUNDED) == {PaymentStatus.PAID}


class TestIdentifiers:
    def test_booking_number_format(self) -> None:
        number = generate_booking_number("BK", now_ms=1_717_000_123_456)
        assert re.fullmatch(r"BK-123456\d{3}", number)

    def test_booking_number_pads_short_clock(self) -> None:
        assert generate_booking_number("ESC", now_ms=42).startswith("ESC-000042")

    def test_ulid(self) -> None:
        value = generate_ulid()
        assert len(value) == 26
        assert is_valid_ulid(value)
        assert not is_valid_ulid("not-a-ulid")
