from __future__ import annotations

from sqlalchemy.exc import OperationalError

from bookingcore.core.exceptions import (
    ConcurrentUpdateException,
    InsufficientCapacityException,
    RepositoryException,
    UpstreamException,
    is_serialization_failure,
)
from bookingcore.services.base import translate_storage_error


class _PgError(Exception):
    def __init__(self, pgcode: str):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


def test_serialization_failure_becomes_conflict() -> None:
    error = OperationalError("UPDATE activity_sessions", {}, _PgError("40001"))
    assert is_serialization_failure(error)
    assert isinstance(translate_storage_error(error), ConcurrentUpdateException)


def test_deadlock_wrapped_in_repository_exception_becomes_conflict() -> None:
    cause = OperationalError("UPDATE bookings", {}, _PgError("40P01"))
    wrapped = RepositoryException("update failed")
    wrapped.__cause__ = cause
    assert isinstance(translate_storage_error(wrapped), ConcurrentUpdateException)


def test_other_failures_are_upstream() -> None:
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    translated = translate_storage_error(error)
    assert isinstance(translated, UpstreamException)
    assert translated.code == "STORAGE_FAILURE"
    assert translated.status_code == 502


def test_capacity_errors_carry_remaining_seats() -> None:
    exc = InsufficientCapacityException("sess-1", requested=5, remaining=4)
    http = exc.to_http_exception()
    assert http.status_code == 422
    assert http.detail["code"] == "INSUFFICIENT_CAPACITY"
    assert http.detail["details"] == {"session_id": "sess-1", "requested": 5, "remaining": 4}
