# backend/bookingcore/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every service raises one of these; none of them is retried automatically
except ConflictException, which callers may retry once with a fresh read.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input or schedule validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when a concurrent write was detected. Safe to retry once."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""


class UpstreamException(ServiceException):
    """Raised when the persistence or payment collaborator fails."""

    status_code = status.HTTP_502_BAD_GATEWAY


# Specific business exceptions


class InvalidScheduleException(ValidationException):
    """Raised when schedule rules are malformed."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_SCHEDULE", details=details)


class InvalidPartySizeException(ValidationException):
    def __init__(self, party_size: int):
        super().__init__(
            message="Party size must be at least 1",
            code="INVALID_PARTY_SIZE",
            details={"party_size": party_size},
        )


class SessionClosedException(ValidationException):
    def __init__(self, session_id: str):
        super().__init__(
            message="Session is closed for booking",
            code="SESSION_CLOSED",
            details={"session_id": session_id},
        )


class ActivityNotFoundException(NotFoundException):
    def __init__(self, activity_id: str):
        super().__init__(
            message="Activity not found",
            code="ACTIVITY_NOT_FOUND",
            details={"activity_id": activity_id},
        )


class VenueNotFoundException(NotFoundException):
    def __init__(self, venue_id: str):
        super().__init__(
            message="Venue not found",
            code="VENUE_NOT_FOUND",
            details={"venue_id": venue_id},
        )


class PaymentIntentNotFoundException(NotFoundException):
    def __init__(self, payment_intent_id: str):
        super().__init__(
            message="No booking is attached to this payment intent",
            code="PAYMENT_INTENT_NOT_FOUND",
            details={"payment_intent_id": payment_intent_id},
        )


class SessionNotFoundException(NotFoundException):
    def __init__(self, session_id: str):
        super().__init__(
            message="Session not found",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id},
        )


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class CapacityException(BusinessRuleException):
    """Raised when a session cannot absorb the requested party size. Never retried."""


class InsufficientCapacityException(CapacityException):
    def __init__(self, session_id: str, requested: int, remaining: Optional[int] = None):
        details: Dict[str, Any] = {"session_id": session_id, "requested": requested}
        if remaining is not None:
            details["remaining"] = remaining
        super().__init__(
            message=f"Not enough capacity left for a party of {requested}",
            code="INSUFFICIENT_CAPACITY",
            details=details,
        )


class BookingWindowException(BusinessRuleException):
    """Raised when a session is inside the advance-booking lead time or already started."""

    def __init__(self, session_id: str, advance_days: int, message: Optional[str] = None):
        super().__init__(
            message=message
            or f"Sessions must be booked at least {advance_days} day(s) in advance",
            code="OUTSIDE_BOOKING_WINDOW",
            details={"session_id": session_id, "advance_booking_days": advance_days},
        )


class InvalidStatusTransitionException(BusinessRuleException):
    def __init__(self, booking_id: str, current: str, target: str):
        super().__init__(
            message=f"Booking cannot move from {current} to {target}",
            code="INVALID_STATUS_TRANSITION",
            details={"booking_id": booking_id, "current": current, "target": target},
        )


class GenerationInProgressException(ConflictException):
    def __init__(self, activity_id: str):
        super().__init__(
            message="Session generation is already running for this activity",
            code="GENERATION_IN_PROGRESS",
            details={"activity_id": activity_id},
        )


class PaymentIntentInUseException(ConflictException):
    def __init__(self, payment_intent_id: str):
        super().__init__(
            message="Payment intent is already attached to another booking",
            code="PAYMENT_INTENT_IN_USE",
            details={"payment_intent_id": payment_intent_id},
        )


class ConcurrentUpdateException(ConflictException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "The record was modified concurrently",
            code="CONCURRENT_UPDATE",
            details=details,
        )


class CustomerResolutionFailedException(UpstreamException):
    def __init__(self, organization_id: str, email: str):
        super().__init__(
            message="Could not resolve customer",
            code="CUSTOMER_RESOLUTION_FAILED",
            details={"organization_id": organization_id, "email": email},
        )


class SessionGenerationFailedException(UpstreamException):
    def __init__(self, activity_id: str, committed: int, *, reason: str):
        super().__init__(
            message="Session generation aborted",
            code="SESSION_GENERATION_FAILED",
            details={"activity_id": activity_id, "committed": committed, "reason": reason},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_serialization_failure(exc: Exception) -> bool:
    """
    Check if a database error is a transient serialization/deadlock failure.

    These surface when two writers race on the same row under SERIALIZABLE
    isolation or lock ordering, and a single retry with a fresh read is safe.
    """
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in {"40001", "40P01"}:
        return True
    message = str(exc).lower()
    return "deadlock detected" in message or "could not serialize" in message
