"""ULID and confirmation-code helpers."""

import secrets
import time
from typing import Optional

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def parse_ulid(ulid_str: str) -> Optional[ulid.ULID]:
    """Parse and validate a ULID string."""
    try:
        return ulid.ULID.from_str(ulid_str)
    except (ValueError, TypeError, AttributeError):
        return None


def is_valid_ulid(ulid_str: str) -> bool:
    """Check if a string is a valid ULID."""
    return parse_ulid(ulid_str) is not None


def generate_booking_number(prefix: str = "BK", now_ms: Optional[int] = None) -> str:
    """
    Generate a human-facing confirmation code such as ``BK-482913057``.

    Six digits of the millisecond clock followed by three random digits.
    Uniqueness is enforced by the bookings table, not by this function.
    """
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    stamp = str(millis)[-6:].rjust(6, "0")
    suffix = f"{secrets.randbelow(1000):03d}"
    return f"{prefix}-{stamp}{suffix}"
