"""
Timezone utilities for the booking engine.

Venue wall-clock times are converted to absolute UTC instants exactly once,
at session generation. Everything downstream works with UTC instants.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

import pytz

from .exceptions import ValidationException


def get_venue_timezone(tz_name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name.

    Args:
        tz_name: Timezone name such as "America/New_York" (None means UTC)

    Returns:
        pytz timezone object

    Raises:
        ValidationException: If the name is not a known timezone
    """
    if not tz_name:
        return pytz.UTC
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValidationException(
            f"Unknown timezone: {tz_name}",
            code="INVALID_TIMEZONE",
            details={"timezone": tz_name},
        ) from exc


def _offset_at(tz: tzinfo, utc_naive: datetime) -> timedelta:
    offset = pytz.UTC.localize(utc_naive).astimezone(tz).utcoffset()
    return offset or timedelta(0)


def _render(tz: tzinfo, utc_naive: datetime) -> datetime:
    return pytz.UTC.localize(utc_naive).astimezone(tz).replace(tzinfo=None)


def local_to_utc(local_dt: datetime, tz_name: Optional[str]) -> datetime:
    """
    Convert a venue wall-clock timestamp to the UTC instant that renders as it.

    The wall clock is first read as if it were UTC, rendered in the target zone,
    and shifted by the difference; the correction is repeated with the offset in
    force at the shifted instant. Offsets from the neighbouring days are probed
    too so both readings of an ambiguous wall clock are considered.

    Ambiguous times (clocks set back) resolve to the earlier instant. Times that
    do not exist (clocks set forward) resolve past the gap, e.g. 02:30 on a
    spring-forward night in New York becomes 03:30 EDT.

    Args:
        local_dt: Naive wall-clock datetime (tzinfo, if any, is ignored)
        tz_name: Venue timezone name

    Returns:
        Timezone-aware UTC datetime
    """
    tz = get_venue_timezone(tz_name)
    naive = local_dt.replace(tzinfo=None)

    offsets = set()
    probe = naive
    for _ in range(2):
        offset = _offset_at(tz, probe)
        offsets.add(offset)
        probe = naive - offset
    offsets.add(_offset_at(tz, naive - timedelta(days=1)))
    offsets.add(_offset_at(tz, naive + timedelta(days=1)))

    matches = [naive - offset for offset in offsets if _render(tz, naive - offset) == naive]
    if matches:
        return pytz.UTC.localize(min(matches))
    # Wall clock skipped by a forward transition
    return pytz.UTC.localize(naive - min(offsets))


def combine_local(local_date: date, local_time: time, tz_name: Optional[str]) -> datetime:
    """Convert a venue-local (date, time) pair to a UTC instant."""
    return local_to_utc(datetime.combine(local_date, local_time), tz_name)


def utc_to_local(dt: datetime, tz_name: Optional[str]) -> datetime:
    """
    Convert a UTC datetime to the venue's timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(get_venue_timezone(tz_name))


def venue_today(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Get 'today' in the venue's timezone."""
    current = now or datetime.now(pytz.UTC)
    return utc_to_local(current, tz_name).date()


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def parse_hhmm(value: str) -> time:
    """Parse a wall-clock "HH:MM" string."""
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except (ValueError, AttributeError) as exc:
        raise ValidationException(
            f"Invalid time format: {value!r}. Use HH:MM",
            code="INVALID_TIME",
            details={"value": value},
        ) from exc
