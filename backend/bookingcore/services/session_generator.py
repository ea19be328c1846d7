# backend/bookingcore/services/session_generator.py
"""
Pure expansion of ScheduleRules into concrete UTC slots.

Nothing here touches the database. SessionGenerationService decides the date
range (the rolling window) and persists what expand_schedule returns.

Per date:
1. Pick the effective window: a customDates entry for that date, else the
   weekday's customHours when enabled, else the default startTime/endTime.
   Weekdays outside operatingDays have no window unless a customDates entry
   names the date.
2. A whole-day blocked date yields nothing. A blocked time range removes the
   slots that overlap it.
3. Slot starts step by slotInterval from the window start; a slot that would
   run past the window end is not emitted.
4. Each wall-clock start is converted to UTC in the venue's timezone.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Tuple

from ..core.timezone_utils import combine_local
from ..schemas.schedule import WEEKDAYS, ScheduleRules, TimeWindow, hhmm_to_minutes


@dataclass(frozen=True)
class GeneratedSlot:
    local_date: date
    local_start: time
    start_time: datetime
    end_time: datetime


def resolve_day_window(rules: ScheduleRules, day: date) -> Optional[TimeWindow]:
    """Effective operating window for ``day``, or None when closed that day."""
    custom_date = rules.custom_date_for(day)
    if custom_date is not None:
        return custom_date

    weekday = WEEKDAYS[day.weekday()]
    if weekday not in rules.operating_days:
        return None

    if rules.custom_hours_enabled:
        hours = rules.custom_hours.get(weekday)
        if hours is not None and hours.enabled:
            return hours
    return rules.default_window


def is_day_blocked(rules: ScheduleRules, day: date) -> bool:
    return any(block.is_full_day for block in rules.blocks_for(day))


def _blocked_ranges(rules: ScheduleRules, day: date) -> List[Tuple[int, int]]:
    return [
        (hhmm_to_minutes(block.start_time), hhmm_to_minutes(block.end_time))
        for block in rules.blocks_for(day)
        if not block.is_full_day
    ]


def slot_offsets(window: TimeWindow, interval: int) -> Iterator[int]:
    """Start minutes of every slot that fits entirely inside the window."""
    start = window.start_minute
    while start + interval <= window.end_minute:
        yield start
        start += interval


def slots_for_day(rules: ScheduleRules, day: date, tz_name: str) -> List[GeneratedSlot]:
    if is_day_blocked(rules, day):
        return []
    window = resolve_day_window(rules, day)
    if window is None:
        return []

    interval = rules.slot_interval
    blocked = _blocked_ranges(rules, day)
    slots: List[GeneratedSlot] = []
    for offset in slot_offsets(window, interval):
        if any(offset < b_end and offset + interval > b_start for b_start, b_end in blocked):
            continue
        local_start = time(offset // 60, offset % 60)
        start_utc = combine_local(day, local_start, tz_name)
        slots.append(
            GeneratedSlot(
                local_date=day,
                local_start=local_start,
                start_time=start_utc,
                end_time=start_utc + timedelta(minutes=interval),
            )
        )
    return slots


def expand_schedule(
    rules: ScheduleRules, tz_name: str, start_date: date, days: int
) -> List[GeneratedSlot]:
    """
    Expand rules over ``[start_date, start_date + days)``.

    Slots come back ordered by start instant with no two overlapping.
    """
    slots: List[GeneratedSlot] = []
    for i in range(days):
        slots.extend(slots_for_day(rules, start_date + timedelta(days=i), tz_name))

    # A spring-forward gap can push a slot onto the next one; keep the first.
    slots.sort(key=lambda slot: slot.start_time)
    ordered: List[GeneratedSlot] = []
    for slot in slots:
        if ordered and slot.start_time < ordered[-1].end_time:
            continue
        ordered.append(slot)
    return ordered
