# backend/bookingcore/schemas/schedule.py
"""
ScheduleRules: the declarative weekly template attached to an activity.

Wall-clock strings are "HH:MM" in the venue's timezone. Precedence for a given
date: a customDates entry, else customHours for the weekday (when
customHoursEnabled), else the default startTime/endTime.
"""

from datetime import date
import re
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from ._strict_base import CamelDocument

WEEKDAYS: Tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _normalize_weekday(value: str) -> str:
    normalized = value.strip().capitalize()
    if normalized not in WEEKDAYS:
        raise ValueError(f"unknown weekday: {value!r}")
    return normalized


def _validate_hhmm(value: str) -> str:
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def hhmm_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class TimeWindow(CamelDocument):
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _validate_hhmm(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindow":
        if hhmm_to_minutes(self.start_time) >= hhmm_to_minutes(self.end_time):
            raise ValueError(
                f"start time {self.start_time} must be before end time {self.end_time}"
            )
        return self

    @property
    def start_minute(self) -> int:
        return hhmm_to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return hhmm_to_minutes(self.end_time)


class CustomHours(TimeWindow):
    enabled: bool = True


class CustomDate(TimeWindow):
    id: Optional[str] = None
    date: date


class BlockedRange(CamelDocument):
    """A blocked date, optionally narrowed to a time range on that date."""

    date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        return _validate_hhmm(value) if value is not None else None

    @model_validator(mode="after")
    def _check_range(self) -> "BlockedRange":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("blocked range needs both startTime and endTime")
        if self.start_time and self.end_time:
            if hhmm_to_minutes(self.start_time) >= hhmm_to_minutes(self.end_time):
                raise ValueError("blocked range start must be before its end")
        return self

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None


class ScheduleRules(CamelDocument):
    operating_days: List[str] = Field(default_factory=list)
    start_time: str
    end_time: str
    slot_interval: int = Field(gt=0, description="Minutes between successive session starts")
    advance_booking: int = Field(default=0, ge=0, description="Minimum lead time in days")
    custom_hours_enabled: bool = False
    custom_hours: Dict[str, CustomHours] = Field(default_factory=dict)
    custom_dates: List[CustomDate] = Field(default_factory=list)
    blocked_dates: List[BlockedRange] = Field(default_factory=list)

    @field_validator("operating_days")
    @classmethod
    def _check_days(cls, value: List[str]) -> List[str]:
        normalized = [_normalize_weekday(day) for day in value]
        return [day for day in WEEKDAYS if day in normalized]

    @field_validator("custom_hours", mode="before")
    @classmethod
    def _check_custom_hour_keys(cls, value: object) -> object:
        if isinstance(value, dict):
            return {_normalize_weekday(str(key)): hours for key, hours in value.items()}
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _validate_hhmm(value)

    @field_validator("blocked_dates", mode="before")
    @classmethod
    def _coerce_blocked(cls, value: object) -> object:
        # Plain "YYYY-MM-DD" strings block the whole day
        if isinstance(value, list):
            return [
                {"date": item} if isinstance(item, (str, date)) else item for item in value
            ]
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "ScheduleRules":
        if hhmm_to_minutes(self.start_time) >= hhmm_to_minutes(self.end_time):
            raise ValueError(
                f"start time {self.start_time} must be before end time {self.end_time}"
            )
        return self

    @property
    def default_window(self) -> TimeWindow:
        return TimeWindow(start_time=self.start_time, end_time=self.end_time)

    def custom_date_for(self, day: date) -> Optional[CustomDate]:
        for custom in self.custom_dates:
            if custom.date == day:
                return custom
        return None

    def blocks_for(self, day: date) -> List[BlockedRange]:
        return [
            block
            for block in self.blocked_dates
            if block.date == day
        ]
