# backend/bookingcore/schemas/activity.py
"""
Activity request/response schemas.

ActivityUpdate is a closed update type: only the fields declared here may be
changed, and unknown keys are rejected rather than merged.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel
from .schedule import ScheduleRules

ActivityStatusLiteral = Literal["active", "inactive", "maintenance"]

# Changing any of these alters what the generator will emit from now on
GENERATION_FIELDS = frozenset({"capacity", "price", "schedule", "status"})


class ActivityCreate(StrictRequestModel):
    organization_id: str = Field(..., min_length=1)
    venue_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    duration_minutes: int = Field(60, gt=0, le=24 * 60)
    capacity: int = Field(..., gt=0)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    status: ActivityStatusLiteral = "active"
    schedule: Optional[ScheduleRules] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class ActivityUpdate(StrictRequestModel):
    """Fields an operator may change on an existing activity."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    capacity: Optional[int] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: Optional[ActivityStatusLiteral] = None
    schedule: Optional[ScheduleRules] = None


class ActivityUpdateResult(StrictModel):
    activity_id: str
    changed_fields: List[str]
    affects_future_sessions: bool


class ActivityResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    organization_id: str
    venue_id: str
    name: str
    duration_minutes: int
    capacity: int
    price: Decimal
    status: str
    created_at: datetime
