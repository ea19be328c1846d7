# backend/bookingcore/schemas/session.py
"""Session and generation result schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel, StrictRequestModel


class SessionResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    activity_id: str
    venue_id: str
    start_time: datetime
    end_time: datetime
    capacity_total: int
    capacity_remaining: int
    price_at_generation: Decimal
    is_closed: bool


class AvailableSessionsResponse(StrictModel):
    activity_id: str
    start: datetime
    end: datetime
    sessions: List[SessionResponse]


class GenerateSessionsRequest(StrictRequestModel):
    horizon_days: Optional[int] = Field(None, gt=0, le=366)


class GenerationResult(StrictModel):
    """Outcome of one generate() run for a single activity."""

    activity_id: str
    resume_date: Optional[date] = None
    end_date: Optional[date] = None
    sessions_created: int = 0
    chunks_committed: int = 0
    skipped_reason: Optional[str] = None


class RollingWindowSummary(StrictModel):
    horizon_days: int
    results: Dict[str, GenerationResult] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def sessions_created(self) -> int:
        return sum(result.sessions_created for result in self.results.values())
