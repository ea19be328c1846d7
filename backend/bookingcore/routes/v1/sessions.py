# backend/bookingcore/routes/v1/sessions.py
"""
Session routes - API v1

Generation, availability and open/close management of sessions.
All business logic delegated to SessionGenerationService and AvailabilityService.

Endpoints:
    POST /activities/{activity_id}/sessions/generate   → Extend the activity's sessions
    GET  /activities/{activity_id}/sessions/available  → Open sessions with seats left
    GET  /activities/{activity_id}/sessions/by-time    → Session starting at an instant
    POST /sessions/{session_id}/close                  → Remove a session from sale
    POST /sessions/{session_id}/reopen                 → Put a closed session back on sale
"""

import asyncio
from datetime import date, datetime
import logging
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies import (
    get_availability_service,
    get_organization_id,
    get_session_generation_service,
)
from ...core.exceptions import DomainException, SessionNotFoundException, ValidationException
from ...schemas.session import (
    AvailableSessionsResponse,
    GenerateSessionsRequest,
    GenerationResult,
    SessionResponse,
)
from ...services.availability_service import AvailabilityService
from ...services.session_generation_service import SessionGenerationService
from ..errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])


def parse_window_bound(value: str, name: str) -> Union[date, datetime]:
    """``YYYY-MM-DD`` is a venue-local date; anything longer is an ISO-8601 instant."""
    candidate = value.strip()
    try:
        if len(candidate) == 10:
            return date.fromisoformat(candidate)
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        return datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationException(
            f"{name} must be an ISO date or datetime",
            code="INVALID_WINDOW",
            details={name: value},
        ) from exc


@router.post(
    "/activities/{activity_id}/sessions/generate",
    response_model=GenerationResult,
    status_code=status.HTTP_201_CREATED,
)
async def generate_sessions(
    activity_id: str,
    payload: Optional[GenerateSessionsRequest] = Body(None),
    _organization_id: str = Depends(get_organization_id),
    service: SessionGenerationService = Depends(get_session_generation_service),
) -> GenerationResult:
    """Generate the next horizon_days of sessions from the resume date."""
    horizon = payload.horizon_days if payload else None
    try:
        return await asyncio.to_thread(service.generate, activity_id, horizon)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/activities/{activity_id}/sessions/available",
    response_model=AvailableSessionsResponse,
)
async def list_available_sessions(
    activity_id: str,
    start: str = Query(..., description="Window start: venue-local date or ISO instant"),
    end: str = Query(..., description="Window end: venue-local date (inclusive) or ISO instant"),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailableSessionsResponse:
    """Open sessions with remaining capacity overlapping the window."""
    try:
        start_bound = parse_window_bound(start, "start")
        end_bound = parse_window_bound(end, "end")
        window_start, window_end = await asyncio.to_thread(
            service.resolve_activity_window, activity_id, start_bound, end_bound
        )
        sessions = await asyncio.to_thread(
            service.list_available, activity_id, window_start, window_end
        )
    except DomainException as e:
        handle_domain_exception(e)

    return AvailableSessionsResponse(
        activity_id=activity_id,
        start=window_start,
        end=window_end,
        sessions=[SessionResponse.model_validate(s) for s in sessions],
    )


@router.get(
    "/activities/{activity_id}/sessions/by-time",
    response_model=SessionResponse,
)
async def get_session_by_time(
    activity_id: str,
    start_time: Optional[datetime] = Query(None, description="Exact UTC start instant"),
    local_date: Optional[date] = Query(None, description="Venue-local date"),
    local_time: Optional[str] = Query(None, description="Venue-local HH:MM"),
    service: AvailabilityService = Depends(get_availability_service),
) -> SessionResponse:
    """Look a session up by instant, or by venue wall clock (local_date + local_time)."""
    try:
        if start_time is not None:
            session = await asyncio.to_thread(service.get_session_by_time, activity_id, start_time)
        elif local_date is not None and local_time is not None:
            session = await asyncio.to_thread(
                service.find_session_for_local_slot, activity_id, local_date, local_time
            )
        else:
            raise ValidationException(
                "Provide start_time, or local_date and local_time",
                code="INVALID_SLOT_QUERY",
            )
        if session is None:
            raise SessionNotFoundException(f"{activity_id}@{start_time or local_date}")
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/close", response_model=SessionResponse)
async def close_session(
    session_id: str,
    organization_id: str = Depends(get_organization_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(service.close_session, session_id, organization_id)
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/reopen", response_model=SessionResponse)
async def reopen_session(
    session_id: str,
    organization_id: str = Depends(get_organization_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(service.reopen_session, session_id, organization_id)
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.model_validate(session)
