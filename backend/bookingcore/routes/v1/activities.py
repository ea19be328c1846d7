# backend/bookingcore/routes/v1/activities.py
"""
Activity routes - API v1

Endpoints:
    POST  /                 → Create an activity
    GET   /{activity_id}    → Activity details
    PATCH /{activity_id}    → Apply an explicit update
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_activity_service, get_organization_id
from ...core.exceptions import ActivityNotFoundException, DomainException
from ...schemas.activity import (
    ActivityCreate,
    ActivityResponse,
    ActivityUpdate,
    ActivityUpdateResult,
)
from ...services.activity_service import ActivityService
from ..errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["activities-v1"])


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    activity_data: ActivityCreate,
    activity_service: ActivityService = Depends(get_activity_service),
) -> ActivityResponse:
    try:
        activity = await asyncio.to_thread(activity_service.create_activity, activity_data)
    except DomainException as e:
        handle_domain_exception(e)
    return ActivityResponse.model_validate(activity)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: str,
    organization_id: str = Depends(get_organization_id),
    activity_service: ActivityService = Depends(get_activity_service),
) -> ActivityResponse:
    try:
        activity = await asyncio.to_thread(activity_service.get_activity, activity_id)
        if activity.organization_id != organization_id:
            raise ActivityNotFoundException(activity_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ActivityResponse.model_validate(activity)


@router.patch("/{activity_id}", response_model=ActivityUpdateResult)
async def update_activity(
    activity_id: str,
    update_data: ActivityUpdate,
    organization_id: str = Depends(get_organization_id),
    activity_service: ActivityService = Depends(get_activity_service),
) -> ActivityUpdateResult:
    """Unknown fields are rejected; the result lists what actually changed."""
    try:
        activity = await asyncio.to_thread(activity_service.get_activity, activity_id)
        if activity.organization_id != organization_id:
            raise ActivityNotFoundException(activity_id)
        return await asyncio.to_thread(
            activity_service.update_activity, activity_id, update_data
        )
    except DomainException as e:
        handle_domain_exception(e)
