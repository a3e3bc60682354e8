"""
Usage quota API.

- GET  /v1/usage/today: today's counters for the caller
- GET  /v1/usage/actions/{action}: allow/deny decision with plan and usage numbers
- POST /v1/usage/actions/{action}/increment: count one unit after a gated action
"""
from fastapi import APIRouter, Depends

from interviewprep.core.auth import get_current_user_id
from interviewprep.features.usage.service import (
    get_action_status,
    get_or_create_today_usage,
    increment_usage_action,
)
from interviewprep.models.usage import ActionStatus, UsageRecord

router = APIRouter(prefix="/v1/usage", tags=["usage"])


@router.get("/today", response_model=UsageRecord)
async def today_usage(user_id: int = Depends(get_current_user_id)):
    return await get_or_create_today_usage(user_id)


@router.get("/actions/{action}", response_model=ActionStatus)
async def action_status(action: str, user_id: int = Depends(get_current_user_id)):
    return await get_action_status(user_id, action)


@router.post("/actions/{action}/increment")
async def increment_action(action: str, user_id: int = Depends(get_current_user_id)):
    return await increment_usage_action(user_id, action)
