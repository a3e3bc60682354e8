"""Subscription plan API (read-only for users)."""
from typing import List

from fastapi import APIRouter

from interviewprep.core.errors import NotFoundError
from interviewprep.features.plans.service import list_plans, get_plan_by_name
from interviewprep.models.plan import Plan

router = APIRouter(prefix="/v1/plans", tags=["plans"])


@router.get("", response_model=List[Plan])
def get_plans():
    return list_plans()


@router.get("/{name}", response_model=Plan)
async def get_plan(name: str):
    plan = await get_plan_by_name(name)
    if plan is None:
        raise NotFoundError(f"Plan {name} not found")
    return plan
