"""
Admin API (X-Admin-Key).

- PUT  /v1/admin/plans/{name}: update price/description/daily limits
- PUT  /v1/admin/users/{user_id}/subscription: change a user's plan or status
- POST /v1/admin/usage/{user_id}/reset: start today's counters over
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from interviewprep.core.auth import AdminActor, require_admin
from interviewprep.features.plans.service import update_plan
from interviewprep.features.usage.service import reset_today_usage
from interviewprep.features.users.service import update_user_subscription
from interviewprep.models.plan import Plan
from interviewprep.models.usage import UsageRecord
from interviewprep.models.user import User

logger = logging.getLogger("interviewprep")

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class PlanUpdateRequest(BaseModel):
    price: Optional[int] = None
    description: Optional[str] = None
    features: Optional[Dict[str, Any]] = None


class SubscriptionUpdateRequest(BaseModel):
    plan: Optional[str] = None
    status: Optional[str] = None


@router.put("/plans/{name}", response_model=Plan)
def admin_update_plan(name: str, body: PlanUpdateRequest, actor: AdminActor = Depends(require_admin)):
    plan = update_plan(name, price=body.price, description=body.description, features=body.features)
    logger.info("admin.plan_updated", extra={"actor": actor.actor_id, "plan": name})
    return plan


@router.put("/users/{user_id}/subscription", response_model=User)
def admin_update_subscription(user_id: int, body: SubscriptionUpdateRequest, actor: AdminActor = Depends(require_admin)):
    user = update_user_subscription(user_id, plan=body.plan, status=body.status)
    logger.info("admin.subscription_updated", extra={"actor": actor.actor_id, "target_user_id": user_id})
    return user


@router.post("/usage/{user_id}/reset", response_model=UsageRecord)
def admin_reset_usage(user_id: int, actor: AdminActor = Depends(require_admin)):
    record = reset_today_usage(user_id)
    logger.info("admin.usage_reset", extra={"actor": actor.actor_id, "target_user_id": user_id})
    return record
