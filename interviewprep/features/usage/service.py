"""
interviewprep/features/usage/service.py

Daily usage quota gate.

Handles:
- Lazy creation of today's usage record
- Allow/deny decisions against the user's plan (strict current < limit)
- Counter increments after a gated action succeeds
- Admin reset (supersedes today's record with a zeroed one)

Quota checks fail open: when users, plans or usage cannot be read the user is
allowed through and the fallback is logged. Each fallback is spelled out at
the point where it is taken.

check-then-increment is two round trips; concurrent requests for the same
user can both pass the check and overshoot the limit by one. Callers that need
strict enforcement use consume_if_allowed, a single conditional UPDATE.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union
from sqlalchemy import select, insert, update

from interviewprep.core.database import get_db_session, user_usage, users
from interviewprep.core.errors import NotFoundError, ValidationError
from interviewprep.core.retry import RetryPolicy, retry_with_backoff
from interviewprep.features.plans.service import free_plan_fallback, get_plan_by_name
from interviewprep.features.usage.clock import local_now, start_of_day
from interviewprep.features.users.service import get_user_by_id
from interviewprep.models.plan import Plan, UNLIMITED
from interviewprep.models.usage import ActionStatus, ActionType, UsageRecord, UsageSnapshot
from interviewprep.models.user import User


logger = logging.getLogger(__name__)

USAGE_POLICY = RetryPolicy(max_retries=3, initial_delay=0.3, max_delay=2.0)


def parse_action(action_type: Union[ActionType, str]) -> ActionType:
    """Coerce a raw action name; unknown names are a caller error."""
    if isinstance(action_type, ActionType):
        return action_type
    try:
        return ActionType(action_type)
    except ValueError:
        raise ValidationError(f"Invalid usage type: {action_type}")


def _row_to_record(row) -> UsageRecord:
    return UsageRecord(
        id=row.id,
        user_id=row.user_id,
        date=row.date,
        interviews_used=row.interviews_used or 0,
        results_viewed=row.results_viewed or 0,
        retakes_done=row.retakes_done or 0,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _insert_zeroed(session, user_id: int, now: datetime) -> UsageRecord:
    result = session.execute(
        insert(user_usage).values(
            user_id=user_id,
            date=start_of_day(now),
            interviews_used=0,
            results_viewed=0,
            retakes_done=0,
            created_at=now,
            updated_at=now,
        )
    )
    return UsageRecord(
        id=result.inserted_primary_key[0],
        user_id=user_id,
        date=start_of_day(now),
        created_at=now,
        updated_at=now,
    )


def _fetch_or_create_today(user_id: int, now: datetime) -> UsageRecord:
    with get_db_session() as session:
        row = session.execute(
            select(user_usage)
            .where(user_usage.c.user_id == user_id)
            .where(user_usage.c.date >= start_of_day(now))
            .order_by(user_usage.c.date.desc(), user_usage.c.id.desc())
            .limit(1)
        ).first()
        if row:
            return _row_to_record(row)
        return _insert_zeroed(session, user_id, now)


def _increment_counter(record_id: int, action: ActionType, now: datetime) -> UsageRecord:
    column = user_usage.c[action.counter]
    with get_db_session() as session:
        result = session.execute(
            update(user_usage)
            .where(user_usage.c.id == record_id)
            .values({column: column + 1, user_usage.c.updated_at: now})
        )
        if result.rowcount == 0:
            raise LookupError("No rows updated")
        row = session.execute(select(user_usage).where(user_usage.c.id == record_id)).first()
        return _row_to_record(row)


def _log_retry(operation: str):
    def _on_retry(error: BaseException, attempt: int) -> None:
        logger.warning(f"Retry attempt {attempt} for {operation} due to: {error}")
    return _on_retry


async def get_or_create_today_usage(user_id: int, now: Optional[datetime] = None) -> UsageRecord:
    """
    Get today's usage record, creating a zeroed one if none exists.

    Args:
        user_id: User to look up
        now: Fixed timestamp for deterministic queries (defaults to local now)

    Returns:
        Today's UsageRecord, or a synthetic zeroed record (id=0) if the
        store could not be read.
    """
    now = now or local_now()

    async def _query() -> UsageRecord:
        return _fetch_or_create_today(user_id, now)

    try:
        return await retry_with_backoff(_query, policy=USAGE_POLICY, on_retry=_log_retry("get_or_create_today_usage"))
    except Exception as e:
        logger.error(f"Error getting user usage for today, treating as unused: {e}", extra={"user_id": user_id})
        return UsageRecord.empty(user_id, now)


async def increment_usage(
    user_id: int,
    action_type: Union[ActionType, str],
    now: Optional[datetime] = None,
) -> UsageRecord:
    """
    Add one unit of `action_type` to today's record.

    Exactly one row (today's record for the user) is touched. Bookkeeping
    failures never reach the caller: a synthetic zeroed record comes back.

    Raises:
        ValidationError: If action_type is unknown
    """
    action = parse_action(action_type)
    now = now or local_now()

    usage = await get_or_create_today_usage(user_id, now)
    if usage.is_synthetic:
        logger.error("Could not find or create usage record for today", extra={"user_id": user_id})
        return UsageRecord.empty(user_id, now)

    try:
        return _increment_counter(usage.id, action, now)
    except Exception as e:
        logger.error(f"Error incrementing user usage: {e}", extra={"user_id": user_id, "action": action.value})
        return UsageRecord.empty(user_id, now)


async def _resolve_plan(user: User) -> Plan:
    try:
        plan = await get_plan_by_name(user.plan_name)
    except Exception as e:
        logger.error(f"Error getting subscription plan for {user.plan_name}: {e}")
        return free_plan_fallback()
    if plan is None:
        logger.warning(f"Plan not found for: {user.plan_name}, defaulting to free plan")
        return free_plan_fallback()
    return plan


def _fallback_status(action: ActionType, error: Optional[str] = None) -> ActionStatus:
    plan = free_plan_fallback()
    return ActionStatus(
        allowed=True,
        plan=plan.name,
        usage=UsageSnapshot(current=0, limit=plan.features.limit_for(action)),
        error=error,
    )


async def _decide(
    user_id: int,
    action: ActionType,
    now: datetime,
    *,
    usage_for_premium: bool = False,
) -> ActionStatus:
    user = await get_user_by_id(user_id)
    if user is None:
        logger.warning(f"User not found for ID: {user_id}, allowing action", extra={"action": action.value})
        return _fallback_status(action)

    plan = await _resolve_plan(user)
    if plan.is_premium:
        current = 0
        if usage_for_premium:
            current = (await get_or_create_today_usage(user_id, now)).count_for(action)
        return ActionStatus(allowed=True, plan=user.plan_name, usage=UsageSnapshot(current=current, limit="unlimited"))

    usage = await get_or_create_today_usage(user_id, now)
    current = usage.count_for(action)
    limit = plan.features.limit_for(action)

    if limit == UNLIMITED:
        return ActionStatus(allowed=True, plan=user.plan_name, usage=UsageSnapshot(current=current, limit="unlimited"))

    return ActionStatus(
        allowed=current < limit,
        plan=user.plan_name,
        usage=UsageSnapshot(current=current, limit=limit),
    )


async def can_perform_action(
    user_id: int,
    action_type: Union[ActionType, str],
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether the user may perform one more `action_type` today.

    Premium plans and -1 limits always pass; otherwise current < limit.
    Unknown users and any lookup failure allow the action.

    Raises:
        ValidationError: If action_type is unknown
    """
    action = parse_action(action_type)
    now = now or local_now()
    try:
        status = await _decide(user_id, action, now)
    except Exception as e:
        logger.error(f"Error checking if user can perform action, allowing: {e}", extra={"user_id": user_id})
        return True
    return status.allowed


async def get_action_status(
    user_id: int,
    action_type: Union[ActionType, str],
    now: Optional[datetime] = None,
) -> ActionStatus:
    """Allow/deny decision plus plan name and usage numbers for an upgrade prompt."""
    action = parse_action(action_type)
    now = now or local_now()
    try:
        return await _decide(user_id, action, now, usage_for_premium=True)
    except Exception as e:
        logger.error(f"Error checking usage limits for user {user_id}: {e}")
        return _fallback_status(action, "Error checking usage limits, defaulting to allowed")


async def increment_usage_action(
    user_id: Optional[int],
    action_type: Optional[str],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Caller-facing increment: validates inputs and the user before counting."""
    if not user_id or not action_type:
        return {"success": False, "error": "Missing required parameters"}
    try:
        action = parse_action(action_type)
    except ValidationError as e:
        return {"success": False, "error": e.message}

    user = await get_user_by_id(user_id)
    if user is None:
        return {"success": False, "error": "User not found"}

    record = await increment_usage(user_id, action, now)
    return {"success": True, "usage": record}


def reset_today_usage(user_id: int, now: Optional[datetime] = None) -> UsageRecord:
    """
    Admin reset: store a fresh zeroed record for today.

    The old record is kept; the new one supersedes it as the most recent.
    Errors propagate.

    Raises:
        NotFoundError: If the user does not exist
    """
    now = now or local_now()
    with get_db_session() as session:
        if not session.execute(select(users.c.id).where(users.c.id == user_id)).first():
            raise NotFoundError(f"User {user_id} not found")
        record = _insert_zeroed(session, user_id, now)
    logger.info("usage.reset", extra={"user_id": user_id, "usage_id": record.id})
    return record


def _conditional_increment(record_id: int, action: ActionType, limit: Optional[int], now: datetime) -> bool:
    column = user_usage.c[action.counter]
    stmt = update(user_usage).where(user_usage.c.id == record_id)
    if limit is not None:
        stmt = stmt.where(column < limit)
    with get_db_session() as session:
        result = session.execute(stmt.values({column: column + 1, user_usage.c.updated_at: now}))
        return result.rowcount == 1


async def consume_if_allowed(
    user_id: int,
    action_type: Union[ActionType, str],
    now: Optional[datetime] = None,
) -> bool:
    """
    Check and count in one statement (UPDATE ... WHERE counter < limit).

    Returns True when a unit was consumed (or when the check fails open),
    False when the user is at the limit.
    """
    action = parse_action(action_type)
    now = now or local_now()
    try:
        user = await get_user_by_id(user_id)
        if user is None:
            logger.warning(f"User not found for ID: {user_id}, allowing action", extra={"action": action.value})
            return True

        plan = await _resolve_plan(user)
        limit = plan.features.limit_for(action)
        if plan.is_premium or limit == UNLIMITED:
            limit = None

        usage = await get_or_create_today_usage(user_id, now)
        if usage.is_synthetic:
            return True

        async def _update() -> bool:
            return _conditional_increment(usage.id, action, limit, now)

        return await retry_with_backoff(_update, policy=USAGE_POLICY, on_retry=_log_retry("consume_if_allowed"))
    except Exception as e:
        logger.error(f"Error consuming usage, allowing: {e}", extra={"user_id": user_id})
        return True
