"""
User domain service.
- create_user(email, name, plan)
- get_user_by_id(user_id)
- update_user_subscription(user_id, plan, status)
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from interviewprep.core.database import get_db_session, users, subscription_plans, user_usage
from interviewprep.core.errors import ConflictError, NotFoundError, ValidationError
from interviewprep.core.retry import RetryPolicy, retry_with_backoff
from interviewprep.features.usage.clock import start_of_day
from interviewprep.models.user import User

logger = logging.getLogger(__name__)

USER_LOOKUP_POLICY = RetryPolicy(max_retries=3, initial_delay=0.3, max_delay=2.0)


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        subscription_plan=row.subscription_plan,
        subscription_status=row.subscription_status,
        created_at=row.created_at,
    )


def create_user(email: str, name: Optional[str] = None, plan: str = "free", now: Optional[datetime] = None) -> User:
    """Create a user together with its first (zeroed) usage record for today."""
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    now = now or datetime.now()
    with get_db_session() as session:
        if not session.execute(
            select(subscription_plans.c.id).where(subscription_plans.c.name == plan)
        ).first():
            raise NotFoundError(f"Plan {plan} not found")
        try:
            result = session.execute(
                insert(users).values(
                    email=email,
                    name=name,
                    subscription_plan=plan,
                    subscription_status="active",
                    created_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            session.execute(
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
            session.flush()
        except IntegrityError:
            raise ConflictError(f"User with email {email} already exists")

    logger.info("users.created", extra={"user_id": user_id, "plan": plan})
    return User(
        id=user_id,
        email=email,
        name=name,
        subscription_plan=plan,
        subscription_status="active",
        created_at=now,
    )


def _select_user(user_id: int) -> Optional[User]:
    with get_db_session() as session:
        row = session.execute(select(users).where(users.c.id == user_id)).first()
        return _row_to_user(row) if row else None


async def get_user_by_id(user_id: int) -> Optional[User]:
    """Retried user lookup. Returns None when absent or when the lookup fails."""

    async def _query() -> Optional[User]:
        return _select_user(user_id)

    def _on_retry(error: BaseException, attempt: int) -> None:
        logger.warning(f"Retry attempt {attempt} for get_user_by_id due to: {error}")

    try:
        return await retry_with_backoff(_query, policy=USER_LOOKUP_POLICY, on_retry=_on_retry)
    except Exception as e:
        logger.error(f"Error getting user by ID {user_id}: {e}")
        return None


def update_user_subscription(
    user_id: int,
    *,
    plan: Optional[str] = None,
    status: Optional[str] = None,
) -> User:
    """
    Change a user's plan and/or subscription status.

    Raises:
        NotFoundError: If the user or the plan does not exist
    """
    values = {}
    if plan is not None:
        values["subscription_plan"] = plan
    if status is not None:
        values["subscription_status"] = status

    with get_db_session() as session:
        if plan is not None and not session.execute(
            select(subscription_plans.c.id).where(subscription_plans.c.name == plan)
        ).first():
            raise NotFoundError(f"Plan {plan} not found")

        if values:
            session.execute(update(users).where(users.c.id == user_id).values(**values))

        row = session.execute(select(users).where(users.c.id == user_id)).first()
        if not row:
            raise NotFoundError(f"User {user_id} not found")

    logger.info("users.subscription_updated", extra={"user_id": user_id, **values})
    return _row_to_user(row)
