"""
interviewprep/features/plans/service.py

Subscription plan service.

Handles:
- Plan seeding (free, pro, premium)
- Plan lookup by name (retried, falls back to the free tier)
- Administrative plan updates
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy import select, insert, update

from interviewprep.core.config import settings
from interviewprep.core.database import get_db_session, subscription_plans
from interviewprep.core.errors import NotFoundError, ValidationError
from interviewprep.core.retry import RetryPolicy, retry_with_backoff
from interviewprep.models.plan import Plan, PlanFeatures


logger = logging.getLogger(__name__)


# Default plan configurations
DEFAULT_PLANS = {
    "free": {
        "price": 0,
        "description": "Free plan with limited features",
        "features": {"interviewsPerDay": 3, "resultsPerDay": 3, "retakesPerDay": 3},
    },
    "pro": {
        "price": 2000,
        "description": "Pro plan with advanced features",
        "features": {"interviewsPerDay": 50, "resultsPerDay": 50, "retakesPerDay": 50},
    },
    "premium": {
        "price": 5000,
        "description": "Premium plan with unlimited features",
        "features": {"interviewsPerDay": -1, "resultsPerDay": -1, "retakesPerDay": -1},
    },
}

# Plan lookups retry longer than other reads
PLAN_LOOKUP_POLICY = RetryPolicy(max_retries=5, initial_delay=0.5, max_delay=5.0)


def free_plan_fallback() -> Plan:
    """Hardcoded free tier used when the real plan cannot be resolved."""
    limit = settings.FREE_TIER_DAILY_LIMIT
    return Plan(
        id=0,
        name="free",
        price=0,
        features=PlanFeatures(
            interviews_per_day=limit,
            results_per_day=limit,
            retakes_per_day=limit,
        ),
    )


def _parse_features(raw: Optional[Dict[str, Any]]) -> PlanFeatures:
    cleaned = {k: v for k, v in (raw or {}).items() if v is not None}
    return PlanFeatures.model_validate(cleaned)


def _row_to_plan(row) -> Plan:
    return Plan(
        id=row.id,
        name=row.name,
        price=row.price,
        currency=row.currency,
        interval=row.interval,
        description=row.description,
        features=_parse_features(row.features),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def seed_plans() -> None:
    """
    Seed default plans into database (idempotent).

    Existing plans are left untouched so admin edits survive restarts.
    """
    now = datetime.now()
    with get_db_session() as session:
        for name, config in DEFAULT_PLANS.items():
            existing = session.execute(
                select(subscription_plans.c.id).where(subscription_plans.c.name == name)
            ).first()
            if existing:
                continue
            session.execute(
                insert(subscription_plans).values(
                    name=name,
                    price=config["price"],
                    description=config["description"],
                    features=config["features"],
                    created_at=now,
                )
            )
            logger.info("plans.seeded", extra={"plan": name})


def list_plans() -> List[Plan]:
    """All plans, cheapest first."""
    with get_db_session() as session:
        rows = session.execute(
            select(subscription_plans).order_by(subscription_plans.c.price.asc())
        ).all()
        return [_row_to_plan(row) for row in rows]


def _select_plan(name: str) -> Optional[Plan]:
    with get_db_session() as session:
        row = session.execute(
            select(subscription_plans).where(subscription_plans.c.name == name)
        ).first()
        return _row_to_plan(row) if row else None


async def get_plan_by_name(name: str) -> Optional[Plan]:
    """
    Get plan by name.

    Returns:
        The plan, or None if no plan has that name. When the lookup keeps
        failing the free fallback plan is returned instead of raising.
    """

    async def _query() -> Optional[Plan]:
        return _select_plan(name)

    def _on_retry(error: BaseException, attempt: int) -> None:
        logger.warning(f"Retry attempt {attempt} for get_plan_by_name due to: {error}")

    try:
        return await retry_with_backoff(_query, policy=PLAN_LOOKUP_POLICY, on_retry=_on_retry)
    except Exception as e:
        logger.error(f"Error getting subscription plan {name!r}, using free fallback: {e}")
        return free_plan_fallback()


def update_plan(
    name: str,
    *,
    price: Optional[int] = None,
    description: Optional[str] = None,
    features: Optional[Dict[str, Any]] = None,
) -> Plan:
    """
    Administrative plan update.

    Raises:
        NotFoundError: If no plan has that name
        ValidationError: If features carry an invalid limit
    """
    values: Dict[str, Any] = {"updated_at": datetime.now()}
    if price is not None:
        if price < 0:
            raise ValidationError("price must be non-negative")
        values["price"] = price
    if description is not None:
        values["description"] = description
    if features is not None:
        try:
            values["features"] = _parse_features(features).to_json()
        except ValueError as e:
            raise ValidationError(f"Invalid plan features: {e}")

    with get_db_session() as session:
        result = session.execute(
            update(subscription_plans)
            .where(subscription_plans.c.name == name)
            .values(**values)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Plan {name} not found")
        row = session.execute(
            select(subscription_plans).where(subscription_plans.c.name == name)
        ).first()
        logger.info("plans.updated", extra={"plan": name, "fields": sorted(values)})
        return _row_to_plan(row)
