"""
Tests for plan seeding, lookup and admin updates.
"""
import pytest

from interviewprep.core.errors import NotFoundError, ValidationError
from interviewprep.features.plans.service import (
    free_plan_fallback,
    get_plan_by_name,
    list_plans,
    seed_plans,
    update_plan,
)
from interviewprep.models.usage import ActionType


def test_seeded_plans_are_listed_cheapest_first():
    plans = list_plans()
    assert [p.name for p in plans] == ["free", "pro", "premium"]
    assert [p.price for p in plans] == [0, 2000, 5000]


def test_seed_is_idempotent_and_keeps_admin_edits():
    update_plan("pro", price=2500)
    seed_plans()
    seed_plans()

    plans = list_plans()
    assert len(plans) == 3
    assert next(p for p in plans if p.name == "pro").price == 2500


@pytest.mark.asyncio
async def test_get_plan_by_name_reads_features():
    pro = await get_plan_by_name("pro")
    assert pro.features.interviews_per_day == 50
    assert pro.features.results_per_day == 50
    assert not pro.is_premium

    premium = await get_plan_by_name("premium")
    assert premium.is_premium
    assert premium.features.retakes_per_day == -1


@pytest.mark.asyncio
async def test_get_unknown_plan_returns_none():
    assert await get_plan_by_name("enterprise") is None


@pytest.mark.asyncio
async def test_lookup_failure_returns_free_fallback(monkeypatch):
    def boom(name):
        raise RuntimeError("could not connect to server")

    monkeypatch.setattr("interviewprep.features.plans.service._select_plan", boom)

    plan = await get_plan_by_name("premium")
    assert plan == free_plan_fallback()
    assert plan.name == "free"
    assert plan.features.limit_for(ActionType.INTERVIEWS) == 3


def test_update_plan_changes_limits():
    plan = update_plan("free", features={"interviewsPerDay": 5, "resultsPerDay": 4, "retakesPerDay": 1})
    assert plan.features.interviews_per_day == 5
    assert plan.features.retakes_per_day == 1
    assert plan.updated_at is not None


def test_update_plan_rejects_bad_input():
    with pytest.raises(NotFoundError):
        update_plan("enterprise", price=10)
    with pytest.raises(ValidationError):
        update_plan("free", price=-1)
    with pytest.raises(ValidationError):
        update_plan("free", features={"interviewsPerDay": -5})
