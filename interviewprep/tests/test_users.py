import pytest

from interviewprep.core.errors import ConflictError, NotFoundError, ValidationError
from interviewprep.features.usage.service import get_or_create_today_usage
from interviewprep.features.users.service import create_user, get_user_by_id, update_user_subscription


@pytest.mark.asyncio
async def test_create_user_starts_with_zeroed_usage(now):
    user = create_user("Ada@Example.com", name="Ada", now=now)

    assert user.email == "ada@example.com"
    assert user.plan_name == "free"
    assert user.subscription_status == "active"

    usage = await get_or_create_today_usage(user.id, now)
    assert not usage.is_synthetic
    assert usage.date == now.replace(hour=0, minute=0, second=0)
    assert (usage.interviews_used, usage.results_viewed, usage.retakes_done) == (0, 0, 0)


def test_create_user_validation(make_user):
    with pytest.raises(ValidationError):
        create_user("not-an-email")
    with pytest.raises(NotFoundError):
        create_user("x@example.com", plan="enterprise")

    make_user(email="dup@example.com")
    with pytest.raises(ConflictError):
        create_user("dup@example.com")


@pytest.mark.asyncio
async def test_get_user_by_id(make_user):
    user = make_user("pro")
    fetched = await get_user_by_id(user.id)
    assert fetched.id == user.id
    assert fetched.subscription_plan == "pro"
    assert await get_user_by_id(12345) is None


@pytest.mark.asyncio
async def test_get_user_by_id_swallows_store_errors(monkeypatch):
    def boom(user_id):
        raise RuntimeError("server closed the connection unexpectedly")

    monkeypatch.setattr("interviewprep.features.users.service._select_user", boom)
    assert await get_user_by_id(1) is None


def test_update_user_subscription(make_user):
    user = make_user("free")

    updated = update_user_subscription(user.id, plan="premium", status="active")
    assert updated.subscription_plan == "premium"

    cancelled = update_user_subscription(user.id, status="cancelled")
    assert cancelled.subscription_plan == "premium"
    assert cancelled.subscription_status == "cancelled"

    with pytest.raises(NotFoundError):
        update_user_subscription(user.id, plan="enterprise")
    with pytest.raises(NotFoundError):
        update_user_subscription(999, plan="pro")
