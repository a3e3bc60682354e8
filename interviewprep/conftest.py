# interviewprep/conftest.py
import os
from datetime import datetime

import pytest

os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "test")

TEST_DB_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture(scope="function", autouse=True)
def fresh_db():
    """
    Give every test its own in-memory database with the default plans seeded.
    """
    from interviewprep.core.database import init_engine, create_all_tables, drop_all_tables
    from interviewprep.features.plans.service import seed_plans

    init_engine(TEST_DB_URL)
    create_all_tables()
    seed_plans()
    yield
    drop_all_tables()


@pytest.fixture
def now():
    """Fixed mid-afternoon timestamp so day boundaries are deterministic."""
    return datetime(2026, 10, 19, 14, 30, 0)


@pytest.fixture
def make_user(now):
    """Factory creating a user on the given plan."""
    from interviewprep.features.users.service import create_user

    counter = {"n": 0}

    def _make(plan: str = "free", email: str = None):
        counter["n"] += 1
        return create_user(email or f"user{counter['n']}@example.com", name="Test User", plan=plan, now=now)

    return _make


@pytest.fixture
def set_usage():
    """Overwrite today's counters for a user (latest record)."""
    from sqlalchemy import select, update
    from interviewprep.core.database import get_db_session, user_usage

    def _set(user_id: int, **counters):
        with get_db_session() as session:
            row = session.execute(
                select(user_usage.c.id)
                .where(user_usage.c.user_id == user_id)
                .order_by(user_usage.c.date.desc(), user_usage.c.id.desc())
                .limit(1)
            ).first()
            session.execute(update(user_usage).where(user_usage.c.id == row.id).values(**counters))

    return _set


@pytest.fixture
def recorded_sleep():
    """Async sleep stand-in that records requested delays instead of waiting."""
    delays = []

    async def _sleep(seconds: float):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
