"""
Tests for the retry strategies (classified backoff vs unconditional).
"""
import random

import pytest
from sqlalchemy import text

from interviewprep.core.retry import (
    ClassifiedBackoffRetry,
    RetryPolicy,
    UnconditionalBackoffRetry,
    execute_with_retry,
    is_retryable_error,
    retry_with_backoff,
)


class FlakyOperation:
    """Fails with the given errors in order, then returns `result`."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.mark.parametrize(
    "message",
    [
        "Too Many Requests",
        "HTTP 429 from upstream",
        "rate limit exceeded",
        "Unexpected token 'T', \"Too many r\"... is not valid JSON",
    ],
)
def test_rate_limit_messages_are_retryable(message):
    assert is_retryable_error(RuntimeError(message)) is True


@pytest.mark.parametrize(
    "message",
    [
        "Not Found",
        "duplicate key value violates unique constraint",
        "",
        # Markers are case-sensitive
        "sorry, too many clients already",
        "Rate Limit reached for this key",
        "Unexpected token 't' in JSON at position 0",
    ],
)
def test_other_messages_are_not_retryable(message):
    assert is_retryable_error(RuntimeError(message)) is False


@pytest.mark.asyncio
async def test_succeeds_after_two_rate_limit_failures(recorded_sleep):
    op = FlakyOperation([RuntimeError("Too Many Requests"), RuntimeError("429")], result=42)
    seen = []

    result = await retry_with_backoff(
        op,
        max_retries=3,
        initial_delay=0.3,
        max_delay=3.0,
        factor=2,
        on_retry=lambda error, attempt: seen.append((str(error), attempt)),
        sleep=recorded_sleep,
    )

    assert result == 42
    assert op.calls == 3
    assert [attempt for _, attempt in seen] == [1, 2]
    assert sum(recorded_sleep.delays) >= 0.3 + 0.3 * 2


@pytest.mark.asyncio
async def test_non_retryable_error_is_raised_immediately(recorded_sleep):
    op = FlakyOperation([RuntimeError("Not Found")])
    seen = []

    with pytest.raises(RuntimeError, match="Not Found"):
        await retry_with_backoff(op, on_retry=lambda e, a: seen.append(a), sleep=recorded_sleep)

    assert op.calls == 1
    assert seen == []
    assert recorded_sleep.delays == []


@pytest.mark.asyncio
async def test_always_failing_operation_runs_max_retries_times(recorded_sleep):
    error = RuntimeError("Too Many Requests")
    calls = []

    async def op():
        calls.append(1)
        raise error

    with pytest.raises(RuntimeError) as exc_info:
        await retry_with_backoff(op, max_retries=3, sleep=recorded_sleep)

    assert exc_info.value is error
    assert len(calls) == 3
    assert len(recorded_sleep.delays) == 2


@pytest.mark.asyncio
async def test_delay_grows_by_factor_and_caps_at_max_delay(recorded_sleep):
    op = FlakyOperation([RuntimeError("429")] * 5)
    policy = RetryPolicy(max_retries=6, initial_delay=0.5, max_delay=2.0, factor=2.0)

    await ClassifiedBackoffRetry(policy, sleep=recorded_sleep, rng=random.Random(7)).run(op)

    bases = [1.0, 2.0, 2.0, 2.0, 2.0]
    assert len(recorded_sleep.delays) == len(bases)
    for waited, base in zip(recorded_sleep.delays, bases):
        assert base <= waited < base * 1.1


@pytest.mark.asyncio
async def test_success_on_first_attempt_never_sleeps(recorded_sleep):
    op = FlakyOperation([], result="fine")
    assert await retry_with_backoff(op, sleep=recorded_sleep) == "fine"
    assert op.calls == 1
    assert recorded_sleep.delays == []


def test_policy_from_settings_applies_overrides():
    policy = RetryPolicy.from_settings(max_retries=5)
    assert policy.max_retries == 5
    assert policy.factor == 2.0
    assert policy.next_delay(policy.max_delay) == policy.max_delay


@pytest.mark.asyncio
async def test_execute_with_retry_retries_any_error(tmp_path, recorded_sleep):
    url = f"sqlite:///{tmp_path / 'retry.db'}"
    attempts = []

    def query_fn(conn):
        attempts.append(conn)
        if len(attempts) < 3:
            raise RuntimeError("connection reset by peer")
        return conn.execute(text("SELECT 7")).scalar()

    result = await execute_with_retry(url, query_fn, retries=3, delay=1.0, sleep=recorded_sleep)

    assert result == 7
    assert len(attempts) == 3
    # A fresh connection per attempt
    assert len({id(c) for c in attempts}) == 3
    assert recorded_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_execute_with_retry_gives_up_after_retries(tmp_path, recorded_sleep):
    url = f"sqlite:///{tmp_path / 'retry.db'}"
    calls = []

    def query_fn(conn):
        calls.append(1)
        raise RuntimeError("Not Found")

    with pytest.raises(RuntimeError, match="Not Found"):
        await execute_with_retry(url, query_fn, retries=2, delay=0.5, sleep=recorded_sleep)

    assert len(calls) == 3
    assert recorded_sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_execute_with_retry_awaits_async_query_fn(tmp_path, recorded_sleep):
    url = f"sqlite:///{tmp_path / 'retry.db'}"

    async def query_fn(conn):
        return conn.execute(text("SELECT 'hi'")).scalar()

    strategy = UnconditionalBackoffRetry(retries=0, sleep=recorded_sleep)
    assert await strategy.run(url, query_fn) == "hi"
