"""
Retry helpers for remote calls (database queries, external APIs).

Two strategies:

- ClassifiedBackoffRetry (`retry_with_backoff`): retries only errors whose
  message looks like rate limiting/throttling, with capped exponential
  backoff and jitter. Anything else is re-raised at once.
- UnconditionalBackoffRetry (`execute_with_retry`): builds a fresh engine from
  a connection string on every attempt and retries any error, doubling the
  delay each time, without jitter.

Neither strategy deduplicates work: operations must be safe to repeat.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.engine import Connection

from interviewprep.core.config import settings
from interviewprep.core.database import build_engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]
OnRetry = Callable[[BaseException, int], None]

# Case-sensitive substrings that mark an error as transient rate limiting.
# "Unexpected token 'T'" is what a "Too Many Requests" page looks like
# once a client tries to parse it as JSON.
RETRYABLE_MARKERS = (
    "Too Many",
    "429",
    "rate limit",
    "Unexpected token 'T'",
)

JITTER_RATIO = 0.1


def is_retryable_error(error: BaseException) -> bool:
    """Return True when the error message indicates rate limiting."""
    message = str(error)
    return any(marker in message for marker in RETRYABLE_MARKERS)


def _noop_on_retry(error: BaseException, attempt: int) -> None:
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 0.3
    max_delay: float = 3.0
    factor: float = 2.0
    on_retry: OnRetry = _noop_on_retry

    @classmethod
    def from_settings(cls, **overrides: Any) -> "RetryPolicy":
        policy = cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            factor=settings.RETRY_FACTOR,
        )
        return replace(policy, **overrides) if overrides else policy

    def next_delay(self, delay: float) -> float:
        return min(delay * self.factor, self.max_delay)


class ClassifiedBackoffRetry:
    """Retry rate-limit classified failures with capped exponential backoff."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Optional[Sleep] = None,
        rng: Optional[random.Random] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def _jitter(self, delay: float) -> float:
        return self._rng.random() * JITTER_RATIO * delay

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        policy = self.policy
        attempt = 0
        delay = policy.initial_delay

        while True:
            try:
                return await operation()
            except Exception as exc:
                attempt += 1
                if attempt >= policy.max_retries:
                    raise
                if not is_retryable_error(exc):
                    raise

                policy.on_retry(exc, attempt)
                delay = policy.next_delay(delay)
                wait = delay + self._jitter(delay)
                logger.warning(
                    "retry.backoff",
                    extra={"attempt": attempt, "max_retries": policy.max_retries, "wait_seconds": round(wait, 3), "error": str(exc)[:200]},
                )
                await self._sleep(wait)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: Optional[RetryPolicy] = None,
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    factor: Optional[float] = None,
    on_retry: Optional[OnRetry] = None,
    sleep: Optional[Sleep] = None,
) -> T:
    """
    Run `operation` retrying rate-limit errors with exponential backoff.

    Args:
        operation: Zero-argument coroutine function performing the remote call
        policy: Base policy (defaults to RetryPolicy())
        max_retries: Maximum number of invocations of `operation`
        initial_delay: Starting delay in seconds
        max_delay: Ceiling for a single delay in seconds
        factor: Multiplicative growth of the delay
        on_retry: Observer called with (error, attempt) before each sleep
        sleep: Awaitable sleep function (defaults to asyncio.sleep)

    Returns:
        Whatever `operation` returns on its first successful invocation

    Raises:
        The original error when it is not retryable or retries are exhausted
    """
    overrides = {
        key: value
        for key, value in {
            "max_retries": max_retries,
            "initial_delay": initial_delay,
            "max_delay": max_delay,
            "factor": factor,
            "on_retry": on_retry,
        }.items()
        if value is not None
    }
    base = policy or RetryPolicy()
    effective = replace(base, **overrides) if overrides else base
    return await ClassifiedBackoffRetry(effective, sleep=sleep).run(operation)


class UnconditionalBackoffRetry:
    """Retry any failure, doubling the delay each time, on a fresh engine per attempt."""

    def __init__(self, retries: int = 3, delay: float = 1.0, *, sleep: Optional[Sleep] = None):
        self.retries = retries
        self.delay = delay
        self._sleep = sleep or asyncio.sleep

    async def _attempt(self, connection_string: str, query_fn: Callable[[Connection], Any]) -> Any:
        engine = build_engine(connection_string)
        try:
            with engine.connect() as conn:
                result = query_fn(conn)
                if inspect.isawaitable(result):
                    result = await result
                conn.commit()
                return result
        finally:
            engine.dispose()

    async def run(self, connection_string: str, query_fn: Callable[[Connection], Any]) -> Any:
        remaining = self.retries
        delay = self.delay
        while True:
            try:
                return await self._attempt(connection_string, query_fn)
            except Exception:
                if remaining <= 0:
                    logger.error("Database operation failed after maximum retries", exc_info=True)
                    raise
                logger.warning(
                    f"Database operation failed, retrying... ({self.retries - remaining + 1}/{self.retries})"
                )
                await self._sleep(delay)
                remaining -= 1
                delay *= 2


async def execute_with_retry(
    connection_string: str,
    query_fn: Callable[[Connection], Any],
    retries: Optional[int] = None,
    delay: Optional[float] = None,
    *,
    sleep: Optional[Sleep] = None,
) -> Any:
    """
    Run `query_fn(connection)` against a fresh engine, retrying on any error.

    `retries` counts retries after the first attempt; the delay (seconds)
    doubles after every failed attempt.
    """
    strategy = UnconditionalBackoffRetry(
        retries=settings.DB_RETRY_ATTEMPTS if retries is None else retries,
        delay=settings.DB_RETRY_INITIAL_DELAY if delay is None else delay,
        sleep=sleep,
    )
    return await strategy.run(connection_string, query_fn)
