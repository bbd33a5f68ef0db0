"""
Bounded retry combinator.

One tenacity-based retry policy shared by the batch executor, the
connection probe and vector upserts. Backoff is exponential:
delay = base * 2^attempt, with attempt counted from zero.

Dependencies: tenacity
System role: Reusable retry/backoff primitive
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff shape for one retried operation."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float | None = None
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    give_up_on: tuple[type[BaseException], ...] = field(default_factory=tuple)

    def should_retry(self, exc: BaseException) -> bool:
        if self.give_up_on and isinstance(exc, self.give_up_on):
            return False
        return isinstance(exc, self.retry_on)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows zero-based ``attempt``."""
        delay = self.base_delay_s * (2 ** attempt)
        if self.max_delay_s is not None:
            delay = min(delay, self.max_delay_s)
        return delay


def build_retrying(
    policy: RetryPolicy,
    on_retry: RetryCallback | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncRetrying:
    """
    Build a tenacity AsyncRetrying object for a policy.

    Args:
        policy: Retry policy
        on_retry: Called with (attempt_number, exception, next_delay) before each sleep
        sleep: Sleep coroutine (injectable for tests)

    Returns:
        AsyncRetrying: Configured retrying controller (reraises the last error)
    """
    wait_kwargs: dict[str, float] = {"multiplier": policy.base_delay_s, "exp_base": 2, "min": 0}
    if policy.max_delay_s is not None:
        wait_kwargs["max"] = policy.max_delay_s

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if on_retry is not None and exc is not None:
            on_retry(retry_state.attempt_number, exc, delay)

    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(**wait_kwargs),
        retry=retry_if_exception(policy.should_retry),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )


async def call_with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy,
    on_retry: RetryCallback | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """
    Await ``fn(*args, **kwargs)`` under a bounded retry policy.

    Attempts run strictly one after another. The final exception is
    re-raised unchanged once the budget is spent.

    Args:
        fn: Coroutine function to call
        policy: Retry policy
        on_retry: Optional retry observer
        sleep: Sleep coroutine (injectable for tests)

    Returns:
        The first successful result
    """
    retrying = build_retrying(policy, on_retry=on_retry, sleep=sleep)
    async for attempt in retrying:
        with attempt:
            return await fn(*args, **kwargs)
    # AsyncRetrying with reraise=True never falls through
    raise RuntimeError("retry loop exited without result")
