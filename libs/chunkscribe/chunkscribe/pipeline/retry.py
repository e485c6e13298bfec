"""Retry wrapper for workflow steps (tenacity)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from chunkscribe.config import RetryPolicy
from chunkscribe.exceptions import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def build_wait(policy: RetryPolicy) -> wait_exponential:
    """`interval * backoff ** (attempt - 1)`, optionally capped."""
    kwargs: dict[str, float] = {
        "multiplier": float(policy.interval_s),
        "exp_base": float(policy.backoff_rate),
    }
    if policy.max_interval_s is not None:
        kwargs["max"] = float(policy.max_interval_s)
    return wait_exponential(**kwargs)


def log_retry(step: str, execution_id: str | None) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        wait_s = state.next_action.sleep if state.next_action else None
        logger.warning(
            "step retrying (execution_id=%s, step=%s, attempt=%s, wait_s=%s, error=%r)",
            execution_id,
            step,
            state.attempt_number,
            wait_s,
            exc,
        )

    return _log


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    step: str,
    timeout_s: float | None = None,
    sleep: SleepFn | None = None,
    execution_id: str | None = None,
) -> T:
    """Run `fn` until it succeeds, a non-transient error occurs, or attempts run out.

    Each attempt gets its own `timeout_s` budget; a timeout is retried like any
    other transient error. The last error is re-raised unchanged.
    """

    async def _attempt() -> T:
        if timeout_s is None:
            return await fn()
        return await asyncio.wait_for(fn(), timeout=float(timeout_s))

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=build_wait(policy),
        retry=retry_if_exception(is_transient),
        before_sleep=log_retry(step, execution_id),
        sleep=sleep or asyncio.sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await _attempt()
    return result
