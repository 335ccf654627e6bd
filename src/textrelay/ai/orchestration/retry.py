"""Bounded retries around a single backend call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)
from tenacity.wait import wait_base

from .runtime_config import BackoffKind, TierProfile
from .timeouts import run_with_timeout

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Attempts, delay schedule and per-attempt deadline for one call site."""

    max_attempts: int = 2
    base_delay: float = 2.0
    backoff: BackoffKind = "linear"
    attempt_timeout: float | None = None

    @classmethod
    def from_profile(cls, profile: TierProfile, *, attempt_timeout: float | None = None) -> RetryPolicy:
        return cls(
            max_attempts=profile.retry_attempts,
            base_delay=profile.retry_base_delay,
            backoff=profile.backoff,
            attempt_timeout=attempt_timeout,
        )

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str | None = None,
        sleep: SleepFn | None = None,
    ) -> T:
        return await with_retry(
            operation,
            self.max_attempts,
            self.base_delay,
            backoff=self.backoff,
            attempt_timeout=self.attempt_timeout,
            label=label,
            sleep=sleep,
        )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 2,
    base_delay: float = 2.0,
    *,
    backoff: BackoffKind = "linear",
    attempt_timeout: float | None = None,
    label: str | None = None,
    sleep: SleepFn | None = None,
) -> T:
    """Call *operation* until it succeeds or *max_attempts* are used up.

    Only exceptions trigger a retry; an empty but successful result is returned
    as-is. The delay before attempt ``n + 1`` is ``base_delay * n`` (linear) or
    ``base_delay * 2 ** (n - 1)`` (exponential), in seconds. When attempts run
    out the last exception is re-raised unchanged.
    """

    options: dict[str, Any] = {
        "reraise": True,
        "stop": stop_after_attempt(max(1, int(max_attempts))),
        "wait": _wait_strategy(backoff, base_delay),
        "retry": retry_if_exception_type(Exception),
        "before_sleep": _log_retry(label),
    }
    if sleep is not None:
        options["sleep"] = sleep

    result: T
    async for attempt in AsyncRetrying(**options):
        with attempt:
            result = await run_with_timeout(operation(), attempt_timeout, label=label)
    return result


def _wait_strategy(backoff: BackoffKind, base_delay: float) -> wait_base:
    delay = max(0.0, float(base_delay))
    if backoff == "exponential":
        return wait_exponential(multiplier=delay, exp_base=2)
    if backoff == "linear":
        return wait_incrementing(start=delay, increment=delay)
    raise ValueError(f"Unknown backoff strategy: {backoff!r}")


def _log_retry(label: str | None) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        outcome = state.outcome
        error = outcome.exception() if outcome is not None else None
        wait = state.next_action.sleep if state.next_action is not None else 0.0
        LOGGER.warning(
            "%s failed on attempt %s (%s); retrying in %.2fs",
            label or "Backend call",
            state.attempt_number,
            error,
            wait,
        )

    return _before_sleep


__all__ = ["RetryPolicy", "with_retry"]
