"""Tests for the retry wrapper and per-call deadlines."""

from __future__ import annotations

import asyncio

import pytest

from textrelay.ai.errors import BackendTimeout
from textrelay.ai.orchestration.retry import RetryPolicy, with_retry
from textrelay.ai.orchestration.runtime_config import DEFAULT_TIER_PROFILES
from textrelay.ai.orchestration.timeouts import run_with_timeout
from textrelay.ai.ai_types import ProviderTier


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.mark.asyncio
async def test_retry_returns_first_success_without_sleeping() -> None:
    sleep = _RecordingSleep()
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        return "done"

    assert await with_retry(operation, sleep=sleep) == "done"
    assert calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retry_makes_exactly_two_attempts_and_reraises_last_error() -> None:
    sleep = _RecordingSleep()
    errors = [RuntimeError("first"), RuntimeError("second")]
    attempts: list[int] = []

    async def operation() -> str:
        attempts.append(len(attempts) + 1)
        raise errors[len(attempts) - 1]

    with pytest.raises(RuntimeError) as excinfo:
        await with_retry(operation, sleep=sleep)

    assert attempts == [1, 2]
    assert excinfo.value is errors[1]
    assert sleep.delays == [2.0]


@pytest.mark.asyncio
async def test_retry_recovers_on_second_attempt() -> None:
    sleep = _RecordingSleep()
    outcomes: list[object] = [ValueError("flaky"), "recovered"]

    async def operation() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return str(outcome)

    assert await with_retry(operation, max_attempts=2, base_delay=0.5, sleep=sleep) == "recovered"
    assert sleep.delays == [0.5]


@pytest.mark.asyncio
async def test_empty_result_is_not_retried() -> None:
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        return ""

    assert await with_retry(operation, sleep=_RecordingSleep()) == ""
    assert calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("backoff", "expected"),
    [("linear", [1.0, 2.0, 3.0]), ("exponential", [1.0, 2.0, 4.0])],
)
async def test_backoff_schedules(backoff: str, expected: list[float]) -> None:
    sleep = _RecordingSleep()

    async def operation() -> str:
        raise RuntimeError("always")

    with pytest.raises(RuntimeError):
        await with_retry(operation, max_attempts=4, base_delay=1.0, backoff=backoff, sleep=sleep)  # type: ignore[arg-type]

    assert sleep.delays == expected


@pytest.mark.asyncio
async def test_unknown_backoff_is_rejected() -> None:
    async def operation() -> str:
        return "unused"

    with pytest.raises(ValueError):
        await with_retry(operation, backoff="random")  # type: ignore[arg-type]


def test_policy_from_profile_uses_tier_settings() -> None:
    policy = RetryPolicy.from_profile(DEFAULT_TIER_PROFILES[ProviderTier.CLOUD_LOCAL], attempt_timeout=5.0)

    assert policy.max_attempts == 2
    assert policy.base_delay == 2.0
    assert policy.backoff == "exponential"
    assert policy.attempt_timeout == 5.0


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_a_failed_attempt() -> None:
    sleep = _RecordingSleep()
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        if calls == 1:
            await asyncio.sleep(1)
        return "second try"

    policy = RetryPolicy(max_attempts=2, base_delay=0.0, attempt_timeout=0.01)

    assert await policy.call(operation, sleep=sleep) == "second try"
    assert calls == 2


@pytest.mark.asyncio
async def test_run_with_timeout_raises_backend_timeout() -> None:
    with pytest.raises(BackendTimeout) as excinfo:
        await run_with_timeout(asyncio.sleep(1), 0.01, label="Chunk 3")

    assert excinfo.value.timeout == 0.01
    assert "Chunk 3 timed out" in str(excinfo.value)
    assert excinfo.value.fatal is False


@pytest.mark.asyncio
async def test_run_with_timeout_without_deadline_awaits_directly() -> None:
    async def value() -> int:
        return 7

    assert await run_with_timeout(value(), None) == 7
    assert await run_with_timeout(value(), 0) == 7
