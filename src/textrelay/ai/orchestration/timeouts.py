"""Single deadline helper shared by retries and batch execution."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from ..errors import BackendTimeout

T = TypeVar("T")


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout: float | None,
    *,
    label: str | None = None,
) -> T:
    """Await *awaitable*, raising :class:`BackendTimeout` once *timeout* seconds pass.

    ``None`` or a non-positive timeout waits indefinitely. On expiry the inner
    task is cancelled; cancellation of the caller propagates unchanged.
    """

    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise BackendTimeout.after(timeout, label=label) from exc


__all__ = ["run_with_timeout"]
