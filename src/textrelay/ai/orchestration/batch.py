"""Sequential batches of concurrently executed chunk tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from ..ai_types import FailureKind, TaskOutcome
from ..errors import BackendTimeout
from .timeouts import run_with_timeout

LOGGER = logging.getLogger(__name__)

ChunkTask = Callable[[], Awaitable[str]]
OutcomeCallback = Callable[[TaskOutcome, int, int], None]


class BatchExecutor:
    """Runs chunk tasks in fixed-size batches with a deadline per task.

    Batches run strictly one after another so no more than ``concurrency``
    backend calls are ever in flight. A failed or timed-out task yields an
    empty :class:`TaskOutcome` and never aborts its batch.
    """

    async def run_batched(
        self,
        tasks: Sequence[ChunkTask],
        concurrency: int,
        per_task_timeout: float | None,
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> list[TaskOutcome]:
        total = len(tasks)
        if total == 0:
            return []
        size = max(1, int(concurrency))
        outcomes: list[TaskOutcome | None] = [None] * total
        completed = 0

        async def run_one(index: int, task: ChunkTask) -> None:
            nonlocal completed
            outcome = await self._execute_task(index, task, per_task_timeout)
            outcomes[index] = outcome
            completed += 1
            if on_outcome is not None:
                on_outcome(outcome, completed, total)

        for batch_start in range(0, total, size):
            batch = range(batch_start, min(batch_start + size, total))
            LOGGER.debug("Starting batch %s-%s of %s task(s)", batch.start, batch.stop - 1, total)
            await asyncio.gather(*(run_one(index, tasks[index]) for index in batch))

        results = [outcome for outcome in outcomes if outcome is not None]
        failed = sum(1 for outcome in results if not outcome.succeeded)
        if failed:
            LOGGER.warning("%s of %s chunk task(s) failed and were omitted", failed, total)
        return results

    async def _execute_task(self, index: int, task: ChunkTask, timeout: float | None) -> TaskOutcome:
        try:
            result = await run_with_timeout(task(), timeout, label=f"Chunk {index}")
        except BackendTimeout as exc:
            LOGGER.warning("Chunk task %s timed out: %s", index, exc)
            return TaskOutcome(chunk_index=index, failure_kind=FailureKind.TIMEOUT, error=exc)
        except Exception as exc:
            LOGGER.warning("Chunk task %s failed: %s", index, exc)
            return TaskOutcome(chunk_index=index, failure_kind=FailureKind.PROVIDER_ERROR, error=exc)
        return TaskOutcome(chunk_index=index, result=result)


__all__ = ["BatchExecutor", "ChunkTask", "OutcomeCallback"]
