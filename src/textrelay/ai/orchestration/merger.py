"""Folding per-chunk outputs into one result, with recursive reduction."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Sequence

from ..ai_types import Backend, OperationRequest, ProviderTier, TaskOutcome
from ..chunking.planner import ChunkBudget, ChunkPlanner
from ..errors import AllChunksFailed, BackendError, QuotaExceeded, TextRelayError
from ..prompts import MERGE_STAGE
from .batch import BatchExecutor, ChunkTask
from .retry import RetryPolicy

LOGGER = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
DEFAULT_MAX_REDUCTION_DEPTH = 4


@dataclass(slots=True)
class MergeContext:
    """Everything a merge needs to issue follow-up calls on the chosen tier."""

    backend: Backend
    tier: ProviderTier
    budget: ChunkBudget
    concurrency: int
    task_timeout: float | None
    retry: RetryPolicy
    call_timeout: float | None = None
    max_reduction_depth: int = DEFAULT_MAX_REDUCTION_DEPTH
    reduction_passes: int = 0


class ResultMerger:
    """Merges chunk outcomes for one request.

    Transformative operations (translate, rewrite) are joined in chunk order.
    Reductive operations are combined by one final backend call; when the
    joined partial results are still larger than a chunk they are re-planned
    and reduced again first.
    """

    def __init__(
        self,
        planner: ChunkPlanner | None = None,
        executor: BatchExecutor | None = None,
    ) -> None:
        self._planner = planner or ChunkPlanner()
        self._executor = executor or BatchExecutor()

    async def merge(
        self,
        outcomes: Sequence[TaskOutcome],
        request: OperationRequest,
        context: MergeContext,
    ) -> str:
        return await self._merge(outcomes, request, context, depth=0, previous_size=None)

    async def _merge(
        self,
        outcomes: Sequence[TaskOutcome],
        request: OperationRequest,
        context: MergeContext,
        *,
        depth: int,
        previous_size: int | None,
    ) -> str:
        successful = successful_results(outcomes)
        if not successful:
            raise AllChunksFailed.from_counts(failure_counts(outcomes))
        if len(successful) == 1:
            return successful[0]

        combined = PARAGRAPH_SEPARATOR.join(part.strip() for part in successful)
        if request.operation.is_transformative:
            return combined
        if self._planner.fits(combined, context.budget):
            return await self._final_call(combined, request, context)

        if depth >= context.max_reduction_depth or (previous_size is not None and len(combined) >= previous_size):
            raise QuotaExceeded(
                message="Partial results could not be reduced to a size the provider accepts.",
                details={"size": len(combined), "depth": depth, "previous_size": previous_size},
            )

        plan = self._planner.plan(combined, context.budget)
        context.reduction_passes += 1
        LOGGER.info(
            "Reduction pass %s: %s chars of partial results in %s chunk(s)",
            context.reduction_passes,
            len(combined),
            len(plan),
        )
        tasks = [self._merge_task(chunk.text, request, context) for chunk in plan.chunks]
        reduced = await self._executor.run_batched(tasks, context.concurrency, context.task_timeout)
        return await self._merge(reduced, request, context, depth=depth + 1, previous_size=len(combined))

    async def _final_call(self, combined: str, request: OperationRequest, context: MergeContext) -> str:
        LOGGER.debug("Final merge of %s chars via %s", len(combined), context.tier.value)
        # Each attempt is bounded like a direct call.
        retry = replace(context.retry, attempt_timeout=context.call_timeout)
        try:
            return await self._merge_task(combined, request, context, label="Final merge", retry=retry)()
        except TextRelayError:
            raise
        except Exception as exc:
            raise BackendError(
                message=f"The {context.tier.value} provider failed to merge partial results: {exc}",
                details={"tier": context.tier.value, "stage": MERGE_STAGE},
            ) from exc

    def _merge_task(
        self,
        text: str,
        request: OperationRequest,
        context: MergeContext,
        *,
        label: str = "Reduction chunk",
        retry: RetryPolicy | None = None,
    ) -> ChunkTask:
        params = request.backend_params(stage=MERGE_STAGE)
        policy = retry or context.retry

        async def run() -> str:
            return await policy.call(
                lambda: context.backend.run(request.operation, text, params),
                label=label,
            )

        return run


def successful_results(outcomes: Sequence[TaskOutcome]) -> list[str]:
    """Non-blank results in original chunk order."""

    ordered = sorted(outcomes, key=lambda outcome: outcome.chunk_index)
    return [
        outcome.result
        for outcome in ordered
        if outcome.succeeded and outcome.result is not None and outcome.result.strip()
    ]


def failure_counts(outcomes: Sequence[TaskOutcome]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for outcome in outcomes:
        if outcome.failure_kind is not None:
            counts[outcome.failure_kind.value] += 1
        elif not (outcome.result or "").strip():
            counts["empty"] += 1
    return dict(counts)


__all__ = [
    "MergeContext",
    "ResultMerger",
    "successful_results",
    "failure_counts",
    "PARAGRAPH_SEPARATOR",
]
