"""Text orchestrator: the single entry point for AI text operations.

The orchestrator wires together the provider selector, quota estimator, chunk
planner, batch executor and result merger. Every collaborator is injected so
tests can substitute fakes; nothing here is a process-wide singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from ..ai_types import (
    AvailabilityProbe,
    Backend,
    Chunk,
    ChunkPlan,
    OperationKind,
    OperationRequest,
    ProcessingResult,
    ProgressCallback,
    ProviderConfig,
    ProviderTier,
    TaskOutcome,
)
from ..chunking.planner import ChunkBudget, ChunkPlanner, add_context
from ..chunking.quota import QuotaEstimator
from ..errors import BackendError, ErrorCode, NoProviderAvailable, TextRelayError
from .batch import BatchExecutor, ChunkTask
from .merger import DEFAULT_MAX_REDUCTION_DEPTH, MergeContext, ResultMerger
from .retry import RetryPolicy
from .runtime_config import TierProfile, resolve_profiles
from .selector import ProviderSelector

__all__ = [
    "TextOrchestrator",
    "OrchestratorState",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# State tracking
# -----------------------------------------------------------------------------


class OrchestratorState(str, Enum):
    """Stages of one ``process_text`` call; each is entered at most once."""

    IDLE = "idle"
    SELECTING_PROVIDER = "selecting_provider"
    DIRECT_CALL = "direct_call"
    PLANNING = "planning"
    CHUNKING = "chunking"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class _RunTrace:
    states: list[OrchestratorState] = field(default_factory=lambda: [OrchestratorState.IDLE])

    @property
    def current(self) -> OrchestratorState:
        return self.states[-1]

    def advance(self, state: OrchestratorState) -> None:
        if state in self.states:
            raise RuntimeError(f"Orchestrator state {state.value} entered twice")
        LOGGER.debug("Orchestrator %s -> %s", self.current.value, state.value)
        self.states.append(state)

    def as_list(self) -> list[str]:
        return [state.value for state in self.states]


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------


class TextOrchestrator:
    """Routes a text operation to one tier and returns the merged result."""

    def __init__(
        self,
        backends: Mapping[ProviderTier, Backend],
        *,
        selector: ProviderSelector | None = None,
        planner: ChunkPlanner | None = None,
        executor: BatchExecutor | None = None,
        merger: ResultMerger | None = None,
        quota: QuotaEstimator | None = None,
        profiles: Mapping[ProviderTier, TierProfile] | None = None,
        max_reduction_depth: int = DEFAULT_MAX_REDUCTION_DEPTH,
    ) -> None:
        self._backends = dict(backends)
        self._selector = selector or ProviderSelector()
        self._planner = planner or ChunkPlanner()
        self._executor = executor or BatchExecutor()
        self._merger = merger or ResultMerger(self._planner, self._executor)
        self._quota = quota or QuotaEstimator()
        self._profiles = resolve_profiles(profiles)
        self._max_reduction_depth = max(0, int(max_reduction_depth))

    async def process_text(
        self,
        text: str,
        operation: OperationKind | str,
        config: ProviderConfig,
        probe: AvailabilityProbe,
        on_progress: ProgressCallback | None = None,
        *,
        operation_params: Mapping[str, str] | None = None,
        user_prompt: str | None = None,
    ) -> ProcessingResult:
        """Apply *operation* to *text* on the tier chosen for *config* and *probe*.

        Args:
            text: Input text; must contain non-whitespace characters.
            operation: Operation kind or its string value.
            config: Resolved provider preferences and credentials.
            probe: Advisory availability snapshot of on-device capabilities.
            on_progress: Optional ``(percent, message)`` callback for chunked runs.
            operation_params: Operation options such as length, tone or target_language.
            user_prompt: Required for custom prompt operations.

        Returns:
            The final text tagged with the tier that produced it.

        Raises:
            ValueError: The request is malformed.
            TextRelayError: A typed failure (no provider, quota, all chunks failed, backend error).
        """

        request = OperationRequest(
            text=text,
            operation=OperationKind.parse(operation),
            operation_params=dict(operation_params or {}),
            user_prompt=user_prompt,
        )
        return await self.process(request, config, probe, on_progress)

    async def process(
        self,
        request: OperationRequest,
        config: ProviderConfig,
        probe: AvailabilityProbe,
        on_progress: ProgressCallback | None = None,
    ) -> ProcessingResult:
        _validate_request(request)
        trace = _RunTrace()
        progress = _progress_reporter(on_progress)
        operation = request.operation
        metadata: dict[str, Any] = {"operation": operation.value}

        try:
            trace.advance(OrchestratorState.SELECTING_PROVIDER)
            tier = self._selector.select(operation, config, probe)
            backend = self._backend_for(tier)
            profile = self._profiles[tier]
            budget = self._quota.budget_for(profile, backend, operation)
            metadata.update(
                tier=tier.value,
                input_chars=len(request.text),
                estimated_tokens=self._quota.estimate_tokens(request.text, backend),
            )
            LOGGER.info(
                "Processing %s (%s chars) via %s",
                operation.value,
                len(request.text),
                tier.value,
            )

            if self._planner.fits(request.text, budget):
                trace.advance(OrchestratorState.DIRECT_CALL)
                result = await self._direct_call(request, backend, tier, profile)
                metadata.update(chunks=1, failed_chunks=0, reduction_passes=0)
            else:
                result = await self._chunked_call(
                    request, backend, tier, profile, budget, trace, progress, metadata
                )

            if not result.strip():
                raise BackendError(
                    error_code=ErrorCode.EMPTY_RESULT,
                    message=f"The {tier.value} provider returned an empty result.",
                    suggestion="Try again or rephrase the request.",
                    details={"tier": tier.value},
                )
            trace.advance(OrchestratorState.DONE)
        except Exception as exc:
            failed_in = trace.current
            trace.advance(OrchestratorState.FAILED)
            LOGGER.warning("Processing %s failed during %s: %s", operation.value, failed_in.value, exc)
            raise

        metadata["states"] = trace.as_list()
        return ProcessingResult(text=result, provider_used=tier, metadata=metadata)

    def plan(
        self,
        request: OperationRequest,
        config: ProviderConfig,
        probe: AvailabilityProbe,
    ) -> tuple[ProviderTier, ChunkPlan]:
        """Return the tier and chunk plan :meth:`process` would use, without calling it."""

        _validate_request(request)
        tier = self._selector.select(request.operation, config, probe)
        backend = self._backend_for(tier)
        budget = self._quota.budget_for(self._profiles[tier], backend, request.operation)
        if self._planner.fits(request.text, budget):
            text = request.text
            return tier, ChunkPlan(
                chunks=(Chunk(index=0, text=text, start_offset=0, end_offset=len(text)),),
                chunk_size=len(text),
                overlap=0,
            )
        return tier, self._planner.plan(request.text, budget)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _direct_call(
        self,
        request: OperationRequest,
        backend: Backend,
        tier: ProviderTier,
        profile: TierProfile,
    ) -> str:
        policy = RetryPolicy.from_profile(profile, attempt_timeout=profile.call_timeout)
        params = request.backend_params()
        try:
            return await policy.call(
                lambda: backend.run(request.operation, request.text, params),
                label=f"{tier.value} {request.operation.value}",
            )
        except TextRelayError:
            raise
        except Exception as exc:
            raise BackendError(
                message=f"The {tier.value} provider failed: {exc}",
                details={"tier": tier.value, "attempts": policy.max_attempts},
            ) from exc

    async def _chunked_call(
        self,
        request: OperationRequest,
        backend: Backend,
        tier: ProviderTier,
        profile: TierProfile,
        budget: ChunkBudget,
        trace: _RunTrace,
        progress: Callable[[int, str], None],
        metadata: dict[str, Any],
    ) -> str:
        trace.advance(OrchestratorState.PLANNING)
        plan = self._planner.plan(request.text, budget)
        total = len(plan)

        trace.advance(OrchestratorState.CHUNKING)
        progress(0, f"Split into {total} parts")
        retry = RetryPolicy.from_profile(profile)
        tasks = [self._chunk_task(chunk, plan, request, backend, retry) for chunk in plan.chunks]

        def on_outcome(outcome: TaskOutcome, completed: int, count: int) -> None:
            progress(round(completed / count * 50), f"Processed part {completed} of {count}")

        outcomes = await self._executor.run_batched(
            tasks,
            profile.concurrency,
            profile.task_timeout,
            on_outcome=on_outcome,
        )

        trace.advance(OrchestratorState.MERGING)
        progress(75, "Creating final result")
        context = MergeContext(
            backend=backend,
            tier=tier,
            budget=budget,
            concurrency=profile.concurrency,
            task_timeout=profile.task_timeout,
            retry=retry,
            call_timeout=profile.call_timeout,
            max_reduction_depth=self._max_reduction_depth,
        )
        result = await self._merger.merge(outcomes, request, context)
        metadata.update(
            chunks=total,
            failed_chunks=sum(1 for outcome in outcomes if not outcome.succeeded),
            reduction_passes=context.reduction_passes,
        )
        progress(100, "Done")
        return result

    def _chunk_task(
        self,
        chunk: Chunk,
        plan: ChunkPlan,
        request: OperationRequest,
        backend: Backend,
        retry: RetryPolicy,
    ) -> ChunkTask:
        operation = request.operation
        text = chunk.text if operation.is_transformative else add_context(chunk, plan)
        params = request.backend_params()

        async def run() -> str:
            if not chunk.text.strip():
                return ""
            return await retry.call(
                lambda: backend.run(operation, text, params),
                label=f"Chunk {chunk.index + 1}/{len(plan)}",
            )

        return run

    def _backend_for(self, tier: ProviderTier) -> Backend:
        backend = self._backends.get(tier)
        if backend is None:
            raise NoProviderAvailable(
                message=f"No backend is registered for the {tier.value} tier.",
                details={"tier": tier.value},
            )
        return backend


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _validate_request(request: OperationRequest) -> None:
    if not request.text or not request.text.strip():
        raise ValueError("Text to process must not be empty")
    if request.operation is OperationKind.CUSTOM_PROMPT and not (request.user_prompt or "").strip():
        raise ValueError("A user prompt is required for custom prompt operations")


def _progress_reporter(callback: ProgressCallback | None) -> Callable[[int, str], None]:
    def report(percent: int, message: str) -> None:
        if callback is None:
            return
        try:
            callback(max(0, min(100, int(percent))), message)
        except Exception:
            LOGGER.debug("Progress callback failed", exc_info=True)

    return report
