"""Chunk sizing derived from backend capacity hints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..ai_types import Backend, OperationKind, TokenCounterProtocol
from ..utils.tokens import estimate_tokens, tokens_to_chars
from .planner import ChunkBudget

if TYPE_CHECKING:
    from ..orchestration.runtime_config import TierProfile

LOGGER = logging.getLogger(__name__)


class QuotaEstimator:
    """Estimates how large a chunk a backend can safely take.

    Capacity hints are token budgets. They are converted to characters at
    ~3.5 characters per token and scaled by the tier's headroom so the prompt
    scaffolding still fits next to the chunk.
    """

    def __init__(self, token_counter: TokenCounterProtocol | None = None) -> None:
        self._token_counter = token_counter

    def target_chunk_size(self, profile: TierProfile, capacity_hint: int | None) -> int:
        if not capacity_hint or capacity_hint <= 0:
            return profile.chunk_size
        size = tokens_to_chars(capacity_hint, fraction=profile.headroom)
        if profile.chunk_size_cap is not None:
            size = min(size, profile.chunk_size_cap)
        size = max(size, profile.min_chunk_size)
        return min(size, tokens_to_chars(capacity_hint))

    def budget_for(
        self,
        profile: TierProfile,
        backend: Backend | None = None,
        operation: OperationKind | None = None,
    ) -> ChunkBudget:
        """Return the chunk budget for *backend* under *profile*.

        Transformative operations get no overlap; their outputs are joined
        verbatim and overlapping input would be duplicated in the result.
        """

        hint = _capacity_hint(backend)
        target = self.target_chunk_size(profile, hint)
        if operation is not None and operation.is_transformative:
            overlap = 0
        else:
            # Each chunk must advance by at least half its size.
            overlap = min(profile.overlap, target // 2)
        hard_limit = tokens_to_chars(hint) if hint else None
        LOGGER.debug(
            "Chunk budget: target=%s overlap=%s min=%s max_chunks=%s (capacity_hint=%s)",
            target,
            overlap,
            profile.min_chunk_size,
            profile.max_chunks,
            hint,
        )
        return ChunkBudget(
            target_chunk_size=target,
            overlap=overlap,
            min_chunk_size=min(profile.min_chunk_size, target),
            max_chunks=profile.max_chunks,
            hard_limit=hard_limit,
        )

    def estimate_tokens(self, text: str, backend: Backend | None = None) -> int:
        """Count tokens with the backend's tokenizer when it exposes one."""

        if not text:
            return 0
        counter = getattr(backend, "token_counter", None) or self._token_counter
        if counter is None:
            return estimate_tokens(text)
        try:
            return counter.count(text)
        except Exception:  # pragma: no cover - tokenizer failures fall back to the estimate
            LOGGER.debug("Token counter failed; falling back to estimate", exc_info=True)
            return counter.estimate(text)


def _capacity_hint(backend: Backend | None) -> int | None:
    if backend is None:
        return None
    hint = backend.capacity_hint
    if hint is None:
        return None
    try:
        value = int(hint)
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring non-numeric capacity hint %r", hint)
        return None
    return value if value > 0 else None


__all__ = ["QuotaEstimator"]
