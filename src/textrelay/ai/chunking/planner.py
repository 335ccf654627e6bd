"""Chunk planning with a hard cap on the number of chunks."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from ..ai_types import Chunk, ChunkPlan
from ..errors import QuotaExceeded
from .splitter import split_text

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 20_000
DEFAULT_OVERLAP = 1_000
MIN_CHUNK_SIZE = 1_000
DEFAULT_MAX_CHUNKS = 50


@dataclass(slots=True, frozen=True)
class ChunkBudget:
    """Sizing constraints for one plan.

    ``hard_limit`` is the largest chunk the backend can physically accept; when
    raising the chunk size to respect ``max_chunks`` would cross it, planning
    fails with :class:`QuotaExceeded`.
    """

    target_chunk_size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP
    min_chunk_size: int = MIN_CHUNK_SIZE
    max_chunks: int = DEFAULT_MAX_CHUNKS
    hard_limit: int | None = None


class ChunkPlanner:
    """Turns text plus a :class:`ChunkBudget` into an ordered :class:`ChunkPlan`."""

    def fits(self, text: str, budget: ChunkBudget) -> bool:
        """Return ``True`` when *text* can be sent to the backend in one call."""

        return len(text) <= max(budget.target_chunk_size, budget.min_chunk_size)

    def plan(self, text: str, budget: ChunkBudget) -> ChunkPlan:
        length = len(text)
        overlap = max(0, budget.overlap)
        if length <= budget.min_chunk_size:
            chunk = Chunk(index=0, text=text, start_offset=0, end_offset=length)
            return ChunkPlan(chunks=(chunk,), chunk_size=max(length, budget.target_chunk_size), overlap=overlap)

        max_chunks = max(1, budget.max_chunks)
        chunk_size = max(1, budget.target_chunk_size)
        estimated = math.ceil(length / max(1, chunk_size - overlap))
        if estimated > max_chunks:
            chunk_size = math.ceil(length / max_chunks) + overlap
            LOGGER.debug(
                "Adjusted chunk size to %s to keep %s chars within %s chunks",
                chunk_size,
                length,
                max_chunks,
            )
            if budget.hard_limit is not None and chunk_size > budget.hard_limit:
                raise QuotaExceeded(
                    message=(
                        f"The text ({length} characters) needs chunks of {chunk_size} characters, "
                        f"above the provider limit of {budget.hard_limit}."
                    ),
                    details={"length": length, "chunk_size": chunk_size, "hard_limit": budget.hard_limit},
                )

        chunks = split_text(
            text,
            chunk_size=chunk_size,
            overlap=overlap,
            min_chunk_size=budget.min_chunk_size,
        )
        if len(chunks) > max_chunks:
            # Boundary cuts shortened the chunks; fixed-size cuts stay within the cap.
            LOGGER.debug("Boundary split gave %s chunks (max %s); using fixed-size cuts", len(chunks), max_chunks)
            chunks = split_text(
                text,
                chunk_size=chunk_size,
                overlap=overlap,
                min_chunk_size=budget.min_chunk_size,
                respect_boundaries=False,
            )
        if len(chunks) > max_chunks:
            raise QuotaExceeded(
                message=f"The text splits into {len(chunks)} parts; at most {max_chunks} are allowed.",
                details={"length": length, "chunks": len(chunks), "max_chunks": max_chunks},
            )
        LOGGER.debug("Planned %s chunk(s) of up to %s chars (overlap=%s)", len(chunks), chunk_size, overlap)
        return ChunkPlan(chunks=tuple(chunks), chunk_size=chunk_size, overlap=overlap)


def add_context(chunk: Chunk, plan: ChunkPlan) -> str:
    """Prefix *chunk* with its position so the model knows it sees a fragment."""

    if plan.is_single:
        return chunk.text
    return f"[Part {chunk.index + 1} of {len(plan)}]\n\n{chunk.text}"


__all__ = [
    "ChunkBudget",
    "ChunkPlanner",
    "add_context",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_OVERLAP",
    "MIN_CHUNK_SIZE",
    "DEFAULT_MAX_CHUNKS",
]
