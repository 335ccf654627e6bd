"""Per-tier runtime configuration for the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal, Mapping

from ..ai_types import ProviderTier

BackoffKind = Literal["linear", "exponential"]


@dataclass(slots=True, frozen=True)
class TierProfile:
    """Chunking, concurrency and retry defaults for one provider tier.

    Attributes:
        chunk_size: Target characters per chunk when the backend advertises no capacity.
        overlap: Characters shared between consecutive chunks.
        min_chunk_size: Inputs at or below this size are never split, and no
            break point may fall closer than this to a chunk's start.
        max_chunks: Upper bound on chunks per plan.
        headroom: Fraction of an advertised capacity used for the chunk itself.
        chunk_size_cap: Optional ceiling applied to capacity-derived chunk sizes.
        concurrency: Tasks started together per batch.
        task_timeout: Seconds allowed for one chunk task (retries included).
        call_timeout: Seconds allowed per attempt for an unchunked call.
        retry_attempts: Total attempts per backend call.
        retry_base_delay: Base delay in seconds between attempts.
        backoff: ``linear`` (``base * attempt``) or ``exponential`` (``base * 2 ** (attempt - 1)``).
    """

    chunk_size: int
    overlap: int
    min_chunk_size: int
    max_chunks: int = 50
    headroom: float = 0.8
    chunk_size_cap: int | None = None
    concurrency: int = 3
    task_timeout: float | None = 15.0
    call_timeout: float | None = None
    retry_attempts: int = 2
    retry_base_delay: float = 2.0
    backoff: BackoffKind = "linear"

    def clamp(self) -> TierProfile:
        """Return a copy with values coerced into safe operating ranges."""

        return replace(
            self,
            chunk_size=max(1, int(self.chunk_size)),
            overlap=max(0, int(self.overlap)),
            min_chunk_size=max(0, int(self.min_chunk_size)),
            max_chunks=max(1, int(self.max_chunks)),
            headroom=min(1.0, max(0.05, float(self.headroom))),
            concurrency=max(1, int(self.concurrency)),
            retry_attempts=max(1, int(self.retry_attempts)),
            retry_base_delay=max(0.0, float(self.retry_base_delay)),
        )


DEFAULT_TIER_PROFILES: Mapping[ProviderTier, TierProfile] = {
    # On-device models have small context windows and contend for one device.
    ProviderTier.BUILT_IN: TierProfile(
        chunk_size=4_000,
        overlap=500,
        min_chunk_size=500,
        headroom=0.6,
        chunk_size_cap=4_000,
        concurrency=2,
        task_timeout=20.0,
        call_timeout=60.0,
    ),
    ProviderTier.CLOUD_PRIMARY: TierProfile(
        chunk_size=20_000,
        overlap=1_000,
        min_chunk_size=1_000,
        concurrency=3,
        task_timeout=30.0,
        call_timeout=60.0,
    ),
    ProviderTier.CLOUD_LOCAL: TierProfile(
        chunk_size=8_000,
        overlap=500,
        min_chunk_size=500,
        concurrency=3,
        task_timeout=120.0,
        call_timeout=120.0,
        backoff="exponential",
    ),
}


def resolve_profiles(
    overrides: Mapping[ProviderTier, TierProfile] | None = None,
) -> dict[ProviderTier, TierProfile]:
    """Merge *overrides* over the defaults and clamp every profile."""

    merged = dict(DEFAULT_TIER_PROFILES)
    if overrides:
        merged.update(overrides)
    return {tier: profile.clamp() for tier, profile in merged.items()}


__all__ = [
    "BackoffKind",
    "TierProfile",
    "DEFAULT_TIER_PROFILES",
    "resolve_profiles",
]
