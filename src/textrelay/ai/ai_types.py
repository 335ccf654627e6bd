"""Shared typing contracts for the orchestration core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, runtime_checkable


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...

    def estimate(self, text: str) -> int:
        """Return a deterministic fallback estimate when precise counts fail."""
        ...


# -----------------------------------------------------------------------------
# Enumerations
# -----------------------------------------------------------------------------


class OperationKind(str, Enum):
    """Operations a caller can apply to a block of text."""

    SUMMARIZE = "summarize"
    TRANSLATE = "translate"
    VALIDATE = "validate"
    REWRITE = "rewrite"
    CUSTOM_PROMPT = "custom_prompt"

    @property
    def capability(self) -> str:
        """Name of the on-device capability that serves this operation."""

        return _CAPABILITY_BY_OPERATION[self]

    @property
    def is_transformative(self) -> bool:
        """True when output length tracks input length (no reduction on merge)."""

        return self in (OperationKind.TRANSLATE, OperationKind.REWRITE)

    @classmethod
    def parse(cls, value: str | OperationKind) -> OperationKind:
        if isinstance(value, OperationKind):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        if normalized == "customprompt":
            normalized = "custom_prompt"
        return cls(normalized)


_CAPABILITY_BY_OPERATION: Mapping[OperationKind, str] = {
    OperationKind.SUMMARIZE: "summarizer",
    OperationKind.TRANSLATE: "translator",
    OperationKind.VALIDATE: "writer",
    OperationKind.REWRITE: "writer",
    OperationKind.CUSTOM_PROMPT: "writer",
}


class ProviderTier(str, Enum):
    """The interchangeable backends a request can be routed to."""

    BUILT_IN = "built-in"
    CLOUD_PRIMARY = "cloud-primary"
    CLOUD_LOCAL = "cloud-local"

    @property
    def is_network(self) -> bool:
        return self is not ProviderTier.BUILT_IN


class AvailabilityStatus(str, Enum):
    """Point-in-time readiness of an on-device capability."""

    READY = "ready"
    DOWNLOADING = "downloading"
    UNAVAILABLE = "unavailable"

    @property
    def usable(self) -> bool:
        return self is not AvailabilityStatus.UNAVAILABLE

    @classmethod
    def parse(cls, value: str | AvailabilityStatus | None) -> AvailabilityStatus:
        """Normalize both the canonical names and legacy browser vocabulary."""

        if isinstance(value, AvailabilityStatus):
            return value
        normalized = (value or "").strip().lower()
        return _STATUS_ALIASES.get(normalized, AvailabilityStatus.UNAVAILABLE)


_STATUS_ALIASES: Mapping[str, AvailabilityStatus] = {
    "ready": AvailabilityStatus.READY,
    "readily": AvailabilityStatus.READY,
    "available": AvailabilityStatus.READY,
    "downloading": AvailabilityStatus.DOWNLOADING,
    "downloadable": AvailabilityStatus.DOWNLOADING,
    "after-download": AvailabilityStatus.DOWNLOADING,
    "unavailable": AvailabilityStatus.UNAVAILABLE,
    "no": AvailabilityStatus.UNAVAILABLE,
}


class FailureKind(str, Enum):
    """Reason a chunk task produced no result."""

    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"


# -----------------------------------------------------------------------------
# Request-scoped records
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OperationRequest:
    """Immutable description of one ``process_text`` call."""

    text: str
    operation: OperationKind
    operation_params: Mapping[str, str] = field(default_factory=dict)
    user_prompt: str | None = None

    def backend_params(self, **extra: str) -> dict[str, str]:
        """Return operation params enriched with the user prompt and *extra* keys."""

        params = dict(self.operation_params)
        if self.user_prompt:
            params["user_prompt"] = self.user_prompt
        params.update(extra)
        return params


@dataclass(slots=True, frozen=True)
class ProviderConfig:
    """Resolved provider preferences supplied by the caller.

    Attributes:
        preferred_tier: Explicit tier preference. ``cloud-local`` enables the
            local tier and ``cloud-primary`` implies ``cloud_first``.
        credentials: Opaque secrets keyed by tier; never rendered in ``repr``.
        cloud_first: Route to the managed cloud API before on-device.
        local_enabled: The user opted in to a self-hosted endpoint.
        local_base_url: Base URL of the self-hosted endpoint.
        local_model_name: Model served by the self-hosted endpoint.
        cloud_model_name: Optional model override for the managed cloud API.
    """

    preferred_tier: ProviderTier | None = None
    credentials: Mapping[ProviderTier, str] = field(default_factory=dict, repr=False)
    cloud_first: bool = False
    local_enabled: bool = False
    local_base_url: str | None = None
    local_model_name: str | None = None
    cloud_model_name: str | None = None

    def credential_for(self, tier: ProviderTier) -> str:
        return (self.credentials.get(tier) or "").strip()

    def has_credentials(self, tier: ProviderTier) -> bool:
        return bool(self.credential_for(tier))

    @property
    def wants_local(self) -> bool:
        return self.local_enabled or self.preferred_tier is ProviderTier.CLOUD_LOCAL

    @property
    def wants_cloud_first(self) -> bool:
        return self.cloud_first or self.preferred_tier is ProviderTier.CLOUD_PRIMARY

    @property
    def local_configured(self) -> bool:
        return bool((self.local_base_url or "").strip() and (self.local_model_name or "").strip())


@dataclass(slots=True, frozen=True)
class AvailabilityProbe:
    """Advisory snapshot of on-device capability readiness."""

    per_capability: Mapping[str, AvailabilityStatus] = field(default_factory=dict)

    def status(self, capability: str) -> AvailabilityStatus:
        return AvailabilityStatus.parse(self.per_capability.get(capability))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, str | AvailabilityStatus]) -> AvailabilityProbe:
        return cls({name: AvailabilityStatus.parse(status) for name, status in payload.items()})


@dataclass(slots=True, frozen=True)
class Chunk:
    """Bounded slice of the source text; ``text == source[start_offset:end_offset]``."""

    index: int
    text: str
    start_offset: int
    end_offset: int

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


@dataclass(slots=True, frozen=True)
class ChunkPlan:
    """Ordered chunk sequence produced by the planner."""

    chunks: tuple[Chunk, ...]
    chunk_size: int
    overlap: int

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def is_single(self) -> bool:
        return len(self.chunks) <= 1

    def reconstruct(self) -> str:
        """Concatenate each chunk's non-overlapping region."""

        parts: list[str] = []
        covered = 0
        for chunk in self.chunks:
            skip = max(0, covered - chunk.start_offset)
            parts.append(chunk.text[skip:])
            covered = max(covered, chunk.end_offset)
        return "".join(parts)


@dataclass(slots=True)
class TaskOutcome:
    """Result slot for one chunk task; ``result is None`` means the chunk was dropped."""

    chunk_index: int
    result: str | None = None
    failure_kind: FailureKind | None = None
    error: BaseException | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.failure_kind is None and self.result is not None


@dataclass(slots=True)
class ProcessingResult:
    """Externally visible value returned by the orchestrator."""

    text: str
    provider_used: ProviderTier
    metadata: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Backend contract
# -----------------------------------------------------------------------------


@runtime_checkable
class Backend(Protocol):
    """Capability interface every tier adapter implements.

    ``capacity_hint`` is an optional input budget expressed in tokens.
    ``run`` raises on failure and never returns partial output.
    """

    capacity_hint: int | None

    async def run(
        self,
        operation: OperationKind,
        text: str,
        operation_params: Mapping[str, str],
    ) -> str:
        ...


ProgressCallback = Callable[[int, str], None]


__all__ = [
    "TokenCounterProtocol",
    "OperationKind",
    "ProviderTier",
    "AvailabilityStatus",
    "FailureKind",
    "OperationRequest",
    "ProviderConfig",
    "AvailabilityProbe",
    "Chunk",
    "ChunkPlan",
    "TaskOutcome",
    "ProcessingResult",
    "Backend",
    "ProgressCallback",
]
