"""Typed failures raised by the orchestration core.

Every error carries a machine-readable code, a human-readable message and an
optional recovery suggestion so the calling layer can render a short, specific
message instead of a stack trace.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes surfaced to callers."""

    NO_PROVIDER_AVAILABLE = "no_provider_available"
    BACKEND_TIMEOUT = "backend_timeout"
    BACKEND_ERROR = "backend_error"
    BACKEND_HTTP_ERROR = "backend_http_error"
    RATE_LIMITED = "rate_limited"
    EMPTY_RESULT = "empty_result"
    CAPABILITY_MISSING = "capability_missing"
    ALL_CHUNKS_FAILED = "all_chunks_failed"
    QUOTA_EXCEEDED = "quota_exceeded"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class TextRelayError(Exception):
    """Base exception class for all orchestration failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"
    # Fatal errors abort the whole call; recoverable ones only drop a chunk.
    fatal: ClassVar[bool] = True

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    @property
    def user_message(self) -> str:
        """Short message suitable for rendering in a UI or terminal."""
        if self.suggestion:
            return f"{self.message} {self.suggestion}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Plan-level failures
# -----------------------------------------------------------------------------

@dataclass
class NoProviderAvailable(TextRelayError):
    """No tier passed selection for the requested operation."""

    error_code: str = field(default=ErrorCode.NO_PROVIDER_AVAILABLE)
    message: str = field(default="No AI provider is available for this operation.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(
        default="Add a cloud API key, enable a local endpoint, or wait for the on-device model to download."
    )


@dataclass
class AllChunksFailed(TextRelayError):
    """Every chunk of a plan failed or timed out."""

    error_code: str = field(default=ErrorCode.ALL_CHUNKS_FAILED)
    message: str = field(default="All parts of the text failed to process.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Try again with a shorter text.")

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "AllChunksFailed":
        total = sum(counts.values())
        return cls(
            message=f"All {total} part(s) of the text failed to process.",
            details={"failures": dict(counts), "total": total},
        )


@dataclass
class QuotaExceeded(TextRelayError):
    """Input is larger than the planner can reduce to within its chunk cap."""

    error_code: str = field(default=ErrorCode.QUOTA_EXCEEDED)
    message: str = field(default="The text is too long to process.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Shorten the input and try again.")


# -----------------------------------------------------------------------------
# Per-call failures (absorbed per chunk)
# -----------------------------------------------------------------------------

@dataclass
class BackendTimeout(TextRelayError):
    """A single backend call exceeded its deadline."""

    error_code: str = field(default=ErrorCode.BACKEND_TIMEOUT)
    message: str = field(default="The AI provider did not respond in time.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Try again, or use a shorter text.")

    timeout: float | None = field(default=None)

    severity: ClassVar[str] = "warning"
    fatal: ClassVar[bool] = False

    @classmethod
    def after(cls, timeout: float, *, label: str | None = None) -> "BackendTimeout":
        subject = label or "Backend call"
        return cls(
            message=f"{subject} timed out after {timeout:g}s",
            details={"timeout": timeout},
            timeout=timeout,
        )


@dataclass
class BackendError(TextRelayError):
    """A tier returned an error (after retries when raised by the orchestrator)."""

    error_code: str = field(default=ErrorCode.BACKEND_ERROR)
    message: str = field(default="The AI provider returned an error.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    status_code: int | None = field(default=None)

    fatal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


__all__ = [
    "ErrorCode",
    "TextRelayError",
    "NoProviderAvailable",
    "AllChunksFailed",
    "QuotaExceeded",
    "BackendTimeout",
    "BackendError",
]
