"""AI provider orchestration and adaptive chunking."""

from .ai_types import (
    AvailabilityProbe,
    AvailabilityStatus,
    OperationKind,
    ProcessingResult,
    ProviderConfig,
    ProviderTier,
)
from .client import AIClient, ApproxCharCounter, ClientSettings, TiktokenCounter
from .orchestration import TextOrchestrator

__all__ = [
    "AIClient",
    "ClientSettings",
    "TiktokenCounter",
    "ApproxCharCounter",
    "AvailabilityProbe",
    "AvailabilityStatus",
    "OperationKind",
    "ProcessingResult",
    "ProviderConfig",
    "ProviderTier",
    "TextOrchestrator",
]
