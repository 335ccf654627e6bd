"""Provider selection, batching, merging and the top-level orchestrator."""

from .batch import BatchExecutor
from .merger import MergeContext, ResultMerger
from .retry import RetryPolicy, with_retry
from .runtime_config import DEFAULT_TIER_PROFILES, TierProfile, resolve_profiles
from .selector import ProviderSelector, select_provider
from .timeouts import run_with_timeout

# Orchestrator facade
from .orchestrator import OrchestratorState, TextOrchestrator

__all__ = [
    "BatchExecutor",
    "MergeContext",
    "ResultMerger",
    "RetryPolicy",
    "with_retry",
    "TierProfile",
    "DEFAULT_TIER_PROFILES",
    "resolve_profiles",
    "ProviderSelector",
    "select_provider",
    "run_with_timeout",
    "OrchestratorState",
    "TextOrchestrator",
]
