"""Quota-aware chunk planning."""

from .planner import ChunkBudget, ChunkPlanner, add_context
from .quota import QuotaEstimator
from .splitter import find_break_point, split_text

__all__ = [
    "ChunkBudget",
    "ChunkPlanner",
    "QuotaEstimator",
    "add_context",
    "find_break_point",
    "split_text",
]
