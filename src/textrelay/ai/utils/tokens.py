"""Token estimation utilities for AI operations."""

from __future__ import annotations

import math

# Average characters per token used when no tokenizer is available
CHARS_PER_TOKEN = 3.5


def estimate_tokens(text: str) -> int:
    """Estimate the number of tokens in a text string.

    Uses a character heuristic of ~3.5 characters per token, which is the
    budget the on-device and cloud tiers are sized against.

    Args:
        text: The text to estimate tokens for.

    Returns:
        Estimated token count (minimum 1 for non-empty text, 0 for empty).
    """
    if not text:
        return 0
    return max(1, math.ceil(len(text) / CHARS_PER_TOKEN))


def tokens_to_chars(tokens: int, *, fraction: float = 1.0) -> int:
    """Convert a token budget into a character budget, scaled by *fraction*."""
    if tokens <= 0:
        return 0
    return int(math.floor(tokens * fraction * CHARS_PER_TOKEN))


__all__ = ["CHARS_PER_TOKEN", "estimate_tokens", "tokens_to_chars"]
