"""Boundary-aware text splitting."""

from __future__ import annotations

from typing import List, Sequence

from ..ai_types import Chunk

PARAGRAPH_BREAKS: Sequence[str] = ("\n\n\n", "\n\n")
SENTENCE_BREAKS: Sequence[str] = (". ", "! ", "? ", ".\n", "!\n", "?\n")
WORD_BREAK = " "


def find_break_point(text: str, start: int, end: int, min_chunk_size: int) -> int:
    """Return the best end index for the chunk ``text[start:end]``.

    Preference is paragraph break, then sentence break, then word break. A
    candidate only counts when it lies at least ``min_chunk_size`` characters
    into the chunk; otherwise the naive ``end`` is returned unchanged.
    """

    window = text[start:end]
    minimum = max(1, min_chunk_size)

    for patterns in (PARAGRAPH_BREAKS, SENTENCE_BREAKS):
        position = _last_break(window, patterns)
        if position >= minimum:
            return start + position

    index = window.rfind(WORD_BREAK)
    if index > 0 and index >= minimum:
        return start + index

    return end


def _last_break(window: str, patterns: Sequence[str]) -> int:
    # Position just past the latest occurrence of any pattern, or -1.
    best = -1
    for pattern in patterns:
        index = window.rfind(pattern)
        if index > 0:
            best = max(best, index + len(pattern))
    return best


def split_text(
    text: str,
    *,
    chunk_size: int,
    overlap: int,
    min_chunk_size: int,
    respect_boundaries: bool = True,
) -> List[Chunk]:
    """Split *text* into overlapping chunks that cover it end to end.

    With ``respect_boundaries`` off every cut falls exactly at ``chunk_size``,
    which bounds the chunk count at ``ceil((len - overlap) / (chunk_size - overlap))``.
    Every chunk's ``text`` is the exact slice ``text[start_offset:end_offset]``
    (no trimming), so the non-overlapping regions reconstruct the input.
    """

    if not text:
        return []
    length = len(text)
    if length <= min_chunk_size:
        return [Chunk(index=0, text=text, start_offset=0, end_offset=length)]

    size = max(1, chunk_size)
    overlap = max(0, overlap)
    chunks: List[Chunk] = []
    start = 0
    while start < length:
        end = min(start + size, length)
        if end < length and respect_boundaries:
            end = find_break_point(text, start, end, min_chunk_size)
        chunks.append(Chunk(index=len(chunks), text=text[start:end], start_offset=start, end_offset=end))
        if end >= length:
            break
        start = max(start + 1, end - overlap)
    return chunks


__all__ = ["find_break_point", "split_text", "PARAGRAPH_BREAKS", "SENTENCE_BREAKS"]
