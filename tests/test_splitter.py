"""Tests for boundary-aware text splitting."""

from __future__ import annotations

from textrelay.ai.chunking.splitter import find_break_point, split_text


def test_break_point_prefers_paragraphs_over_sentences() -> None:
    text = "a" * 30 + "\n\n" + "b" * 30 + ". " + "c" * 30

    end = find_break_point(text, 0, len(text) - 5, min_chunk_size=10)

    assert text[:end].endswith("\n\n")


def test_break_point_uses_latest_sentence_break() -> None:
    text = "First one. Second one! Third one? tail without break"

    end = find_break_point(text, 0, len(text), min_chunk_size=5)

    assert text[:end] == "First one. Second one! Third one? "


def test_break_point_falls_back_to_word_then_hard_cut() -> None:
    words = "alpha beta gamma delta"
    assert words[: find_break_point(words, 0, len(words), min_chunk_size=3)] == "alpha beta gamma"

    solid = "x" * 40
    assert find_break_point(solid, 0, 25, min_chunk_size=5) == 25


def test_break_point_ignores_candidates_too_close_to_start() -> None:
    text = "Hi. " + "y" * 50

    assert find_break_point(text, 0, 40, min_chunk_size=10) == 40


def test_split_returns_single_chunk_at_or_below_minimum() -> None:
    text = "short text"

    chunks = split_text(text, chunk_size=4, overlap=1, min_chunk_size=len(text))

    assert len(chunks) == 1
    assert chunks[0].text == text
    assert (chunks[0].start_offset, chunks[0].end_offset) == (0, len(text))


def test_split_chunks_are_exact_slices_with_overlap() -> None:
    text = "".join(f"Sentence number {index} ends here. " for index in range(200))

    chunks = split_text(text, chunk_size=500, overlap=50, min_chunk_size=100)

    assert len(chunks) > 1
    assert chunks[0].start_offset == 0
    assert chunks[-1].end_offset == len(text)
    for chunk in chunks:
        assert chunk.text == text[chunk.start_offset : chunk.end_offset]
        assert chunk.length <= 500
    for previous, current in zip(chunks, chunks[1:]):
        assert current.start_offset == previous.end_offset - 50


def test_split_stops_once_a_chunk_reaches_the_end() -> None:
    text = "z" * 1_050

    chunks = split_text(text, chunk_size=1_000, overlap=100, min_chunk_size=10)

    assert [(chunk.start_offset, chunk.end_offset) for chunk in chunks] == [(0, 1_000), (900, 1_050)]


def test_fixed_size_cuts_skip_boundary_search() -> None:
    text = "word " * 100

    chunks = split_text(text, chunk_size=120, overlap=0, min_chunk_size=10, respect_boundaries=False)

    assert [chunk.length for chunk in chunks[:-1]] == [120] * (len(chunks) - 1)
    assert "".join(chunk.text for chunk in chunks) == text
