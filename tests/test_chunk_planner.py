"""Tests for chunk planning and budget sizing."""

from __future__ import annotations

import itertools

import pytest

from textrelay.ai.ai_types import Chunk, OperationKind, ProviderTier
from textrelay.ai.chunking import ChunkBudget, ChunkPlanner, QuotaEstimator, add_context
from textrelay.ai.chunking.splitter import split_text
from textrelay.ai.errors import QuotaExceeded
from textrelay.ai.orchestration.runtime_config import DEFAULT_TIER_PROFILES

from tests.helpers import FakeBackend, sentence_text


CLOUD_BUDGET = ChunkBudget(target_chunk_size=20_000, overlap=1_000, min_chunk_size=1_000, max_chunks=50)


def test_fits_compares_against_target_size() -> None:
    planner = ChunkPlanner()

    assert planner.fits("a" * 20_000, CLOUD_BUDGET) is True
    assert planner.fits("a" * 20_001, CLOUD_BUDGET) is False


def test_fifty_thousand_characters_split_into_three_sentence_aligned_chunks() -> None:
    text = sentence_text(50_000)

    plan = ChunkPlanner().plan(text, CLOUD_BUDGET)

    assert len(plan) == 3
    assert plan.overlap == 1_000
    assert plan.chunks[0].start_offset == 0
    assert plan.chunks[-1].end_offset == len(text)
    for chunk in plan.chunks[:-1]:
        assert chunk.text.endswith(". ")
        assert chunk.length <= 20_000
    assert plan.reconstruct() == text


def test_text_at_minimum_size_is_a_single_chunk() -> None:
    text = "x" * 1_000

    plan = ChunkPlanner().plan(text, CLOUD_BUDGET)

    assert plan.is_single
    assert plan.chunks[0].text == text


def test_chunk_size_is_raised_to_respect_max_chunks() -> None:
    text = sentence_text(100_000)
    budget = ChunkBudget(target_chunk_size=1_000, overlap=0, min_chunk_size=100, max_chunks=10)

    plan = ChunkPlanner().plan(text, budget)

    assert plan.chunk_size == 10_000
    assert len(plan) <= 10
    assert plan.reconstruct() == text


def test_raised_chunk_size_above_hard_limit_raises_quota_exceeded() -> None:
    text = sentence_text(100_000)
    budget = ChunkBudget(target_chunk_size=1_000, overlap=0, min_chunk_size=100, max_chunks=10, hard_limit=5_000)

    with pytest.raises(QuotaExceeded) as excinfo:
        ChunkPlanner().plan(text, budget)

    assert excinfo.value.details["hard_limit"] == 5_000
    assert "Shorten" in excinfo.value.user_message


def test_boundary_overflow_falls_back_to_fixed_size_cuts() -> None:
    text = sentence_text(4_600)
    budget = ChunkBudget(target_chunk_size=100, overlap=40, min_chunk_size=10, max_chunks=10)
    boundary_chunks = split_text(text, chunk_size=500, overlap=40, min_chunk_size=10)

    plan = ChunkPlanner().plan(text, budget)

    assert len(boundary_chunks) == 11
    assert plan.chunk_size == 500
    assert len(plan) == 10
    assert [chunk.start_offset for chunk in plan.chunks] == [460 * index for index in range(10)]
    assert all(chunk.length == 500 for chunk in plan.chunks[:-1])
    assert plan.reconstruct() == text


def test_plan_rejects_a_split_that_still_exceeds_max_chunks(monkeypatch: pytest.MonkeyPatch) -> None:
    text = sentence_text(4_600)

    def too_many(source: str, **kwargs: object) -> list[Chunk]:
        return [
            Chunk(index=index, text=source[index : index + 1], start_offset=index, end_offset=index + 1)
            for index in range(20)
        ]

    monkeypatch.setattr("textrelay.ai.chunking.planner.split_text", too_many)
    budget = ChunkBudget(target_chunk_size=1_000, overlap=0, min_chunk_size=10, max_chunks=10)

    with pytest.raises(QuotaExceeded) as excinfo:
        ChunkPlanner().plan(text, budget)

    assert excinfo.value.details["chunks"] == 20
    assert excinfo.value.details["max_chunks"] == 10


_SWEEP_TEXTS = {
    "sentences": sentence_text(12_000),
    "words": ("lorem " * 2_400)[:12_000],
    "unbroken": "x" * 12_000,
    "short": sentence_text(1_500),
}


@pytest.mark.parametrize("text_kind", sorted(_SWEEP_TEXTS))
@pytest.mark.parametrize(
    ("target", "overlap", "min_size", "max_chunks"),
    list(itertools.product([200, 1_000, 5_000], [0, 50, 400], [10, 100, 1_000], [1, 3, 10, 50])),
)
def test_plan_covers_text_within_max_chunks_for_any_budget(
    text_kind: str, target: int, overlap: int, min_size: int, max_chunks: int
) -> None:
    text = _SWEEP_TEXTS[text_kind]
    budget = ChunkBudget(target_chunk_size=target, overlap=overlap, min_chunk_size=min_size, max_chunks=max_chunks)

    plan = ChunkPlanner().plan(text, budget)

    assert 1 <= len(plan) <= max_chunks
    assert plan.chunks[0].start_offset == 0
    assert plan.chunks[-1].end_offset == len(text)
    assert all(chunk.text == text[chunk.start_offset : chunk.end_offset] for chunk in plan.chunks)
    assert plan.reconstruct() == text


def test_add_context_labels_parts_of_multi_chunk_plans() -> None:
    plan = ChunkPlanner().plan(sentence_text(50_000), CLOUD_BUDGET)
    single = ChunkPlanner().plan("tiny", CLOUD_BUDGET)

    assert add_context(plan.chunks[1], plan).startswith("[Part 2 of 3]\n\n")
    assert add_context(single.chunks[0], single) == "tiny"


# ---------------------------------------------------------------------------
# Quota estimation
# ---------------------------------------------------------------------------


def test_target_size_uses_tier_defaults_without_a_hint() -> None:
    estimator = QuotaEstimator()

    assert estimator.target_chunk_size(DEFAULT_TIER_PROFILES[ProviderTier.BUILT_IN], None) == 4_000
    assert estimator.target_chunk_size(DEFAULT_TIER_PROFILES[ProviderTier.CLOUD_PRIMARY], None) == 20_000
    assert estimator.target_chunk_size(DEFAULT_TIER_PROFILES[ProviderTier.CLOUD_LOCAL], None) == 8_000


def test_capacity_hint_is_scaled_by_headroom_and_capped() -> None:
    estimator = QuotaEstimator()
    built_in = DEFAULT_TIER_PROFILES[ProviderTier.BUILT_IN]

    assert estimator.target_chunk_size(built_in, 1_000) == 2_100
    assert estimator.target_chunk_size(built_in, 6_000) == 4_000


def test_budget_for_backend_carries_hard_limit_and_operation_overlap() -> None:
    estimator = QuotaEstimator()
    profile = DEFAULT_TIER_PROFILES[ProviderTier.BUILT_IN]
    backend = FakeBackend(capacity_hint=1_000)

    reductive = estimator.budget_for(profile, backend, OperationKind.SUMMARIZE)
    transformative = estimator.budget_for(profile, backend, OperationKind.TRANSLATE)

    assert reductive.target_chunk_size == 2_100
    assert reductive.hard_limit == 3_500
    assert reductive.overlap == 500
    assert transformative.overlap == 0
    assert reductive.max_chunks == 50


def test_budget_without_hint_has_no_hard_limit() -> None:
    budget = QuotaEstimator().budget_for(DEFAULT_TIER_PROFILES[ProviderTier.CLOUD_PRIMARY], FakeBackend())

    assert (budget.target_chunk_size, budget.overlap, budget.min_chunk_size) == (20_000, 1_000, 1_000)
    assert budget.hard_limit is None


def test_estimate_tokens_prefers_the_configured_counter() -> None:
    class _Counter:
        model_name = "stub"

        def count(self, text: str) -> int:
            return 42

        def estimate(self, text: str) -> int:
            return 1

    assert QuotaEstimator().estimate_tokens("") == 0
    assert QuotaEstimator().estimate_tokens("abcdefg") == 2
    assert QuotaEstimator(_Counter()).estimate_tokens("anything") == 42


def test_estimate_tokens_uses_the_backend_tokenizer_first() -> None:
    class _Counter:
        def __init__(self, value: int) -> None:
            self.model_name = "stub"
            self.value = value

        def count(self, text: str) -> int:
            return self.value

        def estimate(self, text: str) -> int:
            return 1

    backend = FakeBackend()
    estimator = QuotaEstimator(_Counter(42))

    assert estimator.estimate_tokens("anything", backend) == 42

    backend.token_counter = _Counter(7)
    assert estimator.estimate_tokens("anything", backend) == 7


def test_overlap_stays_below_half_of_a_small_capacity_target() -> None:
    estimator = QuotaEstimator()
    profile = DEFAULT_TIER_PROFILES[ProviderTier.BUILT_IN]

    budget = estimator.budget_for(profile, FakeBackend(capacity_hint=200), OperationKind.SUMMARIZE)
    plan = ChunkPlanner().plan(sentence_text(5_000), budget)

    assert budget.target_chunk_size == 500
    assert budget.overlap == 250
    assert plan.reconstruct() == sentence_text(5_000)
    starts = [chunk.start_offset for chunk in plan.chunks]
    assert all(later - earlier >= 250 for earlier, later in zip(starts, starts[1:]))
