"""
Tests for diverse decoding and MMR selection.

These tests verify:
1. lambda=1 reduces to relevance ranking
2. lambda=0 with a threshold never keeps near-duplicates
3. The near-duplicate filter, top_k and best flagging
4. Budget and failure handling
"""

from itertools import combinations

import pytest

from verified_search.core.candidate import Candidate
from verified_search.core.result import ScoredCandidate, VerificationResult
from verified_search.core.runner import VerificationRunner
from verified_search.core.verifier import FunctionVerifier
from verified_search.errors import EmptyCandidatePool, InvalidConfig
from verified_search.search.diverse import (
    DiverseDecoding,
    diverse_decoding,
    filter_near_duplicates,
    mmr_select,
)
from verified_search.search.similarity import compute_similarity, jaccard_similarity

from conftest import CycleGenerator, FailingVerifier, SlowGenerator, TableVerifier


POOL = {
    "alpha beta gamma": 0.9,
    "alpha beta gamma!": 0.85,
    "delta epsilon": 0.6,
    "zeta eta theta iota": 0.4,
    "alpha beta delta": 0.7,
}


@pytest.fixture
def pool_generator():
    return CycleGenerator(list(POOL))


@pytest.fixture
def pool_verifier():
    return TableVerifier(POOL)


def scored(content, score, order):
    return ScoredCandidate(
        Candidate(content=content, id=f"c{order}"),
        VerificationResult(f"c{order}", score=score),
        order=order,
    )


# =============================================================================
# MMR SELECTION
# =============================================================================

class TestMMRSelect:
    def test_lambda_one_is_relevance_order(self):
        pool = [scored(c, s, i) for i, (c, s) in enumerate(POOL.items())]
        selected = mmr_select(pool, k=5, lambda_=1.0)
        assert [e.score for e in selected] == sorted(POOL.values(), reverse=True)

    def test_relevance_ties_keep_generation_order(self):
        pool = [scored("x y", 0.5, 2), scored("p q", 0.5, 0), scored("m n", 0.5, 1)]
        assert [e.order for e in mmr_select(pool, k=3, lambda_=1.0)] == [0, 1, 2]

    def test_lambda_zero_prefers_dissimilar(self):
        pool = [
            scored("alpha beta gamma", 0.9, 0),
            scored("alpha beta gamma delta", 0.8, 1),
            scored("omega", 0.1, 2),
        ]
        selected = mmr_select(pool, k=2, lambda_=0.0)
        assert [e.candidate.content for e in selected] == ["alpha beta gamma", "omega"]

    def test_k_larger_than_pool(self):
        pool = [scored("a", 0.5, 0)]
        assert len(mmr_select(pool, k=10)) == 1

    def test_invalid_arguments(self):
        with pytest.raises(InvalidConfig):
            mmr_select([], k=1, lambda_=1.5)
        with pytest.raises(InvalidConfig):
            mmr_select([], k=0)


class TestNearDuplicateFilter:
    def test_drops_lower_relevance_duplicate(self):
        pool = [scored(c, s, i) for i, (c, s) in enumerate(POOL.items())]
        kept, dropped = filter_near_duplicates(pool, 0.7, compute_similarity)
        assert [e.candidate.content for e in dropped] == ["alpha beta gamma!"]
        assert kept[0].candidate.content == "alpha beta gamma"

    def test_threshold_one_keeps_everything(self):
        pool = [scored("same", 0.5, 0), scored("same", 0.4, 1)]
        kept, dropped = filter_near_duplicates(pool, 1.0, compute_similarity)
        assert len(kept) == 2
        assert dropped == []

    def test_duplicate_of_dropped_candidate_is_dropped(self):
        pool = [
            scored("w x y z", 0.9, 0),
            scored("x y z q", 0.8, 1),
            scored("y z q r", 0.7, 2),
        ]
        kept, dropped = filter_near_duplicates(pool, 0.5, jaccard_similarity)
        assert [e.candidate.content for e in kept] == ["w x y z"]
        assert [e.candidate.content for e in dropped] == ["x y z q", "y z q r"]


# =============================================================================
# SEARCH
# =============================================================================

class TestDiverseDecoding:
    def test_lambda_one_search_returns_relevance_order(self, pool_generator, pool_verifier):
        result = DiverseDecoding(num_candidates=5, diversity_threshold=None, **{"lambda": 1.0}).search(
            pool_generator, pool_verifier, "p"
        )
        assert [e.score for e in result.trace] == sorted(POOL.values(), reverse=True)
        assert result.best.content == "alpha beta gamma"

    def test_lambda_zero_respects_threshold(self, pool_generator, pool_verifier):
        threshold = 0.5
        result = DiverseDecoding(num_candidates=5, diversity_threshold=threshold, mmr_lambda=0.0).search(
            pool_generator, pool_verifier, "p"
        )
        contents = [e.candidate.content for e in result.trace]
        assert len(contents) >= 2
        for a, b in combinations(contents, 2):
            assert compute_similarity(a, b) <= threshold

    def test_best_is_highest_relevance_selected(self, pool_generator, pool_verifier):
        result = DiverseDecoding(num_candidates=5, top_k=3, mmr_lambda=0.0).search(
            pool_generator, pool_verifier, "p"
        )
        assert result.best_score == max(e.score for e in result.trace)
        assert result.metadata["best_id"] == result.best.id

    def test_top_k(self, pool_generator, pool_verifier):
        result = diverse_decoding(pool_generator, pool_verifier, "p", num_candidates=5, top_k=2)
        assert len(result.trace) == 2
        assert result.iterations == 2
        assert len(result.history) == 2

    def test_filtered_candidates_reported(self, pool_generator, pool_verifier):
        result = DiverseDecoding(num_candidates=5).search(pool_generator, pool_verifier, "p")
        assert result.metadata["pool_size"] == 5
        assert result.metadata["filtered_out"] == ["c1"]
        assert "alpha beta gamma!" not in [e.candidate.content for e in result.trace]

    def test_temperatures_spread(self, pool_generator, pool_verifier):
        DiverseDecoding(num_candidates=5, temperature_range=(0.0, 1.0)).search(
            pool_generator, pool_verifier, "p"
        )
        temperatures = [call.temperature for call in pool_generator.calls]
        assert temperatures == pytest.approx([0.0, 0.25, 0.5, 0.75, 1.0])

    def test_deterministic(self, pool_verifier):
        first = DiverseDecoding(num_candidates=5, top_k=3).search(CycleGenerator(list(POOL)), pool_verifier, "p")
        second = DiverseDecoding(num_candidates=5, top_k=3).search(CycleGenerator(list(POOL)), pool_verifier, "p")
        assert [e.candidate.id for e in first.trace] == [e.candidate.id for e in second.trace]
        assert first.best.id == second.best.id

    def test_budget(self, pool_generator, pool_verifier):
        result = DiverseDecoding(num_candidates=5, budget=3).search(pool_generator, pool_verifier, "p")
        assert len(pool_generator.calls) == 3
        assert result.budget_exhausted
        assert result.stop_reason == "budget"
        assert result.total_evaluations == 3

    def test_deadline_returns_partial_result(self, pool_verifier):
        generator = SlowGenerator(CycleGenerator(list(POOL)), delay=0.02)
        result = DiverseDecoding(num_candidates=50, timeout=0.1).search(generator, pool_verifier, "p")
        assert result.budget_exhausted
        assert result.stop_reason == "deadline"
        assert result.best is not None
        assert result.best.content in POOL
        assert len(generator.calls) < 50

    def test_failed_scores_are_dropped(self, pool_generator):
        def picky(candidate, context):
            if "alpha" in candidate.content:
                raise ValueError("cannot judge")
            return 0.5

        result = DiverseDecoding(num_candidates=5, diversity_threshold=None).search(
            pool_generator, FunctionVerifier(picky), "p"
        )
        assert result.metadata["pool_size"] == 2
        assert all("alpha" not in e.candidate.content for e in result.trace)

    def test_empty_pool(self, pool_generator):
        with pytest.raises(EmptyCandidatePool):
            DiverseDecoding(num_candidates=3).search(
                pool_generator, VerificationRunner([FailingVerifier()]), "p"
            )

    @pytest.mark.parametrize("options", [
        {"num_candidates": 0},
        {"num_candidates": 101},
        {"lambda": 1.5},
        {"diversity_threshold": 2.0},
        {"temperature_range": (0.8, 0.2)},
    ])
    def test_invalid_options(self, options):
        with pytest.raises(InvalidConfig):
            DiverseDecoding(**options)
