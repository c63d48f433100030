"""Tests for the candidate and verification result value types."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from verified_search.core.candidate import Candidate
from verified_search.core.result import (
    ScoredCandidate,
    VerificationResult,
    merge_step_scores,
)


class TestCandidate:
    def test_defaults(self):
        candidate = Candidate(content="345")
        assert candidate.score is None
        assert len(candidate.id) == 32
        assert candidate.created_at.tzinfo is not None
        assert candidate.metadata == {}

    def test_immutable(self):
        candidate = Candidate(content="345")
        with pytest.raises(FrozenInstanceError):
            candidate.score = 1.0

    def test_with_score_returns_new_candidate(self):
        candidate = Candidate(content="345", id="a")
        scored = candidate.with_score(0.9)
        assert scored.score == 0.9
        assert candidate.score is None
        assert scored.id == candidate.id

    def test_hashable_with_metadata(self):
        candidate = Candidate(content="345", id="a", metadata={"source": "sampler"})
        seen = {candidate, candidate}
        assert len(seen) == 1
        assert hash(candidate) == hash(candidate.with_score(0.5))
        assert {candidate: 1}[candidate] == 1

    def test_round_trip(self):
        candidate = Candidate(
            content="15*23 = 345",
            id="cand-1",
            reasoning="15*20 + 15*3",
            score=0.75,
            tokens_used=12,
            model="test-model",
            created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            metadata={"temperature": 0.3},
        )
        assert Candidate.from_dict(candidate.to_dict()) == candidate

    @pytest.mark.parametrize("content,terminal", [
        ("Final Answer: 345", True),
        ("so \\boxed{345}", True),
        ("15*23 is probably", False),
    ])
    def test_is_terminal_markers(self, content, terminal):
        assert Candidate(content=content).is_terminal() is terminal

    def test_is_terminal_metadata_flag(self):
        assert Candidate(content="step", metadata={"terminal": True}).is_terminal()

    def test_custom_markers(self):
        assert Candidate(content="DONE").is_terminal(markers=("done",))


class TestVerificationResult:
    def test_round_trip(self):
        result = VerificationResult(
            candidate_id="cand-1",
            score=0.5,
            confidence=0.8,
            reasoning="partially correct",
            step_scores={"step_1": 1.0, "step_2": 0.0},
            metadata={"verifier": "x"},
        )
        assert VerificationResult.from_dict(result.to_dict()) == result

    def test_round_trip_failure(self):
        result = VerificationResult(candidate_id="cand-1")
        restored = VerificationResult.from_dict(result.to_dict())
        assert restored == result
        assert restored.is_failure

    def test_confidence_bounds(self):
        with pytest.raises(ValueError):
            VerificationResult(candidate_id="x", score=0.5, confidence=1.5)

    def test_merge_step_scores_last_write_wins(self):
        merged = merge_step_scores({"a": 0.1, "b": 0.2}, {"b": 0.9, "c": 0.3})
        assert merged == {"a": 0.1, "b": 0.9, "c": 0.3}

    def test_merge_step_scores_none(self):
        assert merge_step_scores(None, None) is None
        assert merge_step_scores(None, {"a": 1.0}) == {"a": 1.0}

    def test_merge_method(self):
        result = VerificationResult(candidate_id="x", step_scores={"a": 0.0})
        assert result.merge_step_scores({"a": 1.0}) == {"a": 1.0}


class TestScoredCandidate:
    def test_sort_key_orders_by_score_then_order(self):
        a = ScoredCandidate(Candidate(content="a"), VerificationResult("a", score=0.5), order=2)
        b = ScoredCandidate(Candidate(content="b"), VerificationResult("b", score=0.9), order=3)
        c = ScoredCandidate(Candidate(content="c"), VerificationResult("c", score=0.5), order=1)
        ranked = sorted([a, b, c], key=lambda e: e.sort_key)
        assert [e.candidate.content for e in ranked] == ["b", "c", "a"]

    def test_failure_scores_negative_infinity(self):
        entry = ScoredCandidate(Candidate(content="a"), VerificationResult("a"))
        assert entry.score == float("-inf")
