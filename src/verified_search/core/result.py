"""Verification results and scored candidates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from verified_search.core.candidate import Candidate


def merge_step_scores(
    first: Optional[Dict[str, float]],
    second: Optional[Dict[str, float]],
) -> Optional[Dict[str, float]]:
    """
    Combine two step-score maps.

    Keys present in both take the value from ``second``. Returns None only
    when both inputs are None.
    """
    if first is None and second is None:
        return None
    merged = dict(first or {})
    merged.update(second or {})
    return merged


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of scoring one candidate.

    Produced once per (verifier, candidate) pair, and once more by the
    runner for the aggregate. ``score`` is None when no score could be
    produced; such results are failures and never treated as 0.0.
    """

    candidate_id: str
    score: Optional[float] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    step_scores: Optional[Dict[str, float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Aggregated scores may exceed 1.0 under "sum", so only confidence is bounded.
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @property
    def is_failure(self) -> bool:
        """True when this result carries no score."""
        return self.score is None

    def merge_step_scores(self, other: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        """Merge ``other`` over this result's step scores."""
        return merge_step_scores(self.step_scores, other)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "candidate_id": self.candidate_id,
            "score": self.score,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "step_scores": dict(self.step_scores) if self.step_scores is not None else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationResult":
        """Load a result from a dictionary produced by ``to_dict``."""
        step_scores = data.get("step_scores")
        return cls(
            candidate_id=data["candidate_id"],
            score=data.get("score"),
            confidence=data.get("confidence"),
            reasoning=data.get("reasoning"),
            step_scores=dict(step_scores) if step_scores is not None else None,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ScoredCandidate:
    """
    A candidate paired with its aggregated verification result.

    ``order`` is the position in which the candidate was generated during a
    search; lower values win score ties.
    """

    candidate: Candidate
    result: VerificationResult
    order: int = 0

    @property
    def score(self) -> float:
        return self.result.score if self.result.score is not None else float("-inf")

    @property
    def sort_key(self) -> tuple:
        """Descending score, then earliest generated."""
        return (-self.score, self.order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "result": self.result.to_dict(),
            "order": self.order,
        }
