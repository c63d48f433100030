"""
Deterministic verifier: compares an extracted answer with a known ground truth.

No model is involved, so scores are exactly 1.0 or 0.0 and confidence is
always 1.0. Useful for math and QA tasks with a single right answer, and as
the cheap member of a verifier ensemble.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Pattern, Union

from verified_search.core.candidate import Candidate
from verified_search.core.result import VerificationResult
from verified_search.core.verifier import Verifier
from verified_search.errors import InvalidConfig


COMPARISON_TYPES = ("exact", "numerical", "regex")

# Checked in order; the first match wins.
_ANSWER_PATTERNS = [
    re.compile(r"\\boxed\{([^{}]*)\}"),
    re.compile(r"final answer:\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"answer:\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"the answer is:?\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:therefore|thus|result):\s*(.+?)(?:\n|$)", re.IGNORECASE),
]

_NUMBER = re.compile(r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?")


def extract_answer(content: str) -> str:
    """
    Pull the final answer out of a candidate's text.

    Looks for ``\\boxed{...}``, then an ``Answer:``-style marker, and falls
    back to the last non-empty line.
    """
    content = content.strip()
    for pattern in _ANSWER_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(1).strip()

    lines = [line for line in content.splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


def extract_number(value: Any) -> Optional[float]:
    """First number in ``value`` (thousands separators ignored), or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _NUMBER.search(value.replace(",", ""))
    return float(match.group()) if match else None


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


class DeterministicVerifier(Verifier):
    """
    Rule-based verifier with exact, numerical or regex comparison.

    Example:
        >>> verifier = DeterministicVerifier(ground_truth="345", comparison_type="numerical")
        >>> verifier.verify(Candidate(content="15*23 is 345. The answer is 345"), {}).score
        1.0

    A ground truth can also be given per call as ``context["ground_truth"]``,
    which overrides the configured one.
    """

    def __init__(
        self,
        ground_truth: Union[str, float, int, Pattern, None] = None,
        comparison_type: str = "exact",
        tolerance: Optional[float] = None,
        case_sensitive: bool = False,
        normalize_whitespace: bool = True,
    ):
        if comparison_type not in COMPARISON_TYPES:
            raise InvalidConfig(
                f"comparison_type must be one of {COMPARISON_TYPES}, got {comparison_type!r}"
            )
        if tolerance is not None and tolerance < 0:
            raise InvalidConfig(f"tolerance must be >= 0, got {tolerance}")

        self.comparison_type = comparison_type
        self.tolerance = tolerance if tolerance is not None else 0.0
        self.case_sensitive = case_sensitive
        self.normalize_whitespace = normalize_whitespace
        self.ground_truth = ground_truth
        if ground_truth is not None:
            self._check_ground_truth(ground_truth)

    @property
    def name(self) -> str:
        return f"deterministic_{self.comparison_type}"

    def verify(self, candidate: Candidate, context: Mapping[str, Any]) -> VerificationResult:
        ground_truth = context.get("ground_truth", self.ground_truth)
        if ground_truth is None:
            raise ValueError("no ground truth configured or given in context")
        self._check_ground_truth(ground_truth)

        answer = extract_answer(candidate.content)
        score = self._compare(answer, ground_truth)

        if score == 1.0:
            reasoning = f"Match found using {self.comparison_type} comparison"
        else:
            reasoning = f"No match: expected {_describe(ground_truth)!r}, got {answer[:80]!r}"

        return VerificationResult(
            candidate_id=candidate.id,
            score=score,
            confidence=1.0,
            reasoning=reasoning,
            metadata={"extracted_answer": answer, "comparison_type": self.comparison_type},
        )

    def _compare(self, answer: str, ground_truth: Any) -> float:
        if self.comparison_type == "numerical":
            answer_num = extract_number(answer)
            truth_num = extract_number(ground_truth)
            if answer_num is None or truth_num is None:
                return 0.0
            return 1.0 if abs(answer_num - truth_num) <= self.tolerance else 0.0

        if self.comparison_type == "regex":
            pattern = ground_truth if isinstance(ground_truth, re.Pattern) else re.compile(ground_truth)
            return 1.0 if pattern.search(answer) else 0.0

        expected = str(ground_truth)
        if self.normalize_whitespace:
            answer = _normalize_whitespace(answer)
            expected = _normalize_whitespace(expected)
        if not self.case_sensitive:
            answer = answer.lower()
            expected = expected.lower()
        return 1.0 if answer == expected else 0.0

    def _check_ground_truth(self, ground_truth: Any) -> None:
        if self.comparison_type == "numerical" and extract_number(ground_truth) is None:
            raise InvalidConfig(
                f"numerical comparison needs a numeric ground truth, got {ground_truth!r}"
            )
        if self.comparison_type == "regex" and not isinstance(ground_truth, re.Pattern):
            try:
                re.compile(ground_truth)
            except (re.error, TypeError) as exc:
                raise InvalidConfig(f"invalid regex ground truth: {exc}") from exc


def _describe(ground_truth: Any) -> str:
    if isinstance(ground_truth, re.Pattern):
        return ground_truth.pattern
    return str(ground_truth)
