"""Verifier capability: a pluggable scorer for candidates."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Union

from verified_search.core.candidate import Candidate
from verified_search.core.result import VerificationResult
from verified_search.errors import InvalidConfig


class Verifier(ABC):
    """
    Abstract base class for verifiers.

    A verifier is an opaque scoring function. ``context`` is an open key/value
    bag (prompt, ground truth, step index, ...) passed through untouched.
    Failures are signalled by raising; the runner decides what to do with them.
    """

    @property
    def name(self) -> str:
        """Name used in aggregated metadata and logs."""
        return type(self).__name__

    @abstractmethod
    def verify(self, candidate: Candidate, context: Mapping[str, Any]) -> VerificationResult:
        """Score one candidate."""
        pass

    def verify_batch(
        self,
        candidates: List[Candidate],
        context: Mapping[str, Any],
    ) -> List[VerificationResult]:
        """Score several candidates. Override to share warm-up work."""
        return [self.verify(candidate, context) for candidate in candidates]


ScoreFunction = Callable[[Candidate, Mapping[str, Any]], Union[float, VerificationResult]]


class FunctionVerifier(Verifier):
    """
    Adapts a plain callable into a Verifier.

    The callable may return a bare float score or a full VerificationResult.

    Example:
        >>> verifier = FunctionVerifier(lambda c, ctx: 1.0 if "345" in c.content else 0.0)
    """

    def __init__(self, fn: ScoreFunction, name: str | None = None, confidence: float | None = None):
        self.fn = fn
        self._name = name or getattr(fn, "__name__", "function")
        self.confidence = confidence

    @property
    def name(self) -> str:
        return self._name

    def verify(self, candidate: Candidate, context: Mapping[str, Any]) -> VerificationResult:
        outcome = self.fn(candidate, context)
        if isinstance(outcome, VerificationResult):
            return outcome
        return VerificationResult(
            candidate_id=candidate.id,
            score=float(outcome),
            confidence=self.confidence,
        )


def verifier_name(verifier: Any) -> str:
    """Best-effort display name for a verifier instance or class."""
    name = getattr(verifier, "name", None)
    if isinstance(name, str):
        return name
    if isinstance(verifier, type):
        return verifier.__name__
    return type(verifier).__name__


def build_verifier(verifier: Any, config: Dict[str, Any]) -> Verifier:
    """
    Resolve a configured verifier into an instance.

    Classes are instantiated with ``config`` as keyword arguments; instances
    are used as-is and must not carry a config.
    """
    if isinstance(verifier, type):
        if not issubclass(verifier, Verifier):
            raise InvalidConfig(f"{verifier.__name__} is not a Verifier subclass")
        try:
            return verifier(**config)
        except TypeError as exc:
            raise InvalidConfig(f"cannot build {verifier.__name__}: {exc}") from exc

    if not callable(getattr(verifier, "verify", None)):
        raise InvalidConfig(f"{verifier_name(verifier)} has no verify() method")
    if config:
        raise InvalidConfig(
            f"config given for already-built verifier {verifier_name(verifier)}"
        )
    return verifier
