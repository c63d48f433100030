"""Candidate value type shared by generators, verifiers and search algorithms."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional


DEFAULT_TERMINAL_MARKERS = ("final answer:", "\\boxed{")


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Candidate:
    """
    One generated response to a prompt.

    Candidates are immutable. Attaching a score produces a new candidate via
    ``with_score``; the original is never modified.

    Attributes:
        content: The answer text
        id: Unique identifier (random hex if not given)
        reasoning: Optional reasoning trace that led to the answer
        score: Verification score, None until scored
        tokens_used: Tokens consumed generating this candidate
        model: Name of the model that produced it
        created_at: Creation timestamp (UTC)
        metadata: Free-form generator metadata
    """

    content: str
    id: str = field(default_factory=_new_id)
    reasoning: Optional[str] = None
    score: Optional[float] = None
    tokens_used: Optional[int] = None
    model: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(self.id)

    def with_score(self, score: float | None) -> "Candidate":
        """Return a copy of this candidate carrying ``score``."""
        return replace(self, score=score)

    def is_terminal(self, markers: Iterable[str] = DEFAULT_TERMINAL_MARKERS) -> bool:
        """
        Whether this candidate is a finished answer.

        A candidate is terminal when its metadata carries ``terminal=True`` or
        its content contains one of the final-answer markers (case-insensitive).
        """
        if self.metadata.get("terminal"):
            return True
        lowered = self.content.lower()
        return any(marker.lower() in lowered for marker in markers)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "id": self.id,
            "content": self.content,
            "reasoning": self.reasoning,
            "score": self.score,
            "tokens_used": self.tokens_used,
            "model": self.model,
            "created_at": self.created_at.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        """Load a candidate from a dictionary produced by ``to_dict``."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        kwargs: Dict[str, Any] = {
            "content": data["content"],
            "reasoning": data.get("reasoning"),
            "score": data.get("score"),
            "tokens_used": data.get("tokens_used"),
            "model": data.get("model"),
            "metadata": dict(data.get("metadata") or {}),
        }
        if data.get("id") is not None:
            kwargs["id"] = data["id"]
        if created_at is not None:
            kwargs["created_at"] = created_at
        return cls(**kwargs)
