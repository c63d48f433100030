"""Generator capability consumed by the search algorithms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from verified_search.core.candidate import Candidate


@dataclass(frozen=True)
class SamplingOptions:
    """
    How a generator should sample one candidate.

    Attributes:
        temperature: Sampling temperature
        parent: Candidate this one should continue/expand (None at the root)
        path: Ancestor candidates from the root down to ``parent``
        depth: Depth of the candidate being generated (root prompt = 0)
        index: Position among siblings generated in the same step
        metadata: Extra algorithm-specific hints
    """

    temperature: float = 0.7
    parent: Optional[Candidate] = None
    path: Tuple[Candidate, ...] = ()
    depth: int = 0
    index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


class Generator(ABC):
    """
    Abstract base class for candidate generators.

    Implementations wrap a model or service. A failed call should raise
    ``GeneratorFailure``; with ``recoverable=False`` the calling search aborts,
    otherwise only the one candidate is lost.
    """

    @abstractmethod
    def generate(self, prompt: str, options: SamplingOptions) -> Candidate:
        """Produce one candidate for ``prompt``."""
        pass

    def generate_batch(
        self,
        prompt: str,
        n: int,
        options: SamplingOptions,
    ) -> List[Candidate]:
        """Produce ``n`` candidates. Override when the backend batches natively."""
        return [self.generate(prompt, options) for _ in range(n)]
