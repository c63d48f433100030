"""
Configuration schema for verification-guided search.

All configuration classes use Pydantic for validation. The main Config class
combines every section and can be loaded from YAML files.

Key configuration areas:
- RunnerConfig: How verifiers are executed and their scores combined
- BeamSearchConfig: Beam width, depth and branching
- MCTSConfig: Simulation count, UCB1 exploration and tree shape
- DiverseDecodingConfig: Candidate pool size and MMR trade-off
- SimilarityConfig: Weights of the combined similarity metric
- OutputConfig: Logging verbosity
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, model_validator


class RunnerConfig(BaseModel):
    """
    Configuration for the VerificationRunner.

    Aggregation strategies:
    - **weighted_avg**: sum(score * weight) / sum(weight) (default)
    - **max** / **min**: best / worst surviving score, weights ignored
    - **sum** / **product**: sum / product of surviving scores, weights ignored

    Error strategies:
    - **continue**: drop the failed verifier's contribution and carry on
    - **halt**: abort on the first failure
    """

    parallel: bool = False
    aggregation: Literal["weighted_avg", "max", "min", "sum", "product"] = "weighted_avg"
    on_error: Literal["continue", "halt"] = "continue"
    timeout: float = Field(default=30.0, gt=0)        # Seconds
    max_workers: int = Field(default=4, ge=1)         # Worker pool bound when parallel

    class Config:
        extra = "forbid"


class SimilarityConfig(BaseModel):
    """Weights of the combined Jaccard / edit-distance similarity."""

    jaccard_weight: float = Field(default=0.5, ge=0, le=1)
    edit_weight: float = Field(default=0.5, ge=0, le=1)

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "SimilarityConfig":
        if abs(self.jaccard_weight + self.edit_weight - 1.0) > 1e-9:
            raise ValueError(
                "jaccard_weight + edit_weight must equal 1.0, got "
                f"{self.jaccard_weight + self.edit_weight}"
            )
        return self


class SearchConfig(BaseModel):
    """
    Settings shared by every search algorithm.

    Attributes:
        timeout: Wall-clock limit in seconds for the whole search (None = unlimited)
        budget: Maximum candidate verifications (None = whatever the algorithm needs)
        max_retries: Retries per generation on a recoverable generator failure
        temperature_range: (min, max) sampling temperatures spread across candidates
        convergence_window: Stop once the best score has not improved by more
            than convergence_epsilon over this many iterations (None = off)
        convergence_epsilon: Minimum improvement that counts as progress
    """

    timeout: Optional[float] = Field(default=None, gt=0)
    budget: Optional[int] = Field(default=None, ge=1)
    max_retries: int = Field(default=2, ge=0, le=10)
    temperature_range: Tuple[float, float] = (0.0, 1.0)
    convergence_window: Optional[int] = Field(default=None, ge=1)
    convergence_epsilon: float = Field(default=1e-3, ge=0)

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def _check_temperature_range(self) -> "SearchConfig":
        low, high = self.temperature_range
        if low < 0.0 or high > 2.0 or low > high:
            raise ValueError(
                f"temperature_range must satisfy 0 <= min <= max <= 2, got {self.temperature_range}"
            )
        return self


class BeamSearchConfig(SearchConfig):
    """
    Configuration for beam search.

    - beam_width: candidates kept between depths (1 = greedy search)
    - depth: expansion rounds after the initial beam
    - branching_factor: continuations generated per beam member per round
    """

    beam_width: int = Field(default=5, ge=1, le=100)
    depth: int = Field(default=3, ge=1, le=20)
    branching_factor: int = Field(default=2, ge=1, le=10)
    terminal_markers: Tuple[str, ...] = ("final answer:", "\\boxed{")


class MCTSConfig(SearchConfig):
    """
    Configuration for Monte-Carlo tree search.

    Tuning Guide:
        - More simulations = better results but slower
        - Higher exploration_constant = wider tree
        - Lower exploration_constant = faster commitment to one branch
        - Typical exploration_constant: 1.0 to 2.0 (sqrt(2) by default)
    """

    simulations: int = Field(default=100, ge=1, le=10000)
    exploration_constant: float = Field(default=1.414, gt=0, le=10)
    max_depth: int = Field(default=10, ge=1, le=100)
    max_children: int = Field(default=3, ge=1, le=50)
    terminal_markers: Tuple[str, ...] = ("final answer:", "\\boxed{")


class DiverseDecodingConfig(SearchConfig):
    """
    Configuration for diverse decoding with Maximal Marginal Relevance.

    ``lambda`` trades relevance (1.0) against diversity (0.0). Candidates more
    similar than ``diversity_threshold`` to a higher-relevance candidate are
    dropped before MMR runs (None disables the filter).
    """

    num_candidates: int = Field(default=10, ge=1, le=100)
    diversity_threshold: Optional[float] = Field(default=0.7, ge=0, le=1)
    mmr_lambda: float = Field(default=0.5, ge=0, le=1, alias="lambda")
    top_k: Optional[int] = Field(default=None, ge=1)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)

    class Config:
        extra = "forbid"
        populate_by_name = True


class OutputConfig(BaseModel):
    """Configuration for output settings."""
    verbosity: Literal["silent", "minimal", "normal", "verbose", "debug"] = "normal"

    class Config:
        extra = "forbid"


class Config(BaseModel):
    """
    Main configuration for verification-guided search.

    Usage Patterns:

    **Default Configuration**:
    >>> config = Config()

    **Programmatic Customization**:
    >>> config = Config()
    >>> config.runner.parallel = True
    >>> config.beam.beam_width = 3

    **YAML Configuration**:
    >>> config = Config.from_yaml("search.yaml")
    >>> config.to_yaml("search_copy.yaml")
    """

    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    beam: BeamSearchConfig = Field(default_factory=BeamSearchConfig)
    mcts: MCTSConfig = Field(default_factory=MCTSConfig)
    diverse: DiverseDecodingConfig = Field(default_factory=DiverseDecodingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    class Config:
        extra = "forbid"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Load configuration from a dictionary."""
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return self.model_dump(mode="json", by_alias=True)


def get_default_config() -> Config:
    """Get a default configuration with sensible defaults for quick runs."""
    return Config(
        runner=RunnerConfig(parallel=False, aggregation="weighted_avg"),
        beam=BeamSearchConfig(beam_width=3, depth=2, branching_factor=2),
        mcts=MCTSConfig(simulations=50, max_depth=5),
        diverse=DiverseDecodingConfig(num_candidates=8, top_k=3),
    )
