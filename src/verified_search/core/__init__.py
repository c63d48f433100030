"""Core components: data model, capability interfaces and the verification runner."""

from verified_search.core.candidate import Candidate, DEFAULT_TERMINAL_MARKERS
from verified_search.core.result import VerificationResult, ScoredCandidate, merge_step_scores
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.verifier import Verifier, FunctionVerifier, build_verifier
from verified_search.core.runner import (
    Aggregation,
    ErrorPolicy,
    VerificationRunner,
    VerifierSpec,
    aggregate_scores,
)

__all__ = [
    "Candidate",
    "DEFAULT_TERMINAL_MARKERS",
    "VerificationResult",
    "ScoredCandidate",
    "merge_step_scores",
    "Generator",
    "SamplingOptions",
    "Verifier",
    "FunctionVerifier",
    "build_verifier",
    "Aggregation",
    "ErrorPolicy",
    "VerificationRunner",
    "VerifierSpec",
    "aggregate_scores",
]
