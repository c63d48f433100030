"""Bundled verifiers."""

from verified_search.verifiers.deterministic import (
    DeterministicVerifier,
    extract_answer,
    extract_number,
)

__all__ = [
    "DeterministicVerifier",
    "extract_answer",
    "extract_number",
]
