"""Exception types raised by the verification and search layers."""

from __future__ import annotations

from typing import Dict


class SearchError(Exception):
    """Base class for all errors raised by this package."""


class InvalidConfig(SearchError, ValueError):
    """Construction parameters or search options are invalid."""


class GeneratorFailure(SearchError):
    """
    A generator call failed.

    Recoverable failures (rate limits, timeouts) only cost the one candidate
    being generated. Unrecoverable failures abort the whole search.
    """

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class VerifierFailure(SearchError):
    """A single verifier failed or timed out on a candidate."""

    def __init__(self, verifier: str, candidate_id: str, cause: str):
        super().__init__(
            f"verifier {verifier!r} failed on candidate {candidate_id}: {cause}"
        )
        self.verifier = verifier
        self.candidate_id = candidate_id
        self.cause = cause


class AllVerifiersFailed(SearchError):
    """Every configured verifier failed on a candidate, so it has no score."""

    def __init__(self, candidate_id: str, failures: Dict[str, str]):
        names = ", ".join(sorted(failures)) or "none"
        super().__init__(
            f"all verifiers failed on candidate {candidate_id} ({names})"
        )
        self.candidate_id = candidate_id
        self.failures = dict(failures)


class EmptyBeam(SearchError):
    """Beam search has no scored candidates to work with."""


class EmptyCandidatePool(SearchError):
    """A search produced no scored candidates to select from."""
