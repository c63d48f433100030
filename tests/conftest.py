"""Pytest configuration and fixtures."""

import threading
import time
import zlib

import pytest

from verified_search.core.candidate import Candidate
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.result import VerificationResult
from verified_search.core.verifier import Verifier
from verified_search.errors import GeneratorFailure
from verified_search.utils.logging import LogLevel, set_verbosity


# =============================================================================
# GENERATORS
# =============================================================================

class CycleGenerator(Generator):
    """Returns contents from a fixed cycle, ignoring the sampling options."""

    def __init__(self, contents):
        self.contents = list(contents)
        self.calls = []

    def generate(self, prompt: str, options: SamplingOptions) -> Candidate:
        index = len(self.calls)
        self.calls.append(options)
        return Candidate(content=self.contents[index % len(self.contents)], id=f"c{index}")


class PathGenerator(Generator):
    """
    Content encodes the path: roots are "r<i>", continuations append ".<i>".

    Deterministic, so two searches over it generate identical trees.
    """

    def __init__(self, terminal_at_depth=None):
        self.calls = []
        self.terminal_at_depth = terminal_at_depth

    def generate(self, prompt: str, options: SamplingOptions) -> Candidate:
        self.calls.append(options)
        if options.parent is None:
            content = f"r{options.index}"
        else:
            content = f"{options.parent.content}.{options.index}"
        metadata = {}
        if self.terminal_at_depth is not None and options.depth >= self.terminal_at_depth:
            metadata["terminal"] = True
        return Candidate(content=content, id=f"{content}@{len(self.calls)}", metadata=metadata)


class FlakyGenerator(Generator):
    """Fails the first ``failures`` calls, then delegates."""

    def __init__(self, inner, failures, recoverable=True):
        self.inner = inner
        self.failures = failures
        self.recoverable = recoverable
        self.attempts = 0

    def generate(self, prompt: str, options: SamplingOptions) -> Candidate:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise GeneratorFailure("rate limited", recoverable=self.recoverable)
        return self.inner.generate(prompt, options)


class SlowGenerator(Generator):
    """Delegates to ``inner`` after sleeping ``delay`` seconds per call."""

    def __init__(self, inner, delay):
        self.inner = inner
        self.delay = delay

    @property
    def calls(self):
        return self.inner.calls

    def generate(self, prompt: str, options: SamplingOptions) -> Candidate:
        time.sleep(self.delay)
        return self.inner.generate(prompt, options)


# =============================================================================
# VERIFIERS
# =============================================================================

def hashed_score(content: str) -> float:
    """Stable pseudo-random score in [0, 1) derived from the content."""
    return (zlib.crc32(content.encode()) % 1000) / 1000


class ConstantVerifier(Verifier):
    def __init__(self, score, name="constant", confidence=None):
        self.score = score
        self._name = name
        self.confidence = confidence
        self.calls = 0

    @property
    def name(self):
        return self._name

    def verify(self, candidate, context):
        self.calls += 1
        return VerificationResult(candidate_id=candidate.id, score=self.score,
                                  confidence=self.confidence, reasoning=f"{self._name} ok")


class TableVerifier(Verifier):
    """Scores by exact content lookup, falling back to a default."""

    def __init__(self, table, default=0.0):
        self.table = dict(table)
        self.default = default
        self.seen = []

    def verify(self, candidate, context):
        self.seen.append(candidate.content)
        return VerificationResult(candidate_id=candidate.id,
                                  score=self.table.get(candidate.content, self.default))


class HashVerifier(Verifier):
    def verify(self, candidate, context):
        return VerificationResult(candidate_id=candidate.id, score=hashed_score(candidate.content))


class FailingVerifier(Verifier):
    def __init__(self, name="failing"):
        self._name = name

    @property
    def name(self):
        return self._name

    def verify(self, candidate, context):
        raise RuntimeError("verifier backend unavailable")


class SlowVerifier(Verifier):
    def __init__(self, delay, score=1.0, name="slow"):
        self.delay = delay
        self.score = score
        self._name = name
        self.released = threading.Event()

    @property
    def name(self):
        return self._name

    def verify(self, candidate, context):
        self.released.wait(self.delay)
        return VerificationResult(candidate_id=candidate.id, score=self.score)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep test output free of search progress logs."""
    set_verbosity(LogLevel.SILENT)
    yield
    set_verbosity(LogLevel.NORMAL)


@pytest.fixture
def sample_prompt():
    return "What is 15*23?"


@pytest.fixture
def majority_generator():
    """Returns "345" seven times out of ten and "350" otherwise."""
    return CycleGenerator(["345", "350", "345", "345", "350", "345", "345", "350", "345", "345"])


@pytest.fixture
def answer_verifier():
    """1.0 for the correct product, 0.0 for anything else."""
    return TableVerifier({"345": 1.0, "350": 0.0})


@pytest.fixture
def path_generator():
    return PathGenerator()


@pytest.fixture
def hash_verifier():
    return HashVerifier()


@pytest.fixture
def make_candidate():
    def _make(content="345", **kwargs):
        return Candidate(content=content, **kwargs)
    return _make


@pytest.fixture
def slow_verifier():
    verifier = SlowVerifier(delay=5.0)
    yield verifier
    verifier.released.set()


@pytest.fixture
def timer():
    return time.perf_counter
