"""
Shared contract for search algorithms.

Every algorithm exposes ``search(generator, verifier, initial_input, options)``
and returns a SearchResult. The helpers here cover what all of them share:
option validation, generation with bounded retries, temperature spreading and
batch scoring through the VerificationRunner.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError

from verified_search.config import SearchConfig
from verified_search.core.candidate import Candidate
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.result import ScoredCandidate
from verified_search.core.runner import VerificationRunner
from verified_search.errors import GeneratorFailure, InvalidConfig
from verified_search.search import state as st
from verified_search.search.state import SearchState
from verified_search.utils.logging import LogLevel, log_event


@dataclass
class SearchResult:
    """
    Result of one search invocation.

    Attributes:
        best: Winning candidate, carrying its aggregated score
        best_score: Score of ``best``
        trace: Algorithm-specific trace (final beam, best tree path, selected set)
        iterations: Completed iterations (depths, simulations, selection rounds)
        converged: Whether the search stopped because it converged
        budget_exhausted: Whether budget or deadline cut the search short;
            the result is then a valid partial answer
        stop_reason: Why the search stopped ("completed", "budget", "deadline",
            "converged", "all_terminal", ...)
        total_evaluations: Candidate verifications performed
        history: Per-iteration progress records
        metadata: Algorithm-specific extras
    """

    best: Candidate
    best_score: float
    trace: List[Any]
    iterations: int
    converged: bool
    budget_exhausted: bool = False
    stop_reason: str = "completed"
    total_evaluations: int = 0
    history: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary; trace entries with ``to_dict`` are converted too."""
        return {
            "best": self.best.to_dict(),
            "best_score": self.best_score,
            "trace": [t.to_dict() if hasattr(t, "to_dict") else t for t in self.trace],
            "iterations": self.iterations,
            "converged": self.converged,
            "budget_exhausted": self.budget_exhausted,
            "stop_reason": self.stop_reason,
            "total_evaluations": self.total_evaluations,
            "history": list(self.history),
            "metadata": dict(self.metadata),
        }


def resolve_config(
    config_class: Type[SearchConfig],
    base: Optional[SearchConfig | Mapping[str, Any]] = None,
    overrides: Optional[SearchConfig | Mapping[str, Any]] = None,
) -> SearchConfig:
    """
    Validate an options bag against an algorithm's config model.

    ``base`` and ``overrides`` may each be a config instance or a mapping of
    recognized keys; overrides win.

    Raises:
        InvalidConfig: On unknown keys or out-of-range values
    """
    if isinstance(overrides, config_class) and base is None:
        return overrides

    aliases = {
        info.alias: name
        for name, info in config_class.model_fields.items()
        if info.alias
    }

    data: Dict[str, Any] = {}
    for source in (base, overrides):
        if source is None:
            continue
        if isinstance(source, BaseModel):
            source = source.model_dump(exclude_unset=source is overrides)
        elif not isinstance(source, Mapping):
            raise InvalidConfig(
                f"{config_class.__name__} options must be a mapping, got {type(source).__name__}"
            )
        for key, value in source.items():
            data[aliases.get(key, key)] = value

    try:
        return config_class.model_validate(data)
    except ValidationError as exc:
        raise InvalidConfig(f"invalid {config_class.__name__} options: {exc}") from exc


def temperature_schedule(n: int, temperature_range: Tuple[float, float]) -> List[float]:
    """Spread ``n`` sampling temperatures linearly over ``temperature_range``."""
    low, high = temperature_range
    if n <= 1:
        return [low] * max(n, 0)
    step = (high - low) / (n - 1)
    return [low + step * i for i in range(n)]


def generate_with_retry(
    generator: Generator,
    prompt: str,
    options: SamplingOptions,
    max_retries: int,
) -> Optional[Candidate]:
    """
    Ask the generator for one candidate, retrying recoverable failures.

    Returns None once the retries are used up, so the caller only loses this
    one candidate.

    Raises:
        GeneratorFailure: If the generator signals an unrecoverable failure
    """
    cause = None
    for attempt in range(max_retries + 1):
        try:
            candidate = generator.generate(prompt, options)
        except GeneratorFailure as exc:
            if not exc.recoverable:
                raise
            cause = f"{type(exc).__name__}: {exc}"
        except Exception as exc:
            cause = f"{type(exc).__name__}: {exc}"
        else:
            if isinstance(candidate, Candidate):
                return candidate
            cause = f"returned {type(candidate).__name__}, expected Candidate"

        log_event("generator.retry", LogLevel.DEBUG, attempt=attempt + 1, cause=cause)

    log_event("generator.failed", LogLevel.MINIMAL, attempts=max_retries + 1, cause=cause)
    return None


def score_batch(
    runner: VerificationRunner,
    candidates: Sequence[Candidate],
    context: Mapping[str, Any],
    state: SearchState,
    first_order: int,
) -> Tuple[List[ScoredCandidate], SearchState]:
    """
    Verify a batch in one runner call and fold the scores into the state.

    Candidates that could not be scored are dropped. Each scored candidate
    gets ``order = first_order + position`` so ties resolve to the earliest
    generated. Every attempted verification consumes one unit of budget.
    """
    if not candidates:
        return [], state

    results = runner.verify_all(candidates, context)
    state = st.decrement_budget(state, len(candidates))

    scored = []
    for position, (candidate, result) in enumerate(zip(candidates, results)):
        if result.is_failure:
            log_event("candidate.dropped", LogLevel.VERBOSE, candidate_id=candidate.id,
                      cause=result.metadata.get("error_type"))
            continue
        entry = ScoredCandidate(
            candidate=candidate.with_score(result.score),
            result=result,
            order=first_order + position,
        )
        scored.append(entry)
        state = st.update_best(state, entry.candidate, entry.score)
    return scored, state


def time_or_budget_left(state: SearchState) -> bool:
    return not st.budget_exhausted(state) and not st.deadline_exceeded(state)


class SearchAlgorithm(ABC):
    """
    Base class for search algorithms.

    Subclasses declare ``config_class`` and implement ``_run``. Options given
    at construction are defaults; options given to ``search`` override them
    for that call only.
    """

    name: str = "search"
    config_class: Type[SearchConfig] = SearchConfig

    def __init__(self, config: SearchConfig | Mapping[str, Any] | None = None, **options: Any):
        self.config = resolve_config(self.config_class, config, options)

    def search(
        self,
        generator: Generator,
        verifier: Any,
        initial_input: str,
        options: SearchConfig | Mapping[str, Any] | None = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> SearchResult:
        """
        Run the search.

        Args:
            generator: Candidate generator
            verifier: A VerificationRunner, or a single Verifier which is
                wrapped in a default runner
            initial_input: The root prompt
            options: Per-call option overrides (recognized keys only)
            context: Extra key/value pairs passed to every verifier call,
                alongside ``prompt``

        Raises:
            InvalidConfig: On invalid options, before any generation
            GeneratorFailure: If the generator fails unrecoverably
        """
        config = resolve_config(self.config_class, self.config, options)
        runner = VerificationRunner.wrap(verifier)
        verify_context = {"prompt": initial_input, **dict(context or {})}

        log_event(f"{self.name}.start", LogLevel.VERBOSE, verifiers=len(runner))
        result = self._run(generator, runner, initial_input, config, verify_context)
        log_event(
            f"{self.name}.done",
            LogLevel.NORMAL,
            best_score=f"{result.best_score:.3f}",
            iterations=result.iterations,
            evaluations=result.total_evaluations,
            stop=result.stop_reason,
        )
        return result

    @abstractmethod
    def _run(
        self,
        generator: Generator,
        runner: VerificationRunner,
        prompt: str,
        config: SearchConfig,
        context: Mapping[str, Any],
    ) -> SearchResult:
        pass

    @staticmethod
    def _generate_many(
        generator: Generator,
        prompt: str,
        requests: Sequence[SamplingOptions],
        config: SearchConfig,
        state: SearchState,
    ) -> Tuple[List[Tuple[SamplingOptions, Candidate]], bool]:
        """
        Generate one candidate per request, stopping early at the deadline or
        once the batch would exceed the remaining budget.

        Returns the (request, candidate) pairs that succeeded and whether the
        batch was cut short.
        """
        generated: List[Tuple[SamplingOptions, Candidate]] = []
        for options in requests:
            if len(generated) >= state.budget_remaining or st.deadline_exceeded(state):
                return generated, True
            candidate = generate_with_retry(generator, prompt, options, config.max_retries)
            if candidate is not None:
                generated.append((options, candidate))
        return generated, False

    def _initial_state(self, config: SearchConfig, natural_budget: int) -> SearchState:
        budget = config.budget if config.budget is not None else natural_budget
        return st.start(st.new_state(budget), timeout=config.timeout)

    @staticmethod
    def _close_iteration(state: SearchState, config: SearchConfig) -> SearchState:
        """Record the iteration and apply the optional convergence window."""
        state = st.record_iteration(state, config.convergence_epsilon)
        if config.convergence_window is not None and st.has_converged(
            state, config.convergence_window, config.convergence_epsilon
        ):
            state = st.mark_converged(state)
        return state
