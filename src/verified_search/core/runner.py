"""
Verification runner: ensemble scoring of candidates.

The runner executes several verifiers against a candidate, combines their
scores with a configured aggregation strategy and applies a failure policy
when individual verifiers error out or time out. Every search algorithm
scores candidates through a runner, never on its own.
"""

from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from verified_search.config import RunnerConfig
from verified_search.core.candidate import Candidate
from verified_search.core.result import VerificationResult, merge_step_scores
from verified_search.core.verifier import Verifier, build_verifier, verifier_name
from verified_search.errors import AllVerifiersFailed, InvalidConfig, VerifierFailure
from verified_search.utils.logging import LogLevel, get_logger, log_event


class Aggregation(str, Enum):
    """How surviving verifier scores are combined."""
    WEIGHTED_AVG = "weighted_avg"
    MAX = "max"
    MIN = "min"
    SUM = "sum"
    PRODUCT = "product"


class ErrorPolicy(str, Enum):
    """What to do when a single verifier fails."""
    CONTINUE = "continue"
    HALT = "halt"


EventListener = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class VerifierSpec:
    """A configured verifier with its aggregation weight."""

    verifier: Verifier
    weight: float = 1.0
    name: str = ""
    config: Dict[str, Any] = field(default_factory=dict)


def aggregate_scores(
    scores: Sequence[float],
    weights: Sequence[float],
    strategy: Aggregation | str = Aggregation.WEIGHTED_AVG,
) -> float:
    """
    Combine scores with the given strategy.

    Only ``weighted_avg`` uses the weights; ``max``, ``min``, ``sum`` and
    ``product`` ignore them.

    Raises:
        ValueError: If there are no scores or weights and scores differ in length
    """
    if not scores:
        raise ValueError("cannot aggregate an empty list of scores")
    if len(scores) != len(weights):
        raise ValueError(f"got {len(scores)} scores but {len(weights)} weights")

    strategy = Aggregation(strategy)
    if strategy is Aggregation.WEIGHTED_AVG:
        total_weight = sum(weights)
        return sum(s * w for s, w in zip(scores, weights)) / total_weight
    elif strategy is Aggregation.MAX:
        return max(scores)
    elif strategy is Aggregation.MIN:
        return min(scores)
    elif strategy is Aggregation.SUM:
        return sum(scores)
    else:
        return math.prod(scores)


class VerificationRunner:
    """
    Runs configured verifiers against candidates and aggregates their scores.

    Verifiers are given as ``VerifierSpec`` objects or tuples of
    ``(verifier, config, weight)`` / ``(verifier, weight)``. A verifier may be
    an instance or a ``Verifier`` subclass, which is instantiated with
    ``config``.

    Example:
        >>> runner = VerificationRunner(
        ...     [(DeterministicVerifier, {"ground_truth": "345"}, 2.0),
        ...      (FunctionVerifier(length_score), {}, 1.0)],
        ...     parallel=True,
        ...     aggregation="weighted_avg",
        ... )
        >>> result = runner.verify_candidate(candidate, {"prompt": "What is 15*23?"})
        >>> result.score, result.metadata["verifier_scores"]
    """

    def __init__(
        self,
        verifiers: Sequence[Any],
        parallel: bool = False,
        aggregation: str = "weighted_avg",
        on_error: str = "continue",
        timeout: float = 30.0,
        max_workers: int = 4,
        listeners: Optional[List[EventListener]] = None,
    ):
        """
        Initialize the runner.

        Args:
            verifiers: Verifier specs; must be non-empty with positive weights
            parallel: Run verifiers concurrently with one shared timeout
            aggregation: weighted_avg, max, min, sum or product
            on_error: continue (drop failed verifiers) or halt (raise)
            timeout: Seconds; shared by the whole batch when parallel,
                per verifier when sequential
            max_workers: Upper bound on concurrent verifier calls
            listeners: Callables receiving (event_name, payload) for every
                start/stop/error event

        Raises:
            InvalidConfig: On an empty verifier list, a non-positive weight,
                or an unknown aggregation/on_error value
        """
        try:
            self.config = RunnerConfig(
                parallel=parallel,
                aggregation=aggregation,
                on_error=on_error,
                timeout=timeout,
                max_workers=max_workers,
            )
        except ValidationError as exc:
            raise InvalidConfig(f"invalid verification runner: {exc}") from exc

        self.specs = self._build_specs(verifiers)
        self.aggregation = Aggregation(self.config.aggregation)
        self.on_error = ErrorPolicy(self.config.on_error)
        self.listeners: List[EventListener] = list(listeners or [])

    @classmethod
    def from_config(
        cls,
        verifiers: Sequence[Any],
        config: RunnerConfig,
        listeners: Optional[List[EventListener]] = None,
    ) -> "VerificationRunner":
        """Create a runner from a RunnerConfig section."""
        return cls(verifiers, listeners=listeners, **config.model_dump())

    @classmethod
    def wrap(cls, verifier: Any) -> "VerificationRunner":
        """Return ``verifier`` if it is already a runner, else a single-verifier runner."""
        if isinstance(verifier, VerificationRunner):
            return verifier
        return cls([(verifier, {}, 1.0)])

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def parallel(self) -> bool:
        return self.config.parallel

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self.specs]

    @property
    def weights(self) -> List[float]:
        return [spec.weight for spec in self.specs]

    def __len__(self) -> int:
        return len(self.specs)

    def add_listener(self, listener: EventListener) -> None:
        """Register a callable that receives every verification event."""
        self.listeners.append(listener)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_candidate(
        self,
        candidate: Candidate,
        context: Optional[Mapping[str, Any]] = None,
    ) -> VerificationResult:
        """
        Score one candidate with every configured verifier.

        Returns:
            Aggregated VerificationResult. Its metadata records the raw score
            of each surviving verifier, the failed verifiers with reasons and
            the wall-clock duration.

        Raises:
            VerifierFailure: A verifier failed and on_error is "halt"
            AllVerifiersFailed: No verifier produced a score
        """
        context = context if context is not None else {}
        start = time.perf_counter()
        self._emit("verification.start", LogLevel.VERBOSE, candidate_id=candidate.id,
                   verifiers=len(self.specs))

        try:
            if self.parallel:
                outcomes = self._run_parallel(candidate, context)
            else:
                outcomes = self._run_sequential(candidate, context)
        except VerifierFailure as exc:
            self._emit("verification.error", LogLevel.MINIMAL, candidate_id=candidate.id,
                       duration=round(time.perf_counter() - start, 4),
                       verifier=exc.verifier, cause=exc.cause)
            raise

        survivors = [(spec, result) for spec, result, _ in outcomes if result is not None]
        failures = {spec.name: error for spec, _, error in outcomes if error is not None}
        duration = time.perf_counter() - start

        if not survivors:
            self._emit("verification.error", LogLevel.MINIMAL, candidate_id=candidate.id,
                       duration=round(duration, 4), failed=sorted(failures))
            raise AllVerifiersFailed(candidate.id, failures)

        aggregated = self._aggregate(candidate, survivors, failures, duration)
        self._emit("verification.stop", LogLevel.VERBOSE, candidate_id=candidate.id,
                   duration=round(duration, 4), score=round(aggregated.score, 4),
                   succeeded=len(survivors), failed=len(failures),
                   verifier_scores=aggregated.metadata["verifier_scores"],
                   failed_verifiers=sorted(failures))
        return aggregated

    def verify_all(
        self,
        candidates: Sequence[Candidate],
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[VerificationResult]:
        """
        Score many candidates, preserving input order.

        A candidate whose verification fails yields a failure result (score
        None, ``metadata["error"]`` set) in its slot; the remaining
        candidates are still processed.

        Candidates are verified one after another; ``parallel`` only fans out
        the verifiers of a single candidate. A batch of N candidates can
        therefore take up to N times ``timeout``.
        """
        results = []
        for candidate in candidates:
            try:
                results.append(self.verify_candidate(candidate, context))
            except (AllVerifiersFailed, VerifierFailure) as exc:
                results.append(failure_result(candidate, exc))
        return results

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run_sequential(
        self,
        candidate: Candidate,
        context: Mapping[str, Any],
    ) -> List[Tuple[VerifierSpec, Optional[VerificationResult], Optional[str]]]:
        outcomes = []
        for spec in self.specs:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="verifier")
            future = executor.submit(spec.verifier.verify, candidate, context)
            try:
                result = future.result(timeout=self.timeout)
                error = None
            except FutureTimeoutError:
                future.cancel()
                result, error = None, f"timed out after {self.timeout}s"
            except Exception as exc:
                result, error = None, f"{type(exc).__name__}: {exc}"
            finally:
                # Never block on a verifier that overran its timeout.
                executor.shutdown(wait=False, cancel_futures=True)

            result, error = self._check_result(spec, candidate, result, error)
            outcomes.append((spec, result, error))
            if error is not None and self.on_error is ErrorPolicy.HALT:
                raise VerifierFailure(spec.name, candidate.id, error)
        return outcomes

    def _run_parallel(
        self,
        candidate: Candidate,
        context: Mapping[str, Any],
    ) -> List[Tuple[VerifierSpec, Optional[VerificationResult], Optional[str]]]:
        workers = min(self.config.max_workers, len(self.specs))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="verifier")
        try:
            futures = [
                executor.submit(spec.verifier.verify, candidate, context)
                for spec in self.specs
            ]
            _, not_done = wait(futures, timeout=self.timeout)
            for future in not_done:
                future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes = []
        for spec, future in zip(self.specs, futures):
            if future in not_done:
                result, error = None, f"timed out after {self.timeout}s"
            elif future.exception() is not None:
                exc = future.exception()
                result, error = None, f"{type(exc).__name__}: {exc}"
            else:
                result, error = future.result(), None
            outcomes.append((spec, *self._check_result(spec, candidate, result, error)))

        if self.on_error is ErrorPolicy.HALT:
            for spec, _, error in outcomes:
                if error is not None:
                    raise VerifierFailure(spec.name, candidate.id, error)
        return outcomes

    def _check_result(
        self,
        spec: VerifierSpec,
        candidate: Candidate,
        result: Any,
        error: Optional[str],
    ) -> Tuple[Optional[VerificationResult], Optional[str]]:
        """Reject results that carry no usable score and log failures."""
        if error is None:
            if not isinstance(result, VerificationResult):
                error = f"returned {type(result).__name__}, expected VerificationResult"
            elif result.score is None:
                error = "returned no score"
            elif not math.isfinite(result.score):
                error = f"returned non-finite score {result.score}"
        if error is not None:
            if self.on_error is ErrorPolicy.CONTINUE:
                log_event("verifier.failed", LogLevel.MINIMAL, verifier=spec.name,
                          candidate_id=candidate.id, cause=error)
            return None, error
        return result, None

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _aggregate(
        self,
        candidate: Candidate,
        survivors: List[Tuple[VerifierSpec, VerificationResult]],
        failures: Dict[str, str],
        duration: float,
    ) -> VerificationResult:
        scores = [result.score for _, result in survivors]
        weights = [spec.weight for spec, _ in survivors]
        score = aggregate_scores(scores, weights, self.aggregation)

        confidences = [
            result.confidence if result.confidence is not None else 0.5
            for _, result in survivors
        ]
        confidence = sum(confidences) / len(confidences)

        step_scores = None
        for _, result in survivors:
            step_scores = merge_step_scores(step_scores, result.step_scores)

        reasonings = [result.reasoning for _, result in survivors if result.reasoning]
        if reasonings:
            reasoning = "Combined verification: " + "; ".join(reasonings)
        else:
            reasoning = "Verification completed"

        return VerificationResult(
            candidate_id=candidate.id,
            score=score,
            confidence=confidence,
            reasoning=reasoning,
            step_scores=step_scores,
            metadata={
                "aggregation": self.aggregation.value,
                "verifier_scores": {spec.name: result.score for spec, result in survivors},
                "verifier_metadata": {spec.name: dict(result.metadata) for spec, result in survivors},
                "failed_verifiers": dict(failures),
                "verifier_count": len(survivors),
                "duration": duration,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, event: str, level: LogLevel, **payload: Any) -> None:
        log_event(event, level, **payload)
        for listener in self.listeners:
            try:
                listener(event, dict(payload))
            except Exception:
                get_logger().exception("verification event listener failed on %s", event)

    @staticmethod
    def _build_specs(verifiers: Sequence[Any]) -> List[VerifierSpec]:
        if not verifiers:
            raise InvalidConfig("verification runner needs at least one verifier")

        specs = []
        seen: Dict[str, int] = {}
        for entry in verifiers:
            if isinstance(entry, VerifierSpec):
                verifier, config, weight = entry.verifier, entry.config, entry.weight
            elif isinstance(entry, tuple) and len(entry) == 3:
                verifier, config, weight = entry
            elif isinstance(entry, tuple) and len(entry) == 2:
                verifier, weight = entry
                config = {}
            else:
                verifier, config, weight = entry, {}, 1.0

            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
                raise InvalidConfig(
                    f"weight for {verifier_name(verifier)} must be a positive number, got {weight!r}"
                )

            instance = build_verifier(verifier, dict(config or {}))
            base = entry.name if isinstance(entry, VerifierSpec) and entry.name else verifier_name(instance)
            # Keep metadata keys unique when the same verifier type appears twice.
            seen[base] = seen.get(base, 0) + 1
            name = base if seen[base] == 1 else f"{base}#{seen[base]}"
            specs.append(VerifierSpec(verifier=instance, weight=float(weight), name=name,
                                      config=dict(config or {})))
        return specs


def failure_result(candidate: Candidate, error: Exception) -> VerificationResult:
    """Placeholder result for a candidate that could not be scored."""
    failures = getattr(error, "failures", None)
    return VerificationResult(
        candidate_id=candidate.id,
        score=None,
        confidence=None,
        reasoning=f"Verification failed: {type(error).__name__}",
        metadata={
            "error": str(error),
            "error_type": type(error).__name__,
            "failed_verifiers": dict(failures) if failures else {},
        },
    )
