"""
Search state shared by every search algorithm.

SearchState is an immutable value; every transition is a plain function that
returns a new state. Algorithms thread the state through their loop
explicitly, so there is no hidden mutable bookkeeping to reset between runs.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from verified_search.core.candidate import Candidate
from verified_search.errors import InvalidConfig


class SearchPhase(str, Enum):
    """Lifecycle of one search invocation."""
    IDLE = "idle"
    SEARCHING = "searching"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    DONE = "done"


@dataclass(frozen=True)
class SearchState:
    """
    Bookkeeping for one search invocation.

    Attributes:
        best_node: Best candidate found so far (None until the first score)
        best_score: Score of best_node; never decreases
        iterations: Completed algorithm iterations
        budget_remaining: Verifications left before the search must stop
        converged: Set once the search decides further work will not help
        phase: Current lifecycle phase
        nodes: Algorithm-owned working set (beam members, tree nodes, ...)
        score_history: best_score recorded at the end of each iteration
        stagnation_count: Consecutive iterations without improvement
        max_iterations: Optional hard cap on iterations
        start_time: Monotonic clock value when the search started
        deadline: Monotonic clock value after which the search must stop
        metadata: Free-form algorithm metadata
    """

    best_node: Optional[Candidate] = None
    best_score: float = float("-inf")
    iterations: int = 0
    budget_remaining: int = 0
    converged: bool = False
    phase: SearchPhase = SearchPhase.IDLE
    nodes: Tuple[Any, ...] = ()
    score_history: Tuple[float, ...] = ()
    stagnation_count: int = 0
    max_iterations: Optional[int] = None
    start_time: Optional[float] = None
    deadline: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def new_state(
    budget: int,
    max_iterations: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> SearchState:
    """
    Create the initial state for a search.

    Raises:
        InvalidConfig: If budget or max_iterations is negative
    """
    if isinstance(budget, bool) or not isinstance(budget, int) or budget < 0:
        raise InvalidConfig(f"budget must be a non-negative integer, got {budget!r}")
    if max_iterations is not None and max_iterations < 0:
        raise InvalidConfig(f"max_iterations must be >= 0, got {max_iterations}")
    return SearchState(
        budget_remaining=budget,
        max_iterations=max_iterations,
        metadata=dict(metadata or {}),
    )


def start(state: SearchState, timeout: Optional[float] = None) -> SearchState:
    """Enter the SEARCHING phase and start the wall clock."""
    now = time.monotonic()
    return replace(
        state,
        phase=SearchPhase.SEARCHING,
        start_time=now,
        deadline=now + timeout if timeout is not None else None,
    )


def update_best(
    state: SearchState,
    candidate: Candidate,
    score: float,
) -> SearchState:
    """
    Record ``candidate`` as the best if ``score`` is strictly greater.

    Ties keep the earlier-found best, so best_score never decreases and the
    outcome does not depend on evaluation order among equals.
    """
    if score is None or math.isnan(score) or score <= state.best_score:
        return state
    return replace(state, best_node=candidate, best_score=score)


def decrement_budget(state: SearchState, n: int = 1) -> SearchState:
    """Consume ``n`` units of budget."""
    if n < 0:
        raise ValueError(f"cannot decrement budget by a negative amount ({n})")
    return replace(state, budget_remaining=state.budget_remaining - n)


def add_node(state: SearchState, node: Any) -> SearchState:
    return replace(state, nodes=state.nodes + (node,))


def add_nodes(state: SearchState, nodes: Iterable[Any]) -> SearchState:
    return replace(state, nodes=state.nodes + tuple(nodes))


def set_nodes(state: SearchState, nodes: Iterable[Any]) -> SearchState:
    return replace(state, nodes=tuple(nodes))


def put_metadata(state: SearchState, key: str, value: Any) -> SearchState:
    metadata = dict(state.metadata)
    metadata[key] = value
    return replace(state, metadata=metadata)


def record_iteration(state: SearchState, epsilon: float = 0.0) -> SearchState:
    """
    Close one iteration: bump the counter and append best_score to the history.

    The stagnation counter resets when best_score improved by more than
    ``epsilon`` since the previous iteration and grows otherwise.
    """
    improved = (
        not state.score_history
        or state.best_score - state.score_history[-1] > epsilon
    )
    return replace(
        state,
        iterations=state.iterations + 1,
        score_history=state.score_history + (state.best_score,),
        stagnation_count=0 if improved else state.stagnation_count + 1,
    )


def has_converged(state: SearchState, window: int, epsilon: float) -> bool:
    """
    True when best_score has not improved by more than ``epsilon`` over the
    last ``window`` iterations.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    history = state.score_history
    if len(history) <= window:
        return False
    return history[-1] - history[-1 - window] <= epsilon


def mark_converged(state: SearchState) -> SearchState:
    return replace(state, converged=True, phase=SearchPhase.CONVERGED)


def budget_exhausted(state: SearchState) -> bool:
    return state.budget_remaining <= 0


def max_iterations_reached(state: SearchState) -> bool:
    return state.max_iterations is not None and state.iterations >= state.max_iterations


def deadline_exceeded(state: SearchState, now: Optional[float] = None) -> bool:
    """True once the wall-clock deadline set by ``start`` has passed."""
    if state.deadline is None:
        return False
    return (now if now is not None else time.monotonic()) >= state.deadline


def stagnated(state: SearchState, patience: int) -> bool:
    return state.stagnation_count >= patience


def should_stop(state: SearchState) -> bool:
    """Budget spent, converged, or the iteration cap reached."""
    return budget_exhausted(state) or state.converged or max_iterations_reached(state)


def stop_reason(state: SearchState) -> Optional[str]:
    """Name of the condition that stops the search, if any."""
    if state.converged:
        return "converged"
    if budget_exhausted(state):
        return "budget"
    if deadline_exceeded(state):
        return "deadline"
    if max_iterations_reached(state):
        return "max_iterations"
    return None


def elapsed(state: SearchState) -> float:
    """Seconds since ``start``, or 0.0 if the search never started."""
    if state.start_time is None:
        return 0.0
    return time.monotonic() - state.start_time


def finish(state: SearchState, exhausted: bool = False) -> SearchState:
    """Leave the SEARCHING phase."""
    if exhausted:
        phase = SearchPhase.EXHAUSTED
    elif state.converged:
        phase = SearchPhase.CONVERGED
    else:
        phase = SearchPhase.DONE
    return replace(state, phase=phase)
