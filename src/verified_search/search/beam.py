"""
Beam search over candidate continuations.

The beam holds the ``beam_width`` best scored candidates. Each depth every
non-terminal beam member is expanded ``branching_factor`` times, all the
expansions are scored in one runner batch, and the top ``beam_width`` of
(existing beam + expansions) survive. Carrying the old members forward means
the best score in the beam never drops between depths.

Ordering is fully deterministic: score descending, then generation order.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from verified_search.config import BeamSearchConfig
from verified_search.core.candidate import Candidate
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.result import ScoredCandidate
from verified_search.core.runner import VerificationRunner
from verified_search.errors import EmptyBeam
from verified_search.search import state as st
from verified_search.search.base import (
    SearchAlgorithm,
    SearchResult,
    score_batch,
    temperature_schedule,
    time_or_budget_left,
)
from verified_search.utils.logging import log_iteration


def select_top_k(entries: List[ScoredCandidate], k: int) -> List[ScoredCandidate]:
    """Top ``k`` entries by score, earliest generated first among equal scores."""
    return sorted(entries, key=lambda e: e.sort_key)[:k]


class BeamSearch(SearchAlgorithm):
    """
    Beam search guided by verifier scores.

    With ``beam_width=1`` this is greedy search: only the single best
    candidate survives each depth.

    Example:
        >>> search = BeamSearch(beam_width=3, depth=2, branching_factor=2)
        >>> result = search.search(generator, runner, "What is 15*23?")
        >>> result.best.content, [e.score for e in result.trace]
    """

    name = "beam"
    config_class = BeamSearchConfig

    def _run(
        self,
        generator: Generator,
        runner: VerificationRunner,
        prompt: str,
        config: BeamSearchConfig,
        context: Mapping[str, Any],
    ) -> SearchResult:
        natural_budget = config.beam_width * (1 + config.depth * config.branching_factor)
        state = self._initial_state(config, natural_budget)
        budget = state.budget_remaining
        history: List[Dict[str, Any]] = []
        lineage: Dict[str, Tuple[Candidate, ...]] = {}

        # Initial beam from the root prompt
        requests = [
            SamplingOptions(temperature=t, depth=1, index=i)
            for i, t in enumerate(temperature_schedule(config.beam_width, config.temperature_range))
        ]
        generated, exhausted = self._generate_many(generator, prompt, requests, config, state)
        candidates = [candidate for _, candidate in generated]
        for candidate in candidates:
            lineage[candidate.id] = (candidate,)

        scored, state = score_batch(runner, candidates, context, state, first_order=0)
        order = len(candidates)
        if not scored:
            raise EmptyBeam(
                f"none of {len(requests)} initial candidates could be generated and scored"
            )

        beam = select_top_k(scored, config.beam_width)
        state = st.set_nodes(state, beam)
        history.append(self._record(0, state, beam, len(candidates), len(scored)))

        stop_reason = "completed"
        branch_temperatures = temperature_schedule(config.branching_factor, config.temperature_range)

        for level in range(1, config.depth + 1):
            if all(e.candidate.is_terminal(config.terminal_markers) for e in beam):
                state = st.mark_converged(state)
                stop_reason = "all_terminal"
                break
            if state.converged:
                stop_reason = "converged"
                break
            if exhausted or not time_or_budget_left(state):
                exhausted = True
                break

            # Terminal members are carried forward but not expanded.
            requests = []
            for entry in beam:
                if entry.candidate.is_terminal(config.terminal_markers):
                    continue
                ancestors = lineage.get(entry.candidate.id, (entry.candidate,))[:-1]
                path = ancestors + (entry.candidate,)
                for i, temperature in enumerate(branch_temperatures):
                    requests.append(SamplingOptions(
                        temperature=temperature,
                        parent=entry.candidate,
                        path=path,
                        depth=len(path) + 1,
                        index=i,
                    ))

            generated, cut_short = self._generate_many(generator, prompt, requests, config, state)
            exhausted = exhausted or cut_short
            expansions = []
            for options, candidate in generated:
                lineage[candidate.id] = options.path + (candidate,)
                expansions.append(candidate)

            scored, state = score_batch(runner, expansions, context, state, first_order=order)
            order += len(expansions)

            beam = select_top_k(beam + scored, config.beam_width)
            state = st.set_nodes(state, beam)
            state = self._close_iteration(state, config)
            history.append(self._record(level, state, beam, len(expansions), len(scored)))
            log_iteration("beam.depth", level, state.best_score,
                          beam=len(beam), expansions=len(expansions), scored=len(scored))

        if exhausted and stop_reason == "completed":
            stop_reason = "deadline" if st.deadline_exceeded(state) else "budget"
        state = st.finish(state, exhausted=exhausted)

        best = beam[0]
        return SearchResult(
            best=best.candidate,
            best_score=best.score,
            trace=list(beam),
            iterations=state.iterations,
            converged=state.converged,
            budget_exhausted=exhausted,
            stop_reason=stop_reason,
            total_evaluations=budget - state.budget_remaining,
            history=history,
            metadata={
                "algorithm": self.name,
                "phase": state.phase.value,
                "beam_width": config.beam_width,
                "depth_reached": state.iterations,
                "best_path": [c.id for c in lineage.get(best.candidate.id, (best.candidate,))],
            },
        )

    @staticmethod
    def _record(
        level: int,
        state: st.SearchState,
        beam: List[ScoredCandidate],
        generated: int,
        scored: int,
    ) -> Dict[str, Any]:
        return {
            "depth": level,
            "best_score": state.best_score,
            "beam_scores": [e.score for e in beam],
            "generated": generated,
            "scored": scored,
            "budget_remaining": state.budget_remaining,
        }


def beam_search(
    generator: Generator,
    verifier: Any,
    prompt: str,
    context: Mapping[str, Any] | None = None,
    **options: Any,
) -> SearchResult:
    """
    Convenience function for a single beam search.

    Example:
        >>> result = beam_search(generator, verifier, "What is 15*23?", beam_width=3, depth=1)
        >>> print(result.best.content)
    """
    return BeamSearch().search(generator, verifier, prompt, options, context=context)
