"""
Diverse decoding with Maximal Marginal Relevance (MMR).

Samples a pool of candidates across a temperature range, scores each one
through the VerificationRunner (its relevance) and then greedily picks a
subset that balances relevance against similarity to what is already picked:

    mmr(x) = lambda * relevance(x) - (1 - lambda) * max(sim(x, s) for s in selected)

``lambda = 1`` gives plain relevance ranking; ``lambda = 0`` picks the most
dissimilar candidate at every step.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from verified_search.config import DiverseDecodingConfig
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.result import ScoredCandidate
from verified_search.core.runner import VerificationRunner
from verified_search.errors import EmptyCandidatePool, InvalidConfig
from verified_search.search import state as st
from verified_search.search.base import (
    SearchAlgorithm,
    SearchResult,
    score_batch,
    temperature_schedule,
)
from verified_search.search.similarity import SimilarityFunction, make_similarity
from verified_search.utils.logging import log_iteration


def _better(value: float, entry: ScoredCandidate, best_value: float, best: ScoredCandidate) -> bool:
    """Higher MMR wins; then higher relevance; then earlier generation."""
    if value != best_value:
        return value > best_value
    if entry.score != best.score:
        return entry.score > best.score
    return entry.order < best.order


def _mmr_rounds(
    pool: Sequence[ScoredCandidate],
    k: int,
    lambda_: float,
    similarity: SimilarityFunction,
) -> Iterator[Tuple[ScoredCandidate, float]]:
    remaining = list(pool)
    # Max similarity of each remaining candidate to the selected set.
    penalty: Dict[int, float] = {id(entry): 0.0 for entry in remaining}
    selected = 0

    while remaining and selected < k:
        best, best_value = None, 0.0
        for entry in remaining:
            value = lambda_ * entry.score - (1.0 - lambda_) * penalty[id(entry)]
            if best is None or _better(value, entry, best_value, best):
                best, best_value = entry, value

        remaining.remove(best)
        selected += 1
        yield best, best_value

        for entry in remaining:
            sim = similarity(entry.candidate.content, best.candidate.content)
            if sim > penalty[id(entry)]:
                penalty[id(entry)] = sim


def mmr_select(
    pool: Sequence[ScoredCandidate],
    k: int,
    lambda_: float = 0.5,
    similarity: Optional[SimilarityFunction] = None,
) -> List[ScoredCandidate]:
    """
    Select up to ``k`` entries from ``pool`` by Maximal Marginal Relevance.

    Raises:
        InvalidConfig: If lambda is outside [0, 1] or k < 1
    """
    if not 0.0 <= lambda_ <= 1.0:
        raise InvalidConfig(f"lambda must be within [0, 1], got {lambda_}")
    if k < 1:
        raise InvalidConfig(f"k must be >= 1, got {k}")
    similarity = similarity or make_similarity()
    return [entry for entry, _ in _mmr_rounds(pool, k, lambda_, similarity)]


def filter_near_duplicates(
    pool: Sequence[ScoredCandidate],
    threshold: float,
    similarity: SimilarityFunction,
) -> Tuple[List[ScoredCandidate], List[ScoredCandidate]]:
    """
    Drop candidates more similar than ``threshold`` to any higher-relevance one.

    Walks the pool in relevance order and compares each candidate with every
    candidate ranked above it, kept or dropped. Returns (kept, dropped), both
    in relevance order.
    """
    ranked = sorted(pool, key=lambda e: e.sort_key)
    kept: List[ScoredCandidate] = []
    dropped: List[ScoredCandidate] = []
    for i, entry in enumerate(ranked):
        content = entry.candidate.content
        if any(similarity(content, above.candidate.content) > threshold for above in ranked[:i]):
            dropped.append(entry)
        else:
            kept.append(entry)
    return kept, dropped


class DiverseDecoding(SearchAlgorithm):
    """
    Diverse decoding search.

    Example:
        >>> decoding = DiverseDecoding(num_candidates=8, top_k=3, **{"lambda": 0.3})
        >>> result = decoding.search(generator, runner, "Suggest a name for a cache library")
        >>> [e.candidate.content for e in result.trace]
    """

    name = "diverse"
    config_class = DiverseDecodingConfig

    def _run(
        self,
        generator: Generator,
        runner: VerificationRunner,
        prompt: str,
        config: DiverseDecodingConfig,
        context: Mapping[str, Any],
    ) -> SearchResult:
        state = self._initial_state(config, natural_budget=config.num_candidates)
        budget = state.budget_remaining
        similarity = make_similarity(config.similarity)

        requests = [
            SamplingOptions(temperature=t, depth=1, index=i)
            for i, t in enumerate(temperature_schedule(config.num_candidates, config.temperature_range))
        ]
        generated, exhausted = self._generate_many(generator, prompt, requests, config, state)
        candidates = [candidate for _, candidate in generated]

        scored, state = score_batch(runner, candidates, context, state, first_order=0)
        if not scored:
            raise EmptyCandidatePool(
                f"none of {len(requests)} candidates could be generated and scored"
            )

        if config.diversity_threshold is not None:
            pool, dropped = filter_near_duplicates(scored, config.diversity_threshold, similarity)
        else:
            pool, dropped = list(scored), []

        k = config.top_k if config.top_k is not None else len(pool)
        selected: List[ScoredCandidate] = []
        history: List[Dict[str, Any]] = []
        for entry, value in _mmr_rounds(pool, k, config.mmr_lambda, similarity):
            selected.append(entry)
            state = st.add_node(state, entry)
            state = st.record_iteration(state)
            history.append({
                "round": len(selected),
                "candidate_id": entry.candidate.id,
                "relevance": entry.score,
                "mmr": value,
            })
            log_iteration("diverse.select", len(selected), state.best_score,
                          mmr=f"{value:.3f}", relevance=f"{entry.score:.3f}")

        best = min(selected, key=lambda e: e.sort_key)
        stop_reason = "completed"
        if exhausted:
            stop_reason = "deadline" if st.deadline_exceeded(state) else "budget"
        state = st.finish(state, exhausted=exhausted)

        return SearchResult(
            best=best.candidate,
            best_score=best.score,
            trace=selected,
            iterations=state.iterations,
            converged=state.converged,
            budget_exhausted=exhausted,
            stop_reason=stop_reason,
            total_evaluations=budget - state.budget_remaining,
            history=history,
            metadata={
                "algorithm": self.name,
                "phase": state.phase.value,
                "pool_size": len(scored),
                "filtered_out": [e.candidate.id for e in dropped],
                "lambda": config.mmr_lambda,
                "best_id": best.candidate.id,
            },
        )


def diverse_decoding(
    generator: Generator,
    verifier: Any,
    prompt: str,
    context: Mapping[str, Any] | None = None,
    **options: Any,
) -> SearchResult:
    """
    Convenience function for a single diverse decoding run.

    Example:
        >>> result = diverse_decoding(generator, verifier, "Name three sorting algorithms",
        ...                           num_candidates=6, top_k=3)
    """
    return DiverseDecoding().search(generator, verifier, prompt, options, context=context)
