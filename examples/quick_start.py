#!/usr/bin/env python3
"""
Quick Start Examples for Verification-Guided Search

Uses a toy generator that "guesses" answers to an arithmetic question, so the
examples run without any model. Swap in a Generator that calls your LLM to
use the same searches for real.

Usage: python examples/quick_start.py
"""

import random

from verified_search import (
    BeamSearch,
    Candidate,
    DiverseDecoding,
    FunctionVerifier,
    Generator,
    MCTS,
    SamplingOptions,
    VerificationRunner,
)
from verified_search.utils.logging import LogLevel, set_verbosity
from verified_search.verifiers import DeterministicVerifier


class GuessingGenerator(Generator):
    """Answers 15*23 correctly more often at low temperature."""

    def __init__(self, seed=0):
        self.rng = random.Random(seed)

    def generate(self, prompt, options: SamplingOptions) -> Candidate:
        guess = 345 + round(self.rng.gauss(0, 1 + 10 * options.temperature))
        steps = [c.content for c in options.path]
        if options.depth >= 2:
            steps.append(f"Final answer: {guess}")
        else:
            steps.append(f"A first estimate is {guess}")
        return Candidate(content="\n".join(steps))


def shows_work(candidate, context):
    """Rewards answers that commit to a final answer."""
    return 1.0 if "Final answer" in candidate.content else 0.0


def example_1_beam_search():
    """Example 1: Beam search with a single exact verifier"""
    print("=" * 60)
    print("EXAMPLE 1: Beam Search")
    print("=" * 60)

    verifier = DeterministicVerifier(ground_truth=345, comparison_type="numerical")
    result = BeamSearch(beam_width=3, depth=2).search(GuessingGenerator(), verifier, "What is 15*23?")

    print(f"Best: {result.best.content!r}")
    print(f"Score: {result.best_score:.3f}  Stop reason: {result.stop_reason}")
    print()


def example_2_weighted_panel():
    """Example 2: Several verifiers combined by weight"""
    print("=" * 60)
    print("EXAMPLE 2: Weighted Verifier Panel")
    print("=" * 60)

    runner = VerificationRunner(
        [
            (DeterministicVerifier, {"ground_truth": 345, "comparison_type": "numerical",
                                     "tolerance": 2}, 3.0),
            (FunctionVerifier(shows_work), 1.0),
        ],
        parallel=True,
        timeout=5.0,
    )
    result = MCTS(simulations=40, max_depth=3).search(GuessingGenerator(seed=1), runner, "What is 15*23?")

    print(f"Best: {result.best.content!r}")
    print(f"Average value: {result.best_score:.3f}")
    print(f"Tree size: {result.metadata['tree_size']}")
    print()


def example_3_diverse_decoding():
    """Example 3: A diverse, high-scoring subset"""
    print("=" * 60)
    print("EXAMPLE 3: Diverse Decoding")
    print("=" * 60)

    verifier = DeterministicVerifier(ground_truth=345, comparison_type="numerical", tolerance=5)
    decoding = DiverseDecoding(num_candidates=12, top_k=4, **{"lambda": 0.6})
    result = decoding.search(GuessingGenerator(seed=2), verifier, "What is 15*23?")

    for entry in result.trace:
        print(f"  {entry.score:.2f}  {entry.candidate.content!r}")
    print(f"Filtered as near-duplicates: {len(result.metadata['filtered_out'])}")
    print()


if __name__ == "__main__":
    set_verbosity(LogLevel.MINIMAL)
    example_1_beam_search()
    example_2_weighted_panel()
    example_3_diverse_decoding()
