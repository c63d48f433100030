"""
Text similarity metrics used by diverse decoding.

- Jaccard: overlap of lower-cased word token sets
- Edit distance: 1 - levenshtein(a, b) / max(len(a), len(b))
- Combined: weighted sum of the two, weights summing to 1.0

All metrics return values in [0, 1] and are symmetric.
"""

from __future__ import annotations

import re
from typing import Callable, FrozenSet, Optional

from verified_search.config import SimilarityConfig
from verified_search.errors import InvalidConfig


SimilarityFunction = Callable[[str, str], float]

_TOKEN_SPLIT = re.compile(r"[\W_]+")


def tokenize(text: str) -> FrozenSet[str]:
    """Lower-cased tokens split on whitespace and punctuation."""
    return frozenset(t for t in _TOKEN_SPLIT.split(text.lower()) if t)


def jaccard_similarity(a: str, b: str) -> float:
    """
    |tokens(a) & tokens(b)| / |tokens(a) | tokens(b)|.

    1.0 when both token sets are empty, 0.0 when exactly one is.
    """
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character inserts, deletes and substitutions."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def edit_distance_similarity(a: str, b: str) -> float:
    """
    1 - levenshtein(a, b) / max(len(a), len(b)).

    1.0 when both strings are empty.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def combined_similarity(
    a: str,
    b: str,
    jaccard_weight: float = 0.5,
    edit_weight: float = 0.5,
) -> float:
    """
    Weighted sum of Jaccard and edit-distance similarity.

    Raises:
        InvalidConfig: If the weights are negative or do not sum to 1.0
    """
    if jaccard_weight < 0 or edit_weight < 0 or abs(jaccard_weight + edit_weight - 1.0) > 1e-9:
        raise InvalidConfig(
            f"similarity weights must be non-negative and sum to 1.0, got "
            f"{jaccard_weight} + {edit_weight}"
        )
    score = 0.0
    if jaccard_weight:
        score += jaccard_weight * jaccard_similarity(a, b)
    if edit_weight:
        score += edit_weight * edit_distance_similarity(a, b)
    return score


def make_similarity(config: Optional[SimilarityConfig] = None) -> SimilarityFunction:
    """Build a two-argument combined similarity from a SimilarityConfig."""
    config = config or SimilarityConfig()
    jaccard_weight, edit_weight = config.jaccard_weight, config.edit_weight

    def similarity(a: str, b: str) -> float:
        return combined_similarity(a, b, jaccard_weight, edit_weight)

    return similarity


def compute_similarity(a: str, b: str, config: Optional[SimilarityConfig] = None) -> float:
    """Combined similarity of two texts (0.5/0.5 weights unless configured)."""
    return make_similarity(config)(a, b)
