"""Verification-guided search algorithms and their shared state."""

from verified_search.search.state import SearchPhase, SearchState
from verified_search.search.base import SearchAlgorithm, SearchResult
from verified_search.search.beam import BeamSearch, beam_search
from verified_search.search.diverse import DiverseDecoding, diverse_decoding, mmr_select
from verified_search.search.mcts import MCTS, MCTSNode, mcts_search
from verified_search.search.similarity import (
    combined_similarity,
    compute_similarity,
    edit_distance_similarity,
    jaccard_similarity,
)

__all__ = [
    "SearchPhase",
    "SearchState",
    "SearchAlgorithm",
    "SearchResult",
    "BeamSearch",
    "beam_search",
    "DiverseDecoding",
    "diverse_decoding",
    "mmr_select",
    "MCTS",
    "MCTSNode",
    "mcts_search",
    "combined_similarity",
    "compute_similarity",
    "edit_distance_similarity",
    "jaccard_similarity",
]
