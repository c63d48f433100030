"""
Monte-Carlo tree search.

Example:
    >>> from verified_search.search.mcts import MCTS
    >>> result = MCTS(simulations=50).search(generator, verifier, "What is 15*23?")
"""

from verified_search.search.mcts.node import (
    MCTSNode,
    average_value,
    best_average_child,
    best_child,
    create_root,
    depth,
    most_visited_child,
    path,
    tree_size,
    ucb1_score,
)
from verified_search.search.mcts.search import MCTS, mcts_search

__all__ = [
    "MCTS",
    "MCTSNode",
    "mcts_search",
    "average_value",
    "best_average_child",
    "best_child",
    "create_root",
    "depth",
    "most_visited_child",
    "path",
    "tree_size",
    "ucb1_score",
]
