"""
Tree node for Monte-Carlo tree search over candidates.

Each node holds one generated candidate; its children are continuations
generated from the path root -> node. The root holds no candidate, only the
prompt.

Node statistics:
- visits: how many simulations passed through this node
- value: sum of all simulation scores backpropagated through it

value / visits is the node's mean score, the exploitation term of UCB1.

Children are owned by their parent's ``children`` list. The link back to the
parent is a weak reference, so a subtree never keeps its ancestors alive.
"""

from __future__ import annotations

import math
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from verified_search.core.candidate import Candidate


@dataclass(eq=False)
class MCTSNode:
    """
    A node in the search tree.

    Attributes:
        candidate: The candidate at this node (None for the root)
        state: Free-form search state (the root carries the prompt)
        action: What produced this node (sampling temperature and index)
        visits: Number of simulations through this node
        value: Cumulative simulation score
        children: Child nodes in creation order
        is_terminal: Whether this node ends a reasoning path
        depth: Distance from the root (root = 0)
        order: Global creation index, used to break ties
        last_score: Most recent simulation score at this node
    """

    candidate: Optional[Candidate] = None
    state: Dict[str, Any] = field(default_factory=dict)
    action: Any = None
    visits: int = 0
    value: float = 0.0
    children: List["MCTSNode"] = field(default_factory=list)
    is_terminal: bool = False
    depth: int = 0
    order: int = 0
    last_score: Optional[float] = None
    _parent: Optional[weakref.ReferenceType] = field(default=None, repr=False)

    @property
    def parent(self) -> Optional["MCTSNode"]:
        """Parent node, or None at the root (or once the parent is gone)."""
        return self._parent() if self._parent is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def is_fully_expanded(self, max_children: int) -> bool:
        return len(self.children) >= max_children

    def add_child(
        self,
        candidate: Candidate,
        is_terminal: bool = False,
        order: int = 0,
        action: Any = None,
    ) -> "MCTSNode":
        """Create a child holding ``candidate`` and attach it to this node."""
        child = MCTSNode(
            candidate=candidate,
            state={"depth": self.depth + 1},
            action=action,
            is_terminal=is_terminal,
            depth=self.depth + 1,
            order=order,
            _parent=weakref.ref(self),
        )
        self.children.append(child)
        return child

    def update(self, score: float) -> None:
        """Record one simulation result at this node."""
        self.visits += 1
        self.value += score
        self.last_score = score

    def candidate_path(self) -> Tuple[Candidate, ...]:
        """Candidates from the first generated step down to this node."""
        return tuple(n.candidate for n in path(self) if n.candidate is not None)

    def to_dict(self) -> Dict[str, Any]:
        """Summary of this node without its subtree."""
        return {
            "candidate": self.candidate.to_dict() if self.candidate is not None else None,
            "visits": self.visits,
            "value": self.value,
            "average_value": average_value(self),
            "depth": self.depth,
            "is_terminal": self.is_terminal,
            "children": len(self.children),
            "action": self.action,
        }

    def __repr__(self) -> str:
        return (
            f"MCTSNode(depth={self.depth}, visits={self.visits}, "
            f"value={self.value:.3f}, children={len(self.children)})"
        )


def create_root(prompt: str) -> MCTSNode:
    """Root node for a search over ``prompt``."""
    return MCTSNode(state={"prompt": prompt, "depth": 0})


def average_value(node: MCTSNode) -> float:
    """value / visits, or 0.0 for an unvisited node."""
    if node.visits == 0:
        return 0.0
    return node.value / node.visits


def ucb1_score(node: MCTSNode, exploration_constant: float, parent_visits: Optional[int] = None) -> float:
    """
    UCB1 score of ``node`` relative to its parent.

        UCB1 = value / visits + c * sqrt(ln(parent.visits) / visits)

    Unvisited nodes score +inf, so they are always tried first.
    """
    if node.visits == 0:
        return math.inf
    if parent_visits is None:
        parent = node.parent
        parent_visits = parent.visits if parent is not None else node.visits
    exploration = exploration_constant * math.sqrt(math.log(max(parent_visits, 1)) / node.visits)
    return node.value / node.visits + exploration


def best_child(node: MCTSNode, exploration_constant: float) -> Optional[MCTSNode]:
    """Child with the highest UCB1 score; the earliest created wins ties."""
    best, best_score = None, -math.inf
    for child in node.children:
        score = ucb1_score(child, exploration_constant, parent_visits=node.visits)
        if best is None or score > best_score:
            best, best_score = child, score
    return best


def most_visited_child(node: MCTSNode) -> Optional[MCTSNode]:
    """Child with the most visits; the earliest created wins ties."""
    best = None
    for child in node.children:
        if best is None or child.visits > best.visits:
            best = child
    return best


def best_average_child(node: MCTSNode) -> Optional[MCTSNode]:
    """
    Child with the highest mean value; ties go to more visits, then to the
    earliest created. Unvisited children are never chosen.
    """
    best = None
    for child in node.children:
        if child.visits == 0:
            continue
        if best is None:
            best = child
            continue
        key = (average_value(child), child.visits, -child.order)
        if key > (average_value(best), best.visits, -best.order):
            best = child
    return best


def depth(node: MCTSNode) -> int:
    return node.depth


def path(node: MCTSNode) -> List[MCTSNode]:
    """Nodes from the root down to ``node``, inclusive."""
    nodes = []
    current: Optional[MCTSNode] = node
    while current is not None:
        nodes.append(current)
        current = current.parent
    return list(reversed(nodes))


def tree_size(node: MCTSNode) -> int:
    """Number of nodes in the subtree rooted at ``node``."""
    count = 0
    stack = [node]
    while stack:
        current = stack.pop()
        count += 1
        stack.extend(current.children)
    return count
