"""
Monte-Carlo tree search over reasoning continuations.

=============================================================================
THE FOUR PHASES
=============================================================================

Each simulation runs four phases:

1. SELECTION: from the root, follow the child with the highest UCB1 score
   while the current node is fully expanded, not terminal and above
   max_depth.

2. EXPANSION: if the selected node can still grow, ask the generator for one
   continuation conditioned on the candidates along its path, and score it.
   The child is attached only once it has a score.

3. SIMULATION: the verifier score of the new child (or of the selected node
   when nothing was expanded) stands in for a random rollout.

4. BACKPROPAGATION: add the score to ``value`` and one to ``visits`` on every
   node from the simulated one up to the root.

=============================================================================
FINAL ANSWER
=============================================================================

After the simulations, the root child with the best mean value
(value / visits) is the answer, not the one with the best UCB1. Ties go to
the child with more visits, then to the earliest created.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from verified_search.config import MCTSConfig
from verified_search.core.generator import Generator, SamplingOptions
from verified_search.core.runner import VerificationRunner
from verified_search.errors import EmptyCandidatePool
from verified_search.search import state as st
from verified_search.search.base import (
    SearchAlgorithm,
    SearchResult,
    generate_with_retry,
    score_batch,
    temperature_schedule,
    time_or_budget_left,
)
from verified_search.search.mcts.node import (
    MCTSNode,
    average_value,
    best_average_child,
    best_child,
    create_root,
)
from verified_search.search.state import SearchState
from verified_search.utils.logging import log_iteration


class MCTS(SearchAlgorithm):
    """
    Monte-Carlo tree search guided by verifier scores.

    Example:
        >>> mcts = MCTS(simulations=50, exploration_constant=1.414, max_depth=4)
        >>> result = mcts.search(generator, runner, "What is 15*23?")
        >>> result.best.content
        >>> [node.candidate.content for node in result.trace]   # best path
        >>> result.metadata["root"].visits
    """

    name = "mcts"
    config_class = MCTSConfig

    def _run(
        self,
        generator: Generator,
        runner: VerificationRunner,
        prompt: str,
        config: MCTSConfig,
        context: Mapping[str, Any],
    ) -> SearchResult:
        state = self._initial_state(config, natural_budget=config.simulations)
        budget = state.budget_remaining
        root = create_root(prompt)
        temperatures = temperature_schedule(config.max_children, config.temperature_range)

        history: List[Dict[str, Any]] = []
        node_count = 1
        exhausted = False
        stop_reason = "completed"

        for simulation in range(1, config.simulations + 1):
            if state.converged:
                stop_reason = "converged"
                break
            if not time_or_budget_left(state):
                exhausted = True
                stop_reason = "deadline" if st.deadline_exceeded(state) else "budget"
                break

            # ========== SELECTION ==========
            selected = self._select(root, config)

            # ========== EXPANSION + SIMULATION ==========
            if self._can_expand(selected, config):
                node, score, state = self._expand(
                    selected, generator, runner, prompt, context, config, temperatures, state, node_count
                )
                if node is not None:
                    node_count += 1
            else:
                node, score, state = self._evaluate_node(selected, runner, context, state)

            # ========== BACKPROPAGATION ==========
            if node is not None:
                self._backpropagate(node, score)

            state = self._close_iteration(state, config)
            history.append({
                "simulation": simulation,
                "best_score": state.best_score,
                "score": score,
                "depth": node.depth if node is not None else None,
                "tree_size": node_count,
                "budget_remaining": state.budget_remaining,
            })
            log_iteration("mcts.simulation", simulation, state.best_score,
                          score="-" if score is None else f"{score:.3f}", nodes=node_count)

        if state.converged and stop_reason == "completed":
            stop_reason = "converged"
        state = st.finish(state, exhausted=exhausted)

        chosen = best_average_child(root)
        if chosen is None:
            raise EmptyCandidatePool(
                f"no candidate was generated and scored in {state.iterations} simulations"
            )

        best_path = self._best_path(chosen)
        return SearchResult(
            best=chosen.candidate,
            best_score=average_value(chosen),
            trace=best_path,
            iterations=state.iterations,
            converged=state.converged,
            budget_exhausted=exhausted,
            stop_reason=stop_reason,
            total_evaluations=budget - state.budget_remaining,
            history=history,
            metadata={
                "algorithm": self.name,
                "phase": state.phase.value,
                "root": root,
                "tree_size": node_count,
                "root_visits": root.visits,
                "best_seen_score": state.best_score,
                "best_seen_id": state.best_node.id if state.best_node is not None else None,
            },
        )

    def _select(self, root: MCTSNode, config: MCTSConfig) -> MCTSNode:
        """
        SELECTION PHASE: walk down the tree using UCB1.

        Stops at the first node that is terminal, at max_depth, or still has
        room for another child.
        """
        node = root
        while (
            not node.is_terminal
            and node.depth < config.max_depth
            and node.is_fully_expanded(config.max_children)
        ):
            node = best_child(node, config.exploration_constant)
        return node

    @staticmethod
    def _can_expand(node: MCTSNode, config: MCTSConfig) -> bool:
        return (
            not node.is_terminal
            and node.depth < config.max_depth
            and not node.is_fully_expanded(config.max_children)
        )

    def _expand(
        self,
        node: MCTSNode,
        generator: Generator,
        runner: VerificationRunner,
        prompt: str,
        context: Mapping[str, Any],
        config: MCTSConfig,
        temperatures: List[float],
        state: SearchState,
        order: int,
    ) -> Tuple[Optional[MCTSNode], Optional[float], SearchState]:
        """
        EXPANSION PHASE: generate and score one continuation of ``node``.

        Returns (child, score, state). If generation or scoring fails, no
        child is attached and the selected node is simulated instead; the
        root has no candidate, so in that case nothing is simulated.
        """
        index = len(node.children)
        temperature = temperatures[index % len(temperatures)]
        options = SamplingOptions(
            temperature=temperature,
            parent=node.candidate,
            path=node.candidate_path(),
            depth=node.depth + 1,
            index=index,
        )
        candidate = generate_with_retry(generator, prompt, options, config.max_retries)
        if candidate is not None:
            scored, state = score_batch(runner, [candidate], context, state, first_order=order)
            if scored:
                entry = scored[0]
                is_terminal = (
                    entry.candidate.is_terminal(config.terminal_markers)
                    or node.depth + 1 >= config.max_depth
                )
                child = node.add_child(
                    entry.candidate,
                    is_terminal=is_terminal,
                    order=order,
                    action={"temperature": temperature, "index": index},
                )
                return child, entry.score, state

        if node.candidate is None or not time_or_budget_left(state):
            return None, None, state
        return self._evaluate_node(node, runner, context, state)

    def _evaluate_node(
        self,
        node: MCTSNode,
        runner: VerificationRunner,
        context: Mapping[str, Any],
        state: SearchState,
    ) -> Tuple[Optional[MCTSNode], Optional[float], SearchState]:
        """SIMULATION PHASE: score an existing node's candidate again."""
        if node.candidate is None:
            return None, None, state
        scored, state = score_batch(runner, [node.candidate], context, state, first_order=node.order)
        if not scored:
            return None, None, state
        return node, scored[0].score, state

    def _backpropagate(self, node: MCTSNode, score: float) -> None:
        """
        BACKPROPAGATION PHASE: update statistics from ``node`` up to the root.
        """
        current: Optional[MCTSNode] = node
        while current is not None:
            current.update(score)
            current = current.parent

    @staticmethod
    def _best_path(node: MCTSNode) -> List[MCTSNode]:
        """Follow the best-mean child from ``node`` down to a leaf."""
        best_path = [node]
        current = best_average_child(node)
        while current is not None:
            best_path.append(current)
            current = best_average_child(current)
        return best_path


def mcts_search(
    generator: Generator,
    verifier: Any,
    prompt: str,
    context: Mapping[str, Any] | None = None,
    **options: Any,
) -> SearchResult:
    """
    Convenience function for a single MCTS run.

    Example:
        >>> result = mcts_search(generator, verifier, "What is 15*23?", simulations=30)
        >>> print(result.best.content, result.best_score)
    """
    return MCTS().search(generator, verifier, prompt, options, context=context)
