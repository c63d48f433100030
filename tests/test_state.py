"""Tests for SearchState transitions."""

import random

import pytest

from verified_search.core.candidate import Candidate
from verified_search.errors import InvalidConfig
from verified_search.search import state as st
from verified_search.search.state import SearchPhase


class TestNewState:
    def test_defaults(self):
        state = st.new_state(10)
        assert state.budget_remaining == 10
        assert state.best_node is None
        assert state.best_score == float("-inf")
        assert state.iterations == 0
        assert state.phase is SearchPhase.IDLE
        assert not state.converged

    def test_negative_budget(self):
        with pytest.raises(InvalidConfig):
            st.new_state(-1)

    def test_start_sets_deadline(self):
        state = st.start(st.new_state(5), timeout=60)
        assert state.phase is SearchPhase.SEARCHING
        assert state.deadline == pytest.approx(state.start_time + 60)
        assert not st.deadline_exceeded(state)

    def test_deadline_exceeded(self):
        state = st.start(st.new_state(5), timeout=1)
        assert st.deadline_exceeded(state, now=state.start_time + 2)
        assert not st.deadline_exceeded(st.start(st.new_state(5)))


class TestUpdateBest:
    def test_replaces_on_strictly_greater(self):
        a, b = Candidate(content="a"), Candidate(content="b")
        state = st.update_best(st.new_state(1), a, 0.5)
        state = st.update_best(state, b, 0.7)
        assert state.best_node is b
        assert state.best_score == 0.7

    def test_tie_keeps_earlier(self):
        a, b = Candidate(content="a"), Candidate(content="b")
        state = st.update_best(st.new_state(1), a, 0.5)
        state = st.update_best(state, b, 0.5)
        assert state.best_node is a

    def test_original_state_untouched(self):
        initial = st.new_state(1)
        st.update_best(initial, Candidate(content="a"), 0.9)
        assert initial.best_node is None

    def test_monotonic_best_score(self):
        rng = random.Random(7)
        state = st.new_state(100)
        previous = state.best_score
        for i in range(200):
            state = st.update_best(state, Candidate(content=str(i)), rng.random())
            assert state.best_score >= previous
            previous = state.best_score


class TestBudgetAndStopping:
    def test_decrement_and_stop(self):
        state = st.decrement_budget(st.new_state(3), 2)
        assert state.budget_remaining == 1
        assert not st.should_stop(state)
        state = st.decrement_budget(state)
        assert st.should_stop(state)
        assert st.stop_reason(state) == "budget"

    def test_negative_decrement(self):
        with pytest.raises(ValueError):
            st.decrement_budget(st.new_state(3), -1)

    def test_converged_stops(self):
        state = st.mark_converged(st.new_state(3))
        assert st.should_stop(state)
        assert state.phase is SearchPhase.CONVERGED
        assert st.stop_reason(state) == "converged"

    def test_max_iterations(self):
        state = st.new_state(10, max_iterations=2)
        state = st.record_iteration(st.record_iteration(state))
        assert st.should_stop(state)
        assert st.stop_reason(state) == "max_iterations"


class TestConvergence:
    def _run(self, scores, epsilon=0.0):
        state = st.new_state(100)
        for i, score in enumerate(scores):
            state = st.update_best(state, Candidate(content=str(i)), score)
            state = st.record_iteration(state, epsilon)
        return state

    def test_not_converged_while_improving(self):
        state = self._run([0.1, 0.2, 0.3, 0.4])
        assert not st.has_converged(state, window=2, epsilon=0.01)

    def test_converged_after_plateau(self):
        state = self._run([0.1, 0.5, 0.5, 0.5])
        assert st.has_converged(state, window=2, epsilon=0.01)
        assert state.stagnation_count == 2
        assert st.stagnated(state, patience=2)

    def test_small_improvements_within_epsilon(self):
        state = self._run([0.5, 0.5001, 0.5002], epsilon=0.01)
        assert st.has_converged(state, window=2, epsilon=0.01)

    def test_short_history(self):
        state = self._run([0.5])
        assert not st.has_converged(state, window=1, epsilon=0.0)


class TestNodes:
    def test_add_and_set(self):
        state = st.add_node(st.new_state(1), "x")
        state = st.add_nodes(state, ["y", "z"])
        assert state.nodes == ("x", "y", "z")
        assert st.set_nodes(state, ["w"]).nodes == ("w",)

    def test_metadata(self):
        state = st.put_metadata(st.new_state(1), "beam_width", 3)
        assert state.metadata == {"beam_width": 3}

    def test_finish_phases(self):
        assert st.finish(st.new_state(1)).phase is SearchPhase.DONE
        assert st.finish(st.new_state(1), exhausted=True).phase is SearchPhase.EXHAUSTED
        assert st.finish(st.mark_converged(st.new_state(1))).phase is SearchPhase.CONVERGED
