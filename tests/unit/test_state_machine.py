"""
Unit tests for state machine transitions.
"""

import pytest

from prompt_workflow.core.state_machine import (
    InvalidStateTransitionError,
    NodeState,
    NodeStateMachine,
    WorkflowState,
    WorkflowStateMachine,
)


class TestNodeStateMachine:
    """Tests for node state machine."""

    def test_initial_state(self):
        sm = NodeStateMachine()

        assert sm.state == NodeState.PENDING
        assert sm.is_unresolved
        assert not sm.is_terminal

    def test_pending_running_completed(self):
        sm = NodeStateMachine()

        sm.transition(NodeState.RUNNING)
        transition = sm.transition(NodeState.COMPLETED, reason="output stored")

        assert sm.state == NodeState.COMPLETED
        assert sm.is_terminal
        assert not sm.is_unresolved
        assert transition.from_state == "RUNNING"
        assert transition.reason == "output stored"

    def test_running_to_failed(self):
        sm = NodeStateMachine(NodeState.RUNNING)

        sm.transition(NodeState.FAILED, reason="client error")

        assert sm.is_terminal
        assert not sm.is_unresolved

    def test_cannot_skip_running(self):
        sm = NodeStateMachine()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            sm.transition(NodeState.COMPLETED)

        assert exc_info.value.from_state == "PENDING"
        assert sm.state == NodeState.PENDING

    @pytest.mark.parametrize("terminal", [NodeState.COMPLETED, NodeState.FAILED])
    def test_terminal_states_are_final(self, terminal):
        sm = NodeStateMachine(terminal)

        for target in NodeState:
            assert not sm.can_transition_to(target)

    def test_history_tracking(self):
        sm = NodeStateMachine()

        sm.transition(NodeState.RUNNING)
        sm.transition(NodeState.COMPLETED)

        assert [t.to_state for t in sm.history] == ["RUNNING", "COMPLETED"]
        assert all(t.timestamp.tzinfo is not None for t in sm.history)


class TestWorkflowStateMachine:
    """Tests for run state machine."""

    def test_run_lifecycle(self):
        sm = WorkflowStateMachine()

        sm.transition(WorkflowState.RUNNING)
        assert not sm.is_terminal

        sm.transition(WorkflowState.COMPLETED)
        assert sm.state == WorkflowState.COMPLETED
        assert sm.is_terminal

    def test_run_fails_only_once_started(self):
        sm = WorkflowStateMachine()

        assert not sm.can_transition_to(WorkflowState.FAILED)
        sm.transition(WorkflowState.RUNNING)
        sm.transition(WorkflowState.FAILED, reason="node a failed")

        assert sm.state == WorkflowState.FAILED
        assert sm.history[-1].reason == "node a failed"

    def test_cannot_complete_without_running(self):
        with pytest.raises(InvalidStateTransitionError):
            WorkflowStateMachine().transition(WorkflowState.COMPLETED)

