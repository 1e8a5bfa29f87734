"""
State machine definitions for workflow runs and their nodes.

Implements explicit state transitions with validation and history.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from prompt_workflow.core.errors import WorkflowError


class NodeState(str, Enum):
    """
    Possible states for a node within one run.

    State transitions:
    - PENDING -> RUNNING -> COMPLETED
    - PENDING -> RUNNING -> FAILED
    """

    PENDING = "PENDING"      # Waiting for dependencies
    RUNNING = "RUNNING"      # Dependencies met, resolving or awaiting the client
    COMPLETED = "COMPLETED"  # Output stored
    FAILED = "FAILED"        # Resolution or completion call failed


class WorkflowState(str, Enum):
    """
    Possible states for a whole run.

    State transitions:
    - PENDING -> RUNNING -> COMPLETED
    - PENDING -> RUNNING -> FAILED
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StateTransition(BaseModel):
    """Represents a state transition event."""

    from_state: str
    to_state: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


class InvalidStateTransitionError(WorkflowError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: str, to_state: str, message: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition from {from_state} to {to_state}"
            + (f": {message}" if message else "")
        )


S = TypeVar("S", NodeState, WorkflowState)


class _StateMachine(Generic[S]):
    """Shared transition bookkeeping for node and workflow machines."""

    VALID_TRANSITIONS: ClassVar[dict]
    INITIAL_STATE: ClassVar[Enum]

    def __init__(self, initial_state: Optional[S] = None):
        self._state: S = initial_state or self.INITIAL_STATE
        self._history: list[StateTransition] = []

    @property
    def state(self) -> S:
        """Get current state."""
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Get state transition history."""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return not self.VALID_TRANSITIONS.get(self._state)

    def can_transition_to(self, to_state: S) -> bool:
        """Check if transition to given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def get_valid_transitions(self) -> set[S]:
        """Get all valid transitions from current state."""
        return set(self.VALID_TRANSITIONS.get(self._state, set()))

    def transition(self, to_state: S, reason: Optional[str] = None) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        if not self.can_transition_to(to_state):
            raise InvalidStateTransitionError(
                self._state.value,
                to_state.value,
                f"Valid transitions: {sorted(s.value for s in self.get_valid_transitions())}",
            )

        transition = StateTransition(
            from_state=self._state.value,
            to_state=to_state.value,
            reason=reason,
        )
        self._history.append(transition)
        self._state = to_state
        return transition


class NodeStateMachine(_StateMachine[NodeState]):
    """State machine for a node's lifecycle within one run."""

    VALID_TRANSITIONS = {
        NodeState.PENDING: {NodeState.RUNNING},
        NodeState.RUNNING: {NodeState.COMPLETED, NodeState.FAILED},
        NodeState.COMPLETED: set(),  # Terminal state
        NodeState.FAILED: set(),     # Terminal state
    }
    INITIAL_STATE = NodeState.PENDING

    @property
    def is_unresolved(self) -> bool:
        """Pending or running."""
        return not self.is_terminal


class WorkflowStateMachine(_StateMachine[WorkflowState]):
    """State machine for a whole run."""

    VALID_TRANSITIONS = {
        WorkflowState.PENDING: {WorkflowState.RUNNING},
        WorkflowState.RUNNING: {WorkflowState.COMPLETED, WorkflowState.FAILED},
        WorkflowState.COMPLETED: set(),
        WorkflowState.FAILED: set(),
    }
    INITIAL_STATE = WorkflowState.PENDING
