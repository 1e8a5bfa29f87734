"""Core domain models and business logic."""

from prompt_workflow.core.models import Message, ModelInfo, Node, NodeKind
from prompt_workflow.core.errors import (
    DeadlockError,
    NodeExecutionError,
    ParseError,
    ValidationError,
    WorkflowError,
)
from prompt_workflow.core.state_machine import (
    NodeState,
    WorkflowState,
    NodeStateMachine,
    WorkflowStateMachine,
)
from prompt_workflow.core.parser import ScriptParser, parse_script
from prompt_workflow.core.dependencies import DependencyResolver
from prompt_workflow.core.dag import WorkflowGraph

__all__ = [
    "Message",
    "ModelInfo",
    "Node",
    "NodeKind",
    "DeadlockError",
    "NodeExecutionError",
    "ParseError",
    "ValidationError",
    "WorkflowError",
    "NodeState",
    "WorkflowState",
    "NodeStateMachine",
    "WorkflowStateMachine",
    "ScriptParser",
    "parse_script",
    "DependencyResolver",
    "WorkflowGraph",
]
