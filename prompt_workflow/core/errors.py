"""
Error taxonomy for workflow parsing and execution.

Every error is fatal to the run and propagates to the caller of execute().
"""

from typing import Iterable, Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class ParseError(WorkflowError):
    """Raised when a DSL line is malformed."""

    def __init__(self, line_number: int, line_text: str, reason: str = "Invalid syntax"):
        self.line_number = line_number
        self.line_text = line_text
        self.reason = reason
        super().__init__(f"{reason} on line {line_number}: \"{line_text}\"")


class ValidationError(WorkflowError):
    """Raised when LLM nodes reference model nicknames the client does not know."""

    def __init__(self, missing_models: Iterable[str]):
        self.missing_models = sorted(set(missing_models))
        super().__init__(
            "Workflow aborted: the following models are not defined: "
            + ", ".join(self.missing_models)
        )


class NodeExecutionError(WorkflowError):
    """Raised when a node fails to resolve or its completion call fails."""

    def __init__(self, node_id: str, cause: Optional[BaseException] = None, message: str = ""):
        self.node_id = node_id
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"Error executing node {node_id}: {detail}")


class DeadlockError(WorkflowError):
    """Raised when no node can become runnable while some remain unresolved."""

    def __init__(self, pending_nodes: Iterable[str], cycle_nodes: Optional[list[str]] = None):
        self.pending_nodes = list(pending_nodes)
        self.cycle_nodes = list(cycle_nodes or [])
        message = (
            "Deadlock detected: no runnable nodes found, but nodes are still pending: "
            + ", ".join(self.pending_nodes)
        )
        if self.cycle_nodes:
            message += f" (dependency cycle: {' -> '.join(self.cycle_nodes)})"
        super().__init__(message)
