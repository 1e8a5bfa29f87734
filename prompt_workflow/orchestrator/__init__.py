"""Workflow engine for executing parsed scripts."""

from prompt_workflow.orchestrator.engine import WorkflowEngine, WorkflowRun

__all__ = ["WorkflowEngine", "WorkflowRun"]
