"""Configuration management."""

from prompt_workflow.config.settings import (
    Environment,
    Settings,
    WorkflowRunConfig,
    WorkflowSettings,
    get_settings,
)

__all__ = [
    "Environment",
    "Settings",
    "WorkflowRunConfig",
    "WorkflowSettings",
    "get_settings",
]
