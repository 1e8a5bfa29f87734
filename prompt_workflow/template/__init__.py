"""Prompt template resolution."""

from prompt_workflow.template.resolver import (
    TemplateReference,
    TemplateResolutionError,
    TemplateResolver,
    resolve_node_prompt,
    resolve_static_content,
)

__all__ = [
    "TemplateReference",
    "TemplateResolutionError",
    "TemplateResolver",
    "resolve_node_prompt",
    "resolve_static_content",
]
