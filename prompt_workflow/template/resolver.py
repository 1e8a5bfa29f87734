"""
Prompt template resolution.

Resolves ``{{INPUT}}`` and ``{{#node_id}}`` placeholders without eval/exec.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from prompt_workflow.core.errors import WorkflowError
from prompt_workflow.core.models import Node


class TemplateResolutionError(WorkflowError):
    """Raised when a placeholder cannot be resolved."""

    def __init__(self, message: str, template: str, position: Optional[int] = None):
        self.template = template
        self.position = position
        super().__init__(message)


@dataclass
class TemplateReference:
    """Represents a parsed placeholder."""

    full_match: str
    name: str  # "INPUT" or a node id
    is_input: bool
    start_pos: int
    end_pos: int


class TemplateResolver:
    """
    Resolves prompt placeholders.

    Supports:
    - {{INPUT}} - the user input of the run
    - {{#node_id}} - the stored output of a completed dependency

    All placeholders are replaced in a single left-to-right pass, so an id
    that is a prefix of another (``A`` vs ``A2``) never corrupts it, and text
    coming from the user input or a node output is never re-scanned.
    References to ids outside the allowed dependencies stay literal.
    """

    PLACEHOLDER_PATTERN = re.compile(r"\{\{(INPUT|#[\w-]+)\}\}")

    INPUT = "INPUT"

    def __init__(self, node_outputs: dict[str, str], user_input: str = ""):
        """
        Initialize resolver.

        Args:
            node_outputs: Mapping of completed node_id to its output text
            user_input: The run's user input
        """
        self.node_outputs = node_outputs
        self.user_input = user_input

    def find_references(self, template: str) -> list[TemplateReference]:
        """Find all placeholders in a string."""
        references = []
        for match in self.PLACEHOLDER_PATTERN.finditer(template):
            token = match.group(1)
            is_input = token == self.INPUT
            references.append(TemplateReference(
                full_match=match.group(0),
                name=token if is_input else token[1:],
                is_input=is_input,
                start_pos=match.start(),
                end_pos=match.end(),
            ))
        return references

    def resolve(self, template: str, dependencies: Iterable[str] = ()) -> str:
        """
        Substitute placeholders in a template.

        Args:
            template: Prompt text
            dependencies: Ids whose ``{{#id}}`` placeholders are substituted

        Raises:
            TemplateResolutionError: If an allowed dependency has no stored output
        """
        allowed = set(dependencies)
        parts: list[str] = []
        cursor = 0

        for ref in self.find_references(template):
            parts.append(template[cursor:ref.start_pos])
            parts.append(self._resolve_reference(ref, allowed, template))
            cursor = ref.end_pos

        parts.append(template[cursor:])
        return "".join(parts)

    def _resolve_reference(self, ref: TemplateReference, allowed: set[str], template: str) -> str:
        if ref.is_input:
            return self.user_input
        if ref.name not in allowed:
            return ref.full_match
        if ref.name not in self.node_outputs:
            raise TemplateResolutionError(
                f"No output available for dependency '{ref.name}'",
                template,
                ref.start_pos,
            )
        return self.node_outputs[ref.name]

    def compose(self, template: str, explicit: Iterable[str], children: Iterable[str]) -> str:
        """
        Resolve a template, then prepend the outputs of implicit children.

        Children already consumed through an explicit placeholder are not
        repeated. Prepended outputs keep child order and are separated from each
        other and from the prompt by a blank line.
        """
        explicit = list(explicit)
        prompt = self.resolve(template, explicit)

        context: list[str] = []
        for child_id in children:
            if child_id in explicit:
                continue
            if child_id not in self.node_outputs:
                raise TemplateResolutionError(
                    f"No output available for nested node '{child_id}'",
                    template,
                )
            context.append(self.node_outputs[child_id])

        prefix = "\n\n".join(context)
        if not prefix:
            return prompt
        if not prompt:
            return prefix
        return f"{prefix}\n\n{prompt}"


def resolve_node_prompt(node: Node, completed_outputs: dict[str, str], user_input: str) -> str:
    """
    Build the final prompt for an LLM node.

    Convenience function for the engine.
    """
    resolver = TemplateResolver(node_outputs=completed_outputs, user_input=user_input)
    return resolver.compose(node.prompt_template, node.explicit_dependencies, node.children)


def resolve_static_content(node: Node, completed_outputs: dict[str, str], user_input: str) -> str:
    """Substitute placeholders in a static node's content."""
    resolver = TemplateResolver(node_outputs=completed_outputs, user_input=user_input)
    return resolver.resolve(node.prompt_template, node.explicit_dependencies)
