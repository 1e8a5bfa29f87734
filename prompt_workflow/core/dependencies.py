"""
Explicit dependency discovery.

Scans prompt templates for ``{{#id}}`` references and links model tokens that
name a static node to that node as a model variable.
"""

import logging
import re

from prompt_workflow.core.models import Node

logger = logging.getLogger(__name__)

# {{#node_id}} - reference to another node's output
REFERENCE_PATTERN = re.compile(r"\{\{#([\w-]+)\}\}")


def find_reference_ids(template: str) -> list[str]:
    """All ids referenced in a template, de-duplicated, first-seen order."""
    ids: list[str] = []
    for match in REFERENCE_PATTERN.finditer(template or ""):
        if match.group(1) not in ids:
            ids.append(match.group(1))
    return ids


class DependencyResolver:
    """
    Annotates parsed nodes with the dependencies their text declares.

    References to unknown ids are left alone; they stay literal text in the
    prompt rather than failing the script.
    """

    def resolve(self, nodes: list[Node]) -> list[Node]:
        """
        Resolve explicit dependencies and model variables for every node.

        Returns a new list; the input nodes are not modified.
        """
        known_ids = {node.id for node in nodes}
        static_ids = {node.id for node in nodes if node.is_static}

        resolved: list[Node] = []
        for node in nodes:
            explicit = [ref for ref in find_reference_ids(node.prompt_template) if ref in known_ids]
            update: dict = {"explicit_dependencies": explicit}

            variable = self._model_variable(node, static_ids)
            if variable is not None:
                update["model"] = None
                update["model_variable"] = variable
                logger.debug(f"Node '{node.id}' takes its model from static node '{variable}'")

            resolved.append(node.model_copy(update=update, deep=True))

        return resolved

    @staticmethod
    def _model_variable(node: Node, static_ids: set[str]):
        """Static node id named by an LLM node's model token, if any."""
        if not node.is_llm or node.model is None:
            return None

        token = node.model
        match = REFERENCE_PATTERN.fullmatch(token)
        if match:
            token = match.group(1)

        if token in static_ids:
            return token
        return None
