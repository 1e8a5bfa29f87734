"""
Workflow script parsing.

Turns DSL source into an ordered list of Node descriptors. Structure comes
from indentation: a line nested beneath another becomes one of its children.

Grammar (one node per line; blank lines and ``//`` comments are skipped):

    #id = <content>                           static assignment
    [#id] [model] [+flag ...] [: <prompt>]    step line
    ... : \"\"\"                              fenced multi-line prompt
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from prompt_workflow.core.dependencies import DependencyResolver
from prompt_workflow.core.errors import ParseError
from prompt_workflow.core.models import Node, NodeKind

logger = logging.getLogger(__name__)

FENCE = '"""'
COMMENT_PREFIX = "//"
SPACES_PER_LEVEL = 2


@dataclass
class _LineHeader:
    """Parsed pieces of a single step or static line."""

    node_id: Optional[str] = None
    model: Optional[str] = None
    flags: list[str] = field(default_factory=list)
    prompt: str = ""


class ScriptParser:
    """
    Parses workflow scripts into nodes.

    Node ids are author-supplied (``#id``) or assigned as ``node_<line>`` so that
    the same script always yields the same ids.
    """

    STATIC_PATTERN = re.compile(r"^#([\w-]+)\s*=\s*(.*)$", re.DOTALL)
    ID_TOKEN_PATTERN = re.compile(r"^#([\w-]+)$")
    FLAG_TOKEN_PATTERN = re.compile(r"^\+([\w-]+)$")

    def parse(self, source: str) -> list[Node]:
        """
        Parse script source into nodes in declaration order.

        Raises:
            ParseError: On the first malformed line
        """
        # Only "\n" ends a line; other Unicode separators belong to the content
        lines = [line.removesuffix("\r") for line in source.split("\n")]
        nodes: list[Node] = []
        seen_ids: set[str] = set()
        parent_stack: list[Node] = []

        i = 0
        while i < len(lines):
            raw = lines[i]
            line_number = i + 1
            text = raw.strip()
            i += 1

            if not text or text.startswith(COMMENT_PREFIX):
                continue

            indent_level = self.calculate_indent_level(raw)
            header = self.parse_line(text, line_number)

            if header.prompt == FENCE:
                header.prompt, i = self._consume_fence(lines, i)

            node_id = header.node_id or f"node_{line_number}"
            if node_id in seen_ids:
                raise ParseError(line_number, text, f"Duplicate node id '{node_id}'")
            seen_ids.add(node_id)

            node = Node(
                id=node_id,
                kind=NodeKind.LLM if header.model else NodeKind.STATIC,
                prompt_template=header.prompt,
                indent_level=indent_level,
                line_number=line_number,
                flags=header.flags,
                model=header.model,
            )

            # Close every ancestor that is not strictly shallower than this node
            while parent_stack and parent_stack[-1].indent_level >= indent_level:
                parent_stack.pop()
            if parent_stack:
                parent_stack[-1].children.append(node.id)
            parent_stack.append(node)
            nodes.append(node)

        logger.debug(f"Parsed {len(nodes)} workflow nodes")
        return nodes

    @staticmethod
    def calculate_indent_level(line: str) -> int:
        """Indent level from leading whitespace; a tab counts as two spaces."""
        leading = line[: len(line) - len(line.lstrip())]
        width = len(leading.replace("\t", " " * SPACES_PER_LEVEL))
        return width // SPACES_PER_LEVEL

    def parse_line(self, text: str, line_number: int) -> _LineHeader:
        """
        Parse one trimmed, non-comment line.

        Raises:
            ParseError: If the line names neither an id nor a model, or holds
                tokens the grammar does not allow
        """
        static_match = self.STATIC_PATTERN.match(text)
        if static_match:
            return _LineHeader(
                node_id=static_match.group(1),
                prompt=static_match.group(2),
            )

        before, colon, after = text.partition(":")
        prompt = after.strip() if colon else ""

        header = _LineHeader(prompt=prompt)
        tokens = before.split()
        position = 0

        if position < len(tokens) and tokens[position].startswith("#"):
            id_match = self.ID_TOKEN_PATTERN.match(tokens[position])
            if not id_match:
                raise ParseError(line_number, text, f"Invalid node id '{tokens[position]}'")
            header.node_id = id_match.group(1)
            position += 1

        if position < len(tokens) and not tokens[position].startswith("+"):
            header.model = tokens[position]
            position += 1

        for token in tokens[position:]:
            flag_match = self.FLAG_TOKEN_PATTERN.match(token)
            if not flag_match:
                raise ParseError(line_number, text, f"Unexpected token '{token}'")
            header.flags.append(flag_match.group(1))

        if not header.node_id and not header.model:
            raise ParseError(line_number, text)

        return header

    @staticmethod
    def _consume_fence(
        lines: list[str],
        start: int,
    ) -> tuple[str, int]:
        """
        Collect a fenced block starting at ``lines[start]``.

        Returns the trimmed block content and the index of the line after the
        closing fence. A block left open runs to the end of the script.
        """
        collected: list[str] = []
        i = start
        while i < len(lines):
            current = lines[i]
            stripped = current.strip()
            if stripped.endswith(FENCE):
                collected.append(stripped[: -len(FENCE)])
                return "\n".join(collected).strip(), i + 1
            collected.append(current)
            i += 1

        return "\n".join(collected).strip(), i


def parse_script(source: str) -> list[Node]:
    """
    Parse a script and annotate explicit dependencies and model variables.

    Convenience function for the engine and API.
    """
    nodes = ScriptParser().parse(source)
    return DependencyResolver().resolve(nodes)
