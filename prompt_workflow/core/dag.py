"""
Static analysis of a workflow's dependency graph.

Implements cycle detection using Kahn's algorithm plus structure checks. The
scheduler never relies on this to run a workflow; it uses it to explain a
deadlock, and the API uses it to report problems before execution.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Optional

from prompt_workflow.core.dependencies import find_reference_ids
from prompt_workflow.core.models import Node


@dataclass
class GraphIssue:
    """Represents a single graph problem."""

    code: str
    message: str
    node_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphReport:
    """Result of graph analysis."""

    is_valid: bool
    errors: list[GraphIssue] = field(default_factory=list)
    warnings: list[GraphIssue] = field(default_factory=list)

    # Computed graph properties (populated when acyclic)
    topological_order: list[str] = field(default_factory=list)
    levels: dict[str, int] = field(default_factory=dict)  # node_id -> level
    cycle: list[str] = field(default_factory=list)

    def add_error(self, code: str, message: str, node_id: Optional[str] = None, **details: Any) -> None:
        """Add an error and mark the graph invalid."""
        self.errors.append(GraphIssue(code, message, node_id, details))
        self.is_valid = False

    def add_warning(self, code: str, message: str, node_id: Optional[str] = None, **details: Any) -> None:
        """Add a warning."""
        self.warnings.append(GraphIssue(code, message, node_id, details))


class WorkflowGraph:
    """
    Dependency graph of parsed workflow nodes.

    Edges run from a dependency to its dependent. A node's dependencies are its
    nested children, its explicit ``{{#id}}`` references, and its model
    variable.
    """

    def __init__(self, nodes: list[Node]):
        self.nodes = nodes
        self._node_map: dict[str, Node] = {node.id: node for node in nodes}
        self._adjacency_list: dict[str, list[str]] = defaultdict(list)
        self._in_degree: dict[str, int] = {}

        self._build_graph()

    def _build_graph(self) -> None:
        """Build internal graph representation."""
        for node in self.nodes:
            deps = [dep for dep in node.dependencies if dep in self._node_map]
            self._in_degree[node.id] = len(deps)
            for dep in deps:
                self._adjacency_list[dep].append(node.id)

    def dependents_of(self, node_id: str) -> list[str]:
        """Ids of nodes that wait on the given node."""
        return list(self._adjacency_list.get(node_id, []))

    def get_ready_nodes(self, completed: set[str]) -> list[Node]:
        """
        Get nodes whose dependencies are all in the completed set.

        Completed nodes themselves are excluded.
        """
        return [
            node for node in self.nodes
            if node.id not in completed
            and all(dep in completed for dep in node.dependencies)
        ]

    def validate(self) -> GraphReport:
        """
        Analyse the graph.

        Returns:
            GraphReport with errors, warnings, and computed properties
        """
        report = GraphReport(is_valid=True)

        self._check_self_references(report)
        self._detect_cycles_and_compute_order(report)
        self._compute_levels(report)
        self._check_unknown_references(report)
        self._check_unused_outputs(report)

        return report

    def find_cycle(self, candidates: Optional[set[str]] = None) -> list[str]:
        """Find one dependency cycle among the candidate nodes using DFS."""
        candidates = candidates if candidates is not None else set(self._node_map)
        visited: set[str] = set()
        rec_stack: set[str] = set()
        cycle_path: list[str] = []

        def dfs(node_id: str, path: list[str]) -> bool:
            visited.add(node_id)
            rec_stack.add(node_id)
            path.append(node_id)

            for neighbor in self._adjacency_list.get(node_id, []):
                if neighbor not in candidates:
                    continue
                if neighbor not in visited:
                    if dfs(neighbor, path):
                        return True
                elif neighbor in rec_stack:
                    cycle_path.extend(path[path.index(neighbor):])
                    return True

            path.pop()
            rec_stack.remove(node_id)
            return False

        # Declaration order keeps the reported cycle stable
        for node in self.nodes:
            if node.id in candidates and node.id not in visited:
                if dfs(node.id, []):
                    break

        return cycle_path

    def _check_self_references(self, report: GraphReport) -> None:
        for node in self.nodes:
            if node.id in node.explicit_dependencies:
                report.add_error(
                    code="SELF_REFERENCE",
                    message=f"Node '{node.id}' references its own output",
                    node_id=node.id,
                )

    def _detect_cycles_and_compute_order(self, report: GraphReport) -> None:
        """
        Detect cycles using Kahn's algorithm and compute topological order.

        Nodes left with a non-zero in-degree once the queue drains are on, or
        behind, a cycle.
        """
        in_degree = self._in_degree.copy()
        queue = deque(node.id for node in self.nodes if in_degree[node.id] == 0)
        order: list[str] = []

        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            for neighbor in self._adjacency_list[node_id]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        if len(order) != len(self._node_map):
            remaining = set(self._node_map) - set(order)
            cycle = self.find_cycle(remaining) or sorted(remaining)
            report.cycle = cycle
            report.add_error(
                code="CYCLE_DETECTED",
                message=f"Workflow contains circular dependencies involving nodes: {cycle}",
                cycle_nodes=cycle,
            )
        else:
            report.topological_order = order

    def _compute_levels(self, report: GraphReport) -> None:
        """Level of a node is one more than its deepest dependency."""
        if not report.topological_order:
            return

        levels: dict[str, int] = {}
        for node_id in report.topological_order:
            deps = [d for d in self._node_map[node_id].dependencies if d in self._node_map]
            levels[node_id] = max((levels[d] for d in deps), default=-1) + 1
        report.levels = levels

    def _check_unknown_references(self, report: GraphReport) -> None:
        for node in self.nodes:
            unknown = [ref for ref in find_reference_ids(node.prompt_template) if ref not in self._node_map]
            for ref in unknown:
                report.add_warning(
                    code="UNKNOWN_REFERENCE",
                    message=f"Node '{node.id}' references unknown node '{ref}'; it stays literal text",
                    node_id=node.id,
                    reference=ref,
                )

    def _check_unused_outputs(self, report: GraphReport) -> None:
        """Nodes whose output never reaches the final result or another prompt."""
        for node in self.nodes:
            if self.dependents_of(node.id):
                continue
            if node.is_llm and node.indent_level == 0:
                continue
            report.add_warning(
                code="UNUSED_OUTPUT",
                message=f"Output of node '{node.id}' is not used by any other node or the result",
                node_id=node.id,
            )

    def get_parallel_batches(self) -> list[list[str]]:
        """
        Get node ids grouped by level.

        Nodes in the same batch become runnable in the same round.
        """
        report = self.validate()
        if not report.levels:
            return []

        level_groups: dict[int, list[str]] = defaultdict(list)
        for node_id in report.topological_order:
            level_groups[report.levels[node_id]].append(node_id)
        return [level_groups[level] for level in range(max(level_groups) + 1)]
