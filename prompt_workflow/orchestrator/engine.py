"""
Workflow execution engine.

Drives a parsed workflow to completion in dependency order:
- Upfront model validation
- Round-based scheduling (readiness recomputed every round)
- Static resolution before LLM calls within a round
- Sequential or parallel LLM calls with throttling delays
- Deadlock detection after a grace period of stalled ticks
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from prompt_workflow.clients.base import ChatClient
from prompt_workflow.config.settings import WorkflowRunConfig
from prompt_workflow.core.dag import WorkflowGraph
from prompt_workflow.core.errors import DeadlockError, NodeExecutionError, ValidationError
from prompt_workflow.core.models import Message, Node
from prompt_workflow.core.parser import parse_script
from prompt_workflow.core.state_machine import (
    NodeState,
    NodeStateMachine,
    WorkflowState,
    WorkflowStateMachine,
)
from prompt_workflow.template.resolver import (
    TemplateResolver,
    resolve_node_prompt,
    resolve_static_content,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

HISTORY_FLAG = "history"
USER_SENDER = "User"
RESULT_SEPARATOR = "\n\n"


@dataclass
class WorkflowRun:
    """Outcome of one workflow execution."""

    state: WorkflowState
    result: str = ""
    outputs: dict[str, str] = field(default_factory=dict)
    node_states: dict[str, NodeState] = field(default_factory=dict)
    rounds: int = 0
    elapsed: float = 0.0


class WorkflowEngine:
    """
    Executes workflow scripts against a chat client.

    The engine holds no per-run state; every call to ``execute``/``run``
    parses the script afresh and discards its state when done.
    """

    def __init__(self, client: ChatClient, config: Optional[WorkflowRunConfig] = None):
        self.client = client
        self.config = config or WorkflowRunConfig()

    async def execute(
        self,
        script: str,
        user_input: str,
        on_progress: Optional[ProgressCallback] = None,
        config: Optional[WorkflowRunConfig] = None,
    ) -> str:
        """
        Execute a workflow and return its final text.

        Raises:
            ParseError: Malformed script
            ValidationError: Unknown model nicknames (before any call)
            NodeExecutionError: A node failed
            DeadlockError: The graph cannot be completed
        """
        run = await self.run(script, user_input, on_progress, config)
        return run.result

    async def run(
        self,
        script: str,
        user_input: str,
        on_progress: Optional[ProgressCallback] = None,
        config: Optional[WorkflowRunConfig] = None,
    ) -> WorkflowRun:
        """Execute a workflow and return the full run record."""
        nodes = parse_script(script)
        if not nodes:
            return WorkflowRun(state=WorkflowState.COMPLETED)

        self.validate_models(nodes)

        execution = _WorkflowExecution(
            nodes=nodes,
            client=self.client,
            config=config or self.config,
            user_input=user_input,
            on_progress=on_progress,
        )
        return await execution.run()

    def validate_models(self, nodes: list[Node]) -> None:
        """
        Check every model nickname the workflow needs against the client.

        Model variables are checked when their static target is non-empty and
        has no placeholders. Other targets are checked when the node runs.

        Raises:
            ValidationError: Naming every missing nickname
        """
        available = {model.nickname.lower() for model in self.client.get_models()}
        node_map = {node.id: node for node in nodes}
        missing: set[str] = set()

        for node in nodes:
            if not node.is_llm:
                continue
            nickname = node.model
            if nickname is None:
                target = node_map[node.model_variable]
                nickname = target.prompt_template.strip()
                if not nickname or TemplateResolver.PLACEHOLDER_PATTERN.search(nickname):
                    continue
            if nickname.lower() not in available:
                missing.add(nickname)

        if missing:
            logger.error(f"Workflow references undefined models: {sorted(missing)}")
            raise ValidationError(missing)


class _WorkflowExecution:
    """State of a single run: node machines, output store, round counter."""

    def __init__(
        self,
        nodes: list[Node],
        client: ChatClient,
        config: WorkflowRunConfig,
        user_input: str,
        on_progress: Optional[ProgressCallback],
    ):
        self.nodes = nodes
        self.client = client
        self.config = config
        self.user_input = user_input
        self._on_progress = on_progress

        self.machines: dict[str, NodeStateMachine] = {node.id: NodeStateMachine() for node in nodes}
        self.outputs: dict[str, str] = {}
        self.workflow = WorkflowStateMachine()
        self.rounds = 0
        self.graph = WorkflowGraph(nodes)

    # ==================== Run Loop ====================

    async def run(self) -> WorkflowRun:
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.workflow.transition(WorkflowState.RUNNING)
        logger.info(
            f"Workflow started: {len(self.nodes)} nodes, "
            f"mode={'sequential' if self.config.sequential_requests else 'parallel'}, "
            f"delay={self.config.request_delay}s"
        )

        try:
            await self._run_rounds()
        except Exception:
            self.workflow.transition(WorkflowState.FAILED)
            raise

        self.workflow.transition(WorkflowState.COMPLETED)
        result = RESULT_SEPARATOR.join(
            self.outputs[node.id]
            for node in self.nodes
            if node.indent_level == 0 and node.is_llm
        )
        elapsed = loop.time() - started
        logger.info(f"Workflow completed in {self.rounds} rounds ({elapsed:.2f}s)")

        return WorkflowRun(
            state=self.workflow.state,
            result=result,
            outputs=dict(self.outputs),
            node_states=self.node_states,
            rounds=self.rounds,
            elapsed=elapsed,
        )

    async def _run_rounds(self) -> None:
        last_runnable_count = -1
        stalled_ticks = 0

        while self._has_unresolved():
            runnable = self._runnable_nodes()

            if not runnable:
                if len(runnable) == last_runnable_count:
                    stalled_ticks += 1
                else:
                    stalled_ticks = 0
                if stalled_ticks > self.config.deadlock_grace_ticks:
                    self._raise_deadlock()
            last_runnable_count = len(runnable)

            if runnable:
                self.rounds += 1
                logger.debug(f"Round {self.rounds}: {[node.id for node in runnable]}")
                for node in runnable:
                    self.machines[node.id].transition(NodeState.RUNNING)

                # All static nodes of the round settle before any LLM call starts
                for node in runnable:
                    if node.is_static:
                        self._resolve_static(node)

                llm_nodes = [node for node in runnable if node.is_llm]
                if llm_nodes:
                    if self.config.sequential_requests:
                        await self._run_sequential(llm_nodes)
                    else:
                        await self._run_parallel(llm_nodes)

            await asyncio.sleep(self.config.round_pause)

    def _has_unresolved(self) -> bool:
        return any(machine.is_unresolved for machine in self.machines.values())

    def _runnable_nodes(self) -> list[Node]:
        completed = {
            node_id for node_id, machine in self.machines.items()
            if machine.state == NodeState.COMPLETED
        }
        return [
            node for node in self.graph.get_ready_nodes(completed)
            if self.machines[node.id].state == NodeState.PENDING
        ]

    def _raise_deadlock(self) -> None:
        pending = [node.id for node in self.nodes if self.machines[node.id].is_unresolved]
        cycle = self.graph.find_cycle(set(pending))
        logger.error(f"Deadlock detected; unresolved nodes: {pending}, cycle: {cycle}")
        raise DeadlockError(pending, cycle)

    # ==================== Node Execution ====================

    def _resolve_static(self, node: Node) -> None:
        self._progress(f"Resolving: {node.id}")
        try:
            content = resolve_static_content(node, self.outputs, self.user_input)
        except Exception as e:
            raise self._fail(node, e) from e
        self._complete(node, content)

    async def _run_sequential(self, nodes: list[Node]) -> None:
        for index, node in enumerate(nodes):
            await self._execute_llm_node(node, throttle=index > 0)

    async def _run_parallel(self, nodes: list[Node]) -> None:
        tasks = [asyncio.create_task(self._execute_llm_node(node, throttle=True)) for node in nodes]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _execute_llm_node(self, node: Node, throttle: bool) -> None:
        delay = self.config.request_delay
        if throttle and delay > 0:
            self._progress(f"Waiting {delay:g}s before {node.id}")
            logger.debug(f"Throttling {node.id} for {delay}s")
            await asyncio.sleep(delay)

        try:
            model = self._resolve_model(node)
            self._progress(f"Running: {node.id} ({model})")
            prompt = resolve_node_prompt(node, self.outputs, self.user_input)
            messages = await self._build_messages(node, prompt)
            result = await self.client.generate_from_model(model, messages, list(node.flags))
        except Exception as e:
            raise self._fail(node, e) from e

        self._complete(node, result)

    def _resolve_model(self, node: Node) -> str:
        """Literal nickname, or the stored value of the model variable."""
        if node.model is not None:
            return node.model

        value = self.outputs.get(node.model_variable)
        if value is None:
            raise ValueError(f"Model variable '{node.model_variable}' has no value")
        nickname = value.strip()
        if not nickname:
            raise ValueError(f"Model variable '{node.model_variable}' is empty")
        if not any(model.matches(nickname) for model in self.client.get_models()):
            raise ValueError(
                f"Model '{nickname}' from variable '{node.model_variable}' is not defined"
            )
        return nickname

    async def _build_messages(self, node: Node, prompt: str) -> list[Message]:
        turn = Message(sender=USER_SENDER, content=prompt)
        if HISTORY_FLAG in node.flags:
            history = await self.client.get_messages() or []
            return [*history, turn]
        return [turn]

    # ==================== State Bookkeeping ====================

    def _complete(self, node: Node, output: str) -> None:
        self.outputs[node.id] = output
        self.machines[node.id].transition(NodeState.COMPLETED)
        logger.info(f"Node {node.id} completed")
        self._progress(f"Completed: {node.id}")

    def _fail(self, node: Node, error: Exception) -> NodeExecutionError:
        self.machines[node.id].transition(NodeState.FAILED, reason=str(error))
        logger.error(f"Node {node.id} failed: {error}")
        self._progress(f"Failed: {node.id} - {error}")
        return NodeExecutionError(node.id, error)

    def _progress(self, status: str) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(status)
        except Exception as e:
            logger.warning(f"Progress callback raised: {e}", exc_info=True)

    @property
    def node_states(self) -> dict[str, NodeState]:
        return {node_id: machine.state for node_id, machine in self.machines.items()}
