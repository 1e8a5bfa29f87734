"""
FastAPI routes for the workflow engine API.

Implements the API endpoints:
- GET /v1/health - Health check
- GET /v1/models - Models known to the chat client
- POST /v1/workflows/parse - Parse a script and analyse its graph
- POST /v1/workflows/execute - Run a script against user input

Workflow errors are translated to HTTP responses by the handler registered in
create_app().
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from prompt_workflow import __version__
from prompt_workflow.core.dag import WorkflowGraph
from prompt_workflow.core.parser import parse_script

router = APIRouter(prefix="/v1", tags=["workflows"])


# ==================== Request/Response Models ====================

class WorkflowParseRequest(BaseModel):
    """Request body for script parsing."""

    script: str = Field(..., description="Workflow DSL source")

    model_config = {
        "json_schema_extra": {
            "example": {
                "script": '#topic = "volcanoes"\nflash: Write a haiku about {{#topic}}',
            }
        }
    }


class NodeSummary(BaseModel):
    """Parsed node as returned by the API."""

    id: str
    kind: str
    model: Optional[str] = None
    model_variable: Optional[str] = None
    flags: list[str] = Field(default_factory=list)
    indent_level: int
    line_number: int
    children: list[str] = Field(default_factory=list)
    explicit_dependencies: list[str] = Field(default_factory=list)

    model_config = {"protected_namespaces": ()}


class GraphIssueResponse(BaseModel):
    code: str
    message: str
    node_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)


class WorkflowParseResponse(BaseModel):
    """Response for script parsing."""

    nodes: list[NodeSummary]
    is_valid: bool
    errors: list[GraphIssueResponse] = Field(default_factory=list)
    warnings: list[GraphIssueResponse] = Field(default_factory=list)
    parallel_batches: list[list[str]] = Field(default_factory=list)


class WorkflowExecuteRequest(BaseModel):
    """Request body for workflow execution."""

    script: str = Field(..., description="Workflow DSL source")
    input: str = Field(default="", description="User input substituted for {{INPUT}}")
    sequential_requests: Optional[bool] = Field(
        default=None,
        description="Override the configured concurrency mode",
    )
    request_delay: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Override the configured throttling delay (seconds)",
    )


class WorkflowExecuteResponse(BaseModel):
    """Response for workflow execution."""

    result: str
    state: str
    node_states: dict[str, str] = Field(default_factory=dict)
    outputs: dict[str, str] = Field(default_factory=dict)
    rounds: int = 0
    elapsed: float = 0.0
    progress: list[str] = Field(default_factory=list)


class ModelResponse(BaseModel):
    nickname: str
    endpoint: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    models: list[str]


# ==================== Dependency Injection ====================

async def get_engine(request: Request):
    """Get workflow engine from app state."""
    return request.app.state.engine


async def get_client(request: Request):
    """Get chat client from app state."""
    return request.app.state.client


async def get_workflow_settings(request: Request):
    """Get workflow settings from app state."""
    return request.app.state.settings.workflow


# ==================== Routes ====================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(client=Depends(get_client)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        models=[model.nickname for model in client.get_models()],
    )


@router.get(
    "/models",
    response_model=list[ModelResponse],
    summary="List models",
    description="Models that workflow scripts may reference by nickname.",
)
async def list_models(client=Depends(get_client)) -> list[ModelResponse]:
    return [ModelResponse(nickname=m.nickname, endpoint=m.endpoint) for m in client.get_models()]


@router.post(
    "/workflows/parse",
    response_model=WorkflowParseResponse,
    summary="Parse a workflow script",
    description="Parse a script into nodes and report graph problems without executing it.",
)
async def parse_workflow(request: WorkflowParseRequest) -> WorkflowParseResponse:
    """Parse and analyse a workflow script."""
    nodes = parse_script(request.script)
    graph = WorkflowGraph(nodes)
    report = graph.validate()

    return WorkflowParseResponse(
        nodes=[
            NodeSummary(
                id=node.id,
                kind=node.kind.value,
                model=node.model,
                model_variable=node.model_variable,
                flags=node.flags,
                indent_level=node.indent_level,
                line_number=node.line_number,
                children=node.children,
                explicit_dependencies=node.explicit_dependencies,
            )
            for node in nodes
        ],
        is_valid=report.is_valid,
        errors=[GraphIssueResponse(**vars(issue)) for issue in report.errors],
        warnings=[GraphIssueResponse(**vars(issue)) for issue in report.warnings],
        parallel_batches=graph.get_parallel_batches(),
    )


@router.post(
    "/workflows/execute",
    response_model=WorkflowExecuteResponse,
    summary="Execute a workflow script",
    description="Run a script against the user input and return the joined result.",
)
async def execute_workflow(
    request: WorkflowExecuteRequest,
    engine=Depends(get_engine),
    workflow_settings=Depends(get_workflow_settings),
) -> WorkflowExecuteResponse:
    """Execute a workflow and return its result with per-node detail."""
    progress: list[str] = []
    config = workflow_settings.to_run_config(
        sequential_requests=request.sequential_requests,
        request_delay=request.request_delay,
    )

    run = await engine.run(request.script, request.input, progress.append, config)

    return WorkflowExecuteResponse(
        result=run.result,
        state=run.state.value,
        node_states={node_id: state.value for node_id, state in run.node_states.items()},
        outputs=run.outputs,
        rounds=run.rounds,
        elapsed=run.elapsed,
        progress=progress,
    )
