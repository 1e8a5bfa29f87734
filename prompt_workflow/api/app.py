"""
FastAPI application factory.

Creates and configures the workflow engine API application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prompt_workflow import __version__
from prompt_workflow.api.routes import router
from prompt_workflow.clients.base import ChatClient
from prompt_workflow.clients.mock import MockChatClient
from prompt_workflow.config import Settings, get_settings
from prompt_workflow.core.errors import (
    DeadlockError,
    NodeExecutionError,
    ParseError,
    ValidationError,
    WorkflowError,
)
from prompt_workflow.orchestrator.engine import WorkflowEngine

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[WorkflowError], int] = {
    ParseError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DeadlockError: status.HTTP_409_CONFLICT,
    NodeExecutionError: status.HTTP_502_BAD_GATEWAY,
}


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Map workflow errors to HTTP responses."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    body: dict = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, ParseError):
        body["line_number"] = exc.line_number
    elif isinstance(exc, ValidationError):
        body["missing_models"] = exc.missing_models
    elif isinstance(exc, NodeExecutionError):
        body["node_id"] = exc.node_id
    elif isinstance(exc, DeadlockError):
        body["pending_nodes"] = exc.pending_nodes
        body["cycle_nodes"] = exc.cycle_nodes

    return JSONResponse(status_code=status_code, content=body)


def create_app(
    client: Optional[ChatClient] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        client: Completion client; a MockChatClient when omitted
        settings: Settings override; cached settings when omitted
    """
    settings = settings or get_settings()
    chat_client = client or MockChatClient()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info("Starting Prompt Workflow Engine...")
        logger.info(
            f"Prompt Workflow Engine started - Environment: {settings.environment.value}, "
            f"client: {type(chat_client).__name__}"
        )
        yield
        logger.info("Prompt Workflow Engine shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Prompt-chaining workflow engine for LLM chat clients",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.state.settings = settings
    app.state.client = chat_client
    app.state.engine = WorkflowEngine(chat_client, settings.workflow.to_run_config())

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WorkflowError, workflow_error_handler)

    # Include routers
    app.include_router(router)

    # Root endpoint
    @app.get("/", tags=["root"])
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "running",
        }

    return app


# Application instance for uvicorn (mock client)
app = create_app()
