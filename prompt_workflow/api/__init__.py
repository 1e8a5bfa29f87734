"""FastAPI application and routes."""

from prompt_workflow.api.app import create_app
from prompt_workflow.api.routes import router

__all__ = ["create_app", "router"]
