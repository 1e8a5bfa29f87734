"""Completion client contract and implementations."""

from prompt_workflow.clients.base import ChatClient
from prompt_workflow.clients.mock import DEFAULT_MODELS, CompletionCall, MockChatClient

__all__ = ["ChatClient", "CompletionCall", "DEFAULT_MODELS", "MockChatClient"]
