"""
Completion client contract.

The engine talks to the surrounding chat client only through this protocol.
Retry, key rotation, timeouts and transport all live behind it.
"""

from typing import Protocol, runtime_checkable

from prompt_workflow.core.models import Message, ModelInfo


@runtime_checkable
class ChatClient(Protocol):
    """Collaborator that knows the models and performs completion calls."""

    def get_models(self) -> list[ModelInfo]:
        """Models available to workflow scripts."""
        ...

    async def get_messages(self) -> list[Message]:
        """Transcript of the active conversation (used by the ``history`` flag)."""
        ...

    async def generate_from_model(
        self,
        nickname: str,
        messages: list[Message],
        flags: list[str],
    ) -> str:
        """Run one completion. Raises on failure."""
        ...
