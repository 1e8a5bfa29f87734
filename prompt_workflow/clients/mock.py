"""
In-memory chat client.

Mocks completion calls with optional simulated latency so the engine and API
can run without a real LLM provider.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from prompt_workflow.core.models import Message, ModelInfo

logger = logging.getLogger(__name__)

ResponseFactory = Callable[[str, list[Message], list[str]], str]


DEFAULT_MODELS = [
    ModelInfo(
        nickname="flash-lite",
        endpoint="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-lite:generateContent",
    ),
    ModelInfo(
        nickname="flash",
        endpoint="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent",
    ),
    ModelInfo(
        nickname="pro",
        endpoint="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-pro:generateContent",
    ),
]


@dataclass
class CompletionCall:
    """Record of one generate_from_model invocation."""

    nickname: str
    messages: list[Message]
    flags: list[str]
    started_at: float
    finished_at: Optional[float] = None

    @property
    def prompt(self) -> str:
        """Content of the final user turn."""
        return self.messages[-1].content if self.messages else ""


@dataclass
class MockChatClient:
    """
    Chat client that answers from canned responses.

    ``responses`` maps a model nickname (case-insensitive) to either a fixed
    string or a factory called with ``(nickname, messages, flags)``. Models
    without an entry get a generated echo of the prompt.
    """

    models: list[ModelInfo] = field(default_factory=lambda: list(DEFAULT_MODELS))
    responses: dict[str, Union[str, ResponseFactory]] = field(default_factory=dict)
    latency: tuple[float, float] = (0.0, 0.0)
    transcript: list[Message] = field(default_factory=list)
    calls: list[CompletionCall] = field(default_factory=list)

    def get_models(self) -> list[ModelInfo]:
        return list(self.models)

    async def get_messages(self) -> list[Message]:
        return [message.model_copy() for message in self.transcript]

    def add_message(self, sender: str, content: str) -> Message:
        """Append a turn to the in-memory conversation."""
        message = Message(sender=sender, content=content)
        self.transcript.append(message)
        return message

    async def generate_from_model(
        self,
        nickname: str,
        messages: list[Message],
        flags: list[str],
    ) -> str:
        """Mock completion call with simulated latency."""
        loop = asyncio.get_running_loop()
        call = CompletionCall(
            nickname=nickname,
            messages=list(messages),
            flags=list(flags),
            started_at=loop.time(),
        )
        self.calls.append(call)

        model = self._find_model(nickname)
        logger.info(f"Mock completion: model={model.nickname}, flags={flags}")

        low, high = self.latency
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))

        response = self._generate_response(model.nickname, messages, flags)
        call.finished_at = loop.time()
        return response

    def _find_model(self, nickname: str) -> ModelInfo:
        for model in self.models:
            if model.matches(nickname):
                return model
        raise LookupError(f"Model '{nickname}' is not configured")

    def _generate_response(self, nickname: str, messages: list[Message], flags: list[str]) -> str:
        for key, response in self.responses.items():
            if key.lower() == nickname.lower():
                if callable(response):
                    return response(nickname, messages, flags)
                return response

        prompt = messages[-1].content if messages else ""
        preview = prompt[:50] + "..." if len(prompt) > 50 else prompt
        return f"[{nickname}] Mock response for prompt: '{preview}'"
