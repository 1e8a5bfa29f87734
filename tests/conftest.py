"""
Pytest fixtures and configuration for tests.
"""

import pytest

from prompt_workflow.clients.mock import MockChatClient
from prompt_workflow.config import Environment, Settings, WorkflowRunConfig
from prompt_workflow.orchestrator.engine import WorkflowEngine


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        environment=Environment.TEST,
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def fast_config() -> WorkflowRunConfig:
    """Run config without throttling or round pauses."""
    return WorkflowRunConfig(sequential_requests=True, request_delay=0.0, round_pause=0.0)


@pytest.fixture
def echo_client() -> MockChatClient:
    """Client whose models answer with '<nickname>(<prompt>)'."""

    def echo(nickname, messages, flags):
        return f"{nickname}({messages[-1].content})"

    return MockChatClient(responses={"flash": echo, "pro": echo, "flash-lite": echo})


@pytest.fixture
def engine(echo_client, fast_config) -> WorkflowEngine:
    """Engine bound to the echo client."""
    return WorkflowEngine(echo_client, fast_config)


class ProgressRecorder:
    """Collects progress statuses in order."""

    def __init__(self):
        self.statuses: list[str] = []

    def __call__(self, status: str) -> None:
        self.statuses.append(status)

    def index(self, status: str) -> int:
        return self.statuses.index(status)


@pytest.fixture
def progress() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def haiku_script() -> str:
    """Static topic feeding one LLM step."""
    return '#topic = "volcanoes"\nflash: Write a haiku about {{#topic}}'


@pytest.fixture
def nested_script() -> str:
    """LLM step with a nested static leaf and a nested LLM step."""
    return (
        "#summary pro: Summarize the notes above\n"
        "  #notes = Field notes: {{INPUT}}\n"
        "  #facts flash: List facts about {{INPUT}}\n"
        "    #style = Use bullet points\n"
    )


@pytest.fixture
def cyclic_script() -> str:
    """Two top-level LLM steps referencing each other."""
    return (
        "#A flash: Expand on {{#B}}\n"
        "#B flash: Expand on {{#A}}\n"
    )
