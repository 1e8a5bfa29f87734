"""
Domain models for the prompt workflow engine.

All models use Pydantic for validation and serialization with full Python 3.10+ type hints.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


NODE_ID_PATTERN = re.compile(r"[\w-]+")


class NodeKind(str, Enum):
    """Supported node kinds."""

    STATIC = "static"
    LLM = "llm"


class Node(BaseModel):
    """A single step of a workflow script."""

    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(..., min_length=1, max_length=255, description="Unique node identifier")
    kind: NodeKind = Field(..., description="STATIC (template only) or LLM (completion call)")
    prompt_template: str = Field(default="", description="Prompt text with {{INPUT}} / {{#id}} placeholders")
    indent_level: int = Field(default=0, ge=0, description="Nesting depth derived from indentation")
    line_number: int = Field(default=1, ge=1, description="1-based source line of the node")

    children: list[str] = Field(default_factory=list, description="Ids of nodes nested beneath this one")
    explicit_dependencies: list[str] = Field(
        default_factory=list,
        description="Ids referenced via {{#id}} in the prompt (derived)",
    )
    flags: list[str] = Field(default_factory=list, description="Opaque flags passed to the client")

    # LLM only - exactly one of these is set
    model: Optional[str] = Field(default=None, description="Model nickname")
    model_variable: Optional[str] = Field(
        default=None,
        description="Id of a static node whose value names the model",
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate node ID format (same rule as the script syntax)."""
        if not NODE_ID_PATTERN.fullmatch(v):
            raise ValueError("Node ID must consist of word characters and hyphens")
        return v

    @model_validator(mode="after")
    def validate_model_source(self) -> "Node":
        """LLM nodes name exactly one model source; static nodes name none."""
        has_model = self.model is not None
        has_variable = self.model_variable is not None
        if self.kind == NodeKind.LLM and has_model == has_variable:
            raise ValueError("LLM node requires exactly one of model or model_variable")
        if self.kind == NodeKind.STATIC and (has_model or has_variable):
            raise ValueError("Static node cannot name a model")
        return self

    @property
    def is_llm(self) -> bool:
        return self.kind == NodeKind.LLM

    @property
    def is_static(self) -> bool:
        return self.kind == NodeKind.STATIC

    @property
    def dependencies(self) -> list[str]:
        """All ids that must complete before this node may run, first-seen order."""
        deps = list(self.children)
        for dep in self.explicit_dependencies:
            if dep not in deps:
                deps.append(dep)
        if self.model_variable and self.model_variable not in deps:
            deps.append(self.model_variable)
        return deps


class ModelInfo(BaseModel):
    """A model known to the completion client."""

    nickname: str = Field(..., min_length=1, description="Name used in workflow scripts")
    endpoint: Optional[str] = Field(default=None, description="Completion endpoint URL")

    def matches(self, nickname: str) -> bool:
        """Case-insensitive nickname comparison."""
        return self.nickname.lower() == nickname.lower()


class Message(BaseModel):
    """A single conversation turn."""

    sender: str = Field(..., description="'User' or 'Assistant'")
    content: str = Field(default="")
