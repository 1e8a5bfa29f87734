"""
Environment-aware configuration settings for the workflow engine.

Supports dev, test, and prod environments with appropriate defaults.
"""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    DEV = "dev"
    TEST = "test"
    PROD = "prod"


class WorkflowRunConfig(BaseModel):
    """
    Per-run scheduling policy handed to the engine.

    The engine never reads ambient settings; callers build one of these
    (usually from WorkflowSettings) and pass it in explicitly.
    """

    sequential_requests: bool = Field(
        default=True,
        description="Issue a round's LLM calls one at a time instead of concurrently",
    )
    request_delay: float = Field(
        default=0.0,
        ge=0.0,
        description="Delay in seconds awaited before LLM calls (throttling)",
    )
    round_pause: float = Field(
        default=0.05,
        ge=0.0,
        description="Fixed pause between scheduler rounds (seconds)",
    )
    deadlock_grace_ticks: int = Field(
        default=5,
        ge=0,
        description="Consecutive stalled ticks tolerated before declaring deadlock",
    )


class WorkflowSettings(BaseSettings):
    """Default workflow scheduling settings."""

    model_config = SettingsConfigDict(env_prefix="WORKFLOW_")

    sequential_requests: bool = Field(default=True, description="Sequential LLM calls per round")
    request_delay: float = Field(default=0.0, ge=0.0, description="Throttling delay (seconds)")
    round_pause: float = Field(default=0.05, ge=0.0, description="Pause between rounds (seconds)")
    deadlock_grace_ticks: int = Field(default=5, ge=0, description="Stalled ticks before deadlock")

    def to_run_config(self, **overrides) -> WorkflowRunConfig:
        """Build a run config from these defaults, applying non-None overrides."""
        values = {
            "sequential_requests": self.sequential_requests,
            "request_delay": self.request_delay,
            "round_pause": self.round_pause,
            "deadlock_grace_ticks": self.deadlock_grace_ticks,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return WorkflowRunConfig(**values)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        case_sensitive=False,  # WORKFLOW_REQUEST_DELAY and workflow_request_delay both work
        extra="ignore",        # Ignore unknown environment variables
    )

    # Application
    app_name: str = Field(default="Prompt Workflow Engine")
    environment: Environment = Field(default=Environment.DEV)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Sub-settings
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str | Environment) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TEST

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PROD


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
