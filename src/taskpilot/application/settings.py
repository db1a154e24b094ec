"""
Configuration management.

Settings come from, in increasing priority: defaults, a ``.env`` file,
``TASKPILOT_*`` environment variables and, when loaded with
``load_from_file``, the values in a YAML file (``~/.taskpilot/config.yaml``
by default).
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AgentSettings(BaseSettings):
    """Agent configuration with environment variable support."""

    # LLM provider
    provider: Literal["openai", "openrouter"] = Field(default="openai", description="LLM provider")
    model: str = Field(default="gpt-4o-mini", description="Model name")
    api_key: str | None = Field(default=None, description="Provider API key")
    api_base: str | None = Field(default=None, description="Custom provider endpoint")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, gt=0)
    llm_max_retries: int = Field(default=3, ge=1, description="Attempts per LLM call")

    # Loop and plan bounds
    max_iterations: int = Field(default=10, ge=1, description="Iterations per task loop")
    observe_iteration_cap: int = Field(
        default=3, ge=1, description="Iteration after which OBSERVE halts non-terminal actions"
    )
    step_max_iterations: int = Field(default=5, ge=1, description="Iterations per plan step")
    step_max_attempts: int = Field(default=3, ge=1, description="Attempts per plan step")

    # Session log and retrieval
    context_window_size: int = Field(default=4000, ge=1, description="Max entries per session log")
    rag_top_k: int = Field(default=3, ge=0, description="Session snippets injected per THINK")
    rag_strategy: Literal["keyword", "embedding"] = Field(default="keyword")
    rag_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    # Storage and tools
    workspace_dir: str = Field(default=".taskpilot", description="Root for sessions and plans")
    command_timeout: float = Field(default=30.0, gt=0, description="Shell tool timeout in seconds")

    # Debug settings
    log_level: str = Field(default="WARNING", description="Logging level")

    model_config = {
        "env_file": ".env",
        "env_prefix": "TASKPILOT_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def sessions_dir(self) -> Path:
        return Path(self.workspace_dir) / "sessions"

    @property
    def plans_dir(self) -> Path:
        return Path(self.workspace_dir) / "plans"

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AgentSettings":
        """Load settings from a YAML configuration file."""
        if not config_path.exists():
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def save_to_file(self, config_path: Path) -> None:
        """Save settings to a YAML configuration file. The API key is never written."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_data = self.model_dump(exclude={"api_key"})
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)

    @staticmethod
    def default_config_path() -> Path:
        return Path.home() / ".taskpilot" / "config.yaml"

    def update_setting(self, key: str, value: Any, config_path: Path | None = None) -> "AgentSettings":
        """
        Return settings with ``key`` changed, validated and saved.

        Raises:
            ValueError: If ``key`` is unknown or ``value`` fails validation
        """
        if key not in type(self).model_fields:
            raise ValueError(f"Unknown setting: {key}")

        updated = type(self)(**{**self.model_dump(), key: value})
        updated.save_to_file(config_path or self.default_config_path())
        return updated
