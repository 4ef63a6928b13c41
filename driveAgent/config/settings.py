"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names (e.g., LLM_API_KEY and MODEL_CHAT_API_KEY both work).

Example:
    from driveAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    api_key = settings.models.chat_api_key
    max_iterations = settings.governance.max_tool_iterations
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()

DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"


class ModelRoutingSettings(BaseSettings):
    """Model identifiers and credentials for the two model slots.

    - base: tool-free calls (routing classifier, complexity classifier, planner, summaries)
    - chat: tool-calling agent loop

    Both slots fall back to the single-provider variables LLM_MODEL, LLM_API_KEY and
    LLM_BASE_URL, so one set of credentials is enough for a working deployment.
    """

    base: str = Field(
        default=DEFAULT_LLM_MODEL,
        validation_alias=AliasChoices("MODEL_BASE", "MODEL_BASE_ID", "LLM_MODEL"),
    )
    base_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_API_KEY", "LLM_API_KEY"),
    )
    base_base_url: Optional[str] = Field(
        default=DEFAULT_LLM_BASE_URL,
        validation_alias=AliasChoices("MODEL_BASE_URL", "LLM_BASE_URL"),
    )
    base_context_window: int = Field(
        default=128000,
        validation_alias=AliasChoices("MODEL_BASE_CONTEXT_WINDOW"),
    )

    chat: str = Field(
        default=DEFAULT_LLM_MODEL,
        validation_alias=AliasChoices("MODEL_CHAT", "MODEL_CHAT_ID", "LLM_MODEL"),
    )
    chat_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CHAT_API_KEY", "LLM_API_KEY"),
    )
    chat_base_url: Optional[str] = Field(
        default=DEFAULT_LLM_BASE_URL,
        validation_alias=AliasChoices("MODEL_CHAT_URL", "MODEL_CHAT_BASE_URL", "LLM_BASE_URL"),
    )
    chat_context_window: int = Field(
        default=128000,
        validation_alias=AliasChoices("MODEL_CHAT_CONTEXT_WINDOW"),
    )

    provider: str = Field(default="openai", alias="LLM_PROVIDER")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class GovernanceSettings(BaseSettings):
    """Runtime limits and policy knobs.

    - max_tool_iterations: model calls per agent run before giving up (default: 10)
    - max_tool_result_chars: tool output cap before truncation (default: 20000)
    - approval_ttl_seconds: pending approvals expire after this long (default: 1800)
    - pattern_confidence_threshold: minimum pattern confidence for routing (default: 0.3)
    """

    max_tool_iterations: int = Field(default=10, ge=1, le=50, alias="MAX_TOOL_ITERATIONS")
    max_tool_result_chars: int = Field(default=20_000, ge=1000, alias="MAX_TOOL_RESULT_CHARS")
    max_message_length: int = Field(default=4000, ge=1, alias="MAX_MESSAGE_LENGTH")
    approval_ttl_seconds: int = Field(default=1800, ge=1, alias="APPROVAL_TTL_SECONDS")
    pattern_confidence_threshold: float = Field(
        default=0.3, ge=0.0, le=1.0, alias="PATTERN_CONFIDENCE_THRESHOLD"
    )
    task_complexity_threshold: int = Field(default=1, ge=1, alias="TASK_COMPLEXITY_THRESHOLD")
    max_plan_steps: int = Field(default=8, ge=1, le=8)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class MemorySettings(BaseSettings):
    """Conversation memory sizing.

    The context cap is expressed in tokens and converted to characters with a fixed
    chars-per-token ratio.
    """

    chars_per_token: int = Field(default=4, ge=1)
    max_context_tokens: int = Field(default=120_000, ge=1000, alias="MAX_CONTEXT_TOKENS")
    max_history_messages: int = Field(default=20, ge=2, alias="MAX_HISTORY_MESSAGES")
    keep_recent_messages: int = Field(default=6, ge=1)
    summary_batch_size: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def max_context_chars(self) -> int:
        return self.max_context_tokens * self.chars_per_token


class ObservabilitySettings(BaseSettings):
    """Logging and persistence configuration.

    - Logging settings (LOG_LEVEL, LOG_DIR)
    - Conversation persistence (CONVERSATION_DB_PATH for SQLite storage)
    """

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    # Default: ./data/conversations.db (SQLite)
    conversation_db_path: str = Field(default="data/conversations.db", alias="CONVERSATION_DB_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class PathSettings(BaseSettings):
    """Locations of the YAML configuration files, relative to the project root."""

    capability_policy: str = Field(
        default="driveAgent/config/capability_policy.yaml", alias="CAPABILITY_POLICY_PATH"
    )
    routing_patterns: str = Field(
        default="driveAgent/config/routing_patterns.yaml", alias="ROUTING_PATTERNS_PATH"
    )
    mcp_servers: str = Field(default="driveAgent/config/mcp_servers.yaml", alias="MCP_SERVERS_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing nested settings groups:
    - models: Model slots and API credentials (ModelRoutingSettings)
    - governance: Loop caps, approval expiry, routing thresholds (GovernanceSettings)
    - memory: Context window sizing (MemorySettings)
    - observability: Logging and persistence (ObservabilitySettings)
    - paths: YAML configuration locations (PathSettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    models: ModelRoutingSettings = Field(default_factory=ModelRoutingSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Returns:
        Settings: Cached application settings instance
    """
    return Settings()
