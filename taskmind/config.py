"""Application settings loaded from environment variables."""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """taskmind configuration. All values come from environment variables."""

    # Anthropic (text generation + tool calling)
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    max_output_tokens: int = Field(default=4096)

    # OpenAI (embeddings)
    openai_api_key: str = Field(default="")
    embedding_model: str = Field(default="text-embedding-3-small")
    embedding_dimensions: int = Field(default=1536)

    # Database
    database_path: Path = Field(default=Path("data/taskmind.db"))
    vector_index_path: Path | None = Field(default=None)

    # Turso (hosted libSQL): overrides database_path when set
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Timeouts (seconds) for calls that leave the process
    embedding_timeout: float = Field(default=15.0)
    generation_timeout: float = Field(default=60.0)
    store_timeout: float = Field(default=10.0)
    retrieval_timeout: float = Field(default=8.0)

    # Conversation
    conversation_window_size: int = Field(default=50)
    max_tool_rounds: int = Field(default=5)
    chat_memory_limit: int = Field(default=8)
    chat_min_similarity: float = Field(default=0.7)
    conversation_summary_mode: Literal["heuristic", "always", "off"] = Field(
        default="heuristic"
    )

    # Memory search defaults
    memory_search_limit: int = Field(default=10)
    memory_min_similarity: float = Field(default=0.7)

    # Alerts (days)
    overdue_high_days: float = Field(default=0.0)
    overdue_critical_days: float = Field(default=14.0)
    stuck_threshold_days: float = Field(default=7.0)
    stuck_high_days: float = Field(default=14.0)
    stuck_critical_days: float = Field(default=30.0)

    # Priorities / deadlines
    priority_fanout: int = Field(default=8)
    default_deadline_days: int = Field(default=14)
    deadline_suggestion_limit: int = Field(default=10)

    # Drafting
    default_draft_language: str = Field(default="de")

    timezone: str = Field(default="UTC")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
