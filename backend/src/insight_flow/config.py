"""Centralized configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insight_flow.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings from environment variables.

    Credentials are optional at load time; components that need one call
    require() from their factory so a missing key fails at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Completion / embedding provider (OpenAI-compatible REST)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    completion_model: str = "gpt-4o-mini"
    filter_model: str = "gpt-3.5-turbo-0125"
    request_timeout: float = 60.0

    embedding_backend: Literal["openai", "voyage"] = "openai"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimension: int = 1536
    voyage_api_key: str | None = None
    voyage_embed_model: str = "voyage-3-large"

    # Vector store
    vector_store_backend: Literal["supabase", "memory"] = "supabase"
    supabase_url: str | None = None
    supabase_key: str | None = None
    vector_index_name: str = "agent-knowledge"
    retrieval_top_k: int = Field(default=5, ge=1, le=5)

    # Pipeline
    filter_strategy: Literal["llm", "pattern"] = "llm"
    ingestion_batch_size: int = 100
    max_trace_spans: int = 5000
    max_trace_sessions: int = 1000
    max_flow_results: int = 500

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(sorted(valid_levels))}")
        return upper

    @field_validator("ingestion_batch_size", "max_trace_spans", "max_trace_sessions", "max_flow_results")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    def require(self, *names: str) -> None:
        """Raise ConfigurationError if any named setting is unset or empty."""
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(n.upper() for n in missing)}",
                context={"missing": missing},
            )

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        """Convert settings to dictionary; secrets are masked unless redact=False."""
        data = self.model_dump()
        if redact:
            for key in ("openai_api_key", "voyage_api_key", "supabase_key"):
                if data.get(key):
                    data[key] = "***"
        return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached Settings singleton.

    For testing: override with get_settings.cache_clear() then set env vars.
    """
    return Settings()
