from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables or .env files."""

    model_config = SettingsConfigDict(
        env_prefix="MEDSIM_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["local", "test", "production"] = "local"
    app_name: str = "MedSim API"
    api_version: str = "0.1.0"
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_json: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    database_url: str = Field(
        default="sqlite+aiosqlite:///./medsim.db",
        description="SQLAlchemy-compatible database URL used for durable stats.",
    )
    db_echo: bool = False
    persist_stats: bool = Field(
        default=True,
        description="Store per-user performance counters in the database.",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="API key for the Google Gemini platform.",
    )
    gemini_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL for the Gemini API.",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model identifier used for every inference call.",
    )
    gemini_request_timeout_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Timeout for a single outbound request to the Gemini API.",
    )
    generation_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature applied to case, evaluation and hint prompts.",
    )
    generation_max_output_tokens: int = Field(
        default=2048,
        ge=64,
        description="Upper bound on tokens produced per inference call.",
    )
    inference_batch_size: int = Field(
        default=50,
        ge=1,
        description="Maximum number of queued requests dispatched concurrently.",
    )
    inference_batch_wait_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between consecutive batches to bound provider burst load.",
    )
    inference_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per request before its future is rejected.",
    )
    inference_initial_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff before the second attempt; doubles for every further attempt.",
    )
    inference_cache_ttl_seconds: float = Field(
        default=3600.0,
        gt=0.0,
        description="Lifetime of cached provider responses.",
    )
    case_generation_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Overall wall-clock budget for producing a case before falling back.",
    )
    evaluation_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Overall wall-clock budget for evaluating a response before falling back.",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


__all__ = ["Settings", "get_settings"]
