# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings. The Settings
instance is built once at startup and injected into the inference client,
the content aggregator and the orchestrator; nothing reads model names or
buffer thresholds from module globals.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === INFERENCE PROVIDER ===
    inference_provider: str = "openrouter"
    inference_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_api_key: str = ""
    openai_api_key: str = ""
    primary_model: str = "openai/gpt-4o-mini"
    fallback_model: str = "openai/gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    inference_timeout_s: float = 120.0

    # OpenRouter attribution headers
    app_referer: str = "https://insightstream.local"
    app_title: str = "Data Analysis App"

    # === Chunking ===
    chunk_size: int = 50

    # === Content buffering ===
    flush_size: int = 500
    flush_interval_ms: int = 1000

    # === Pipeline ===
    job_timeout_s: float | None = None
    no_data_message: str = "No data was found for the selected filters."

    # === Data source ===
    datasource_backend: Literal["memory", "sqlite"] = "sqlite"
    datasource_sqlite_path: Path = Path("~/.insightstream/data.db")

    # === Server ===
    server_host: str = "127.0.0.1"
    server_port: int = 8000
    event_queue_size: int = 64

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("chunk_size", "flush_size", "event_queue_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("job_timeout_s", "inference_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:  # noqa: N805
        if v is not None and v <= 0:
            raise ValueError("timeouts must be > 0 when set")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not self.primary_model or not self.fallback_model:
            errors.append("PRIMARY_MODEL and FALLBACK_MODEL must both be set")
        elif self.primary_model == self.fallback_model:
            errors.append("FALLBACK_MODEL must differ from PRIMARY_MODEL")

        if self.flush_interval_ms < 0:
            errors.append("FLUSH_INTERVAL_MS must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
