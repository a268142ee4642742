"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the streaming controller
and the command-line tools share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_GROUP_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    model_config = _GROUP_CONFIG

    api_key: str = Field(..., validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-pro", validation_alias="GEMINI_MODEL_NAME")
    max_output_tokens: int = Field(16384, validation_alias="GEMINI_MAX_OUTPUT_TOKENS")
    temperature: Optional[float] = Field(
        None,
        validation_alias="GEMINI_TEMPERATURE",
        description="Optional sampling temperature; the model default applies when unset.",
    )


class StreamingSettings(BaseSettings):
    """Limits applied to a single streaming analysis run."""

    model_config = _GROUP_CONFIG

    max_stream_seconds: float = Field(
        600.0,
        validation_alias="STREAM_MAX_SECONDS",
        description="Upper bound on how long one run may wait for upstream tokens.",
    )

    @field_validator("max_stream_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("STREAM_MAX_SECONDS must be positive")
        return value


class StorageSettings(BaseSettings):
    """Session store backend selection."""

    model_config = _GROUP_CONFIG

    backend: Literal["memory", "sqlite"] = Field(
        "memory", validation_alias="SESSION_STORE_BACKEND"
    )
    sqlite_path: str = Field(
        "data/blacktape.db",
        validation_alias="SESSION_STORE_PATH",
        description="Database file used when the sqlite backend is selected.",
    )

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    streaming: StreamingSettings = Field(default_factory=StreamingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GeminiSettings",
    "StorageSettings",
    "StreamingSettings",
    "get_settings",
]
