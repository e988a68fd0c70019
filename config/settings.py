"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = "matrixflow-sdk-python/0.1.0"
DEFAULT_STREAM_BUFFER_SIZE = 4096  # 4KB initial line buffer


class Settings(BaseSettings):
    """Client configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Catalog service ──────────────────────────────────────
    matrixflow_base_url: str = ""
    matrixflow_api_key: str = ""
    matrixflow_user_agent: str = DEFAULT_USER_AGENT
    matrixflow_timeout: float = 30  # seconds, whole request for non-stream calls

    # ── Streaming ────────────────────────────────────────────
    # Initial line buffer; grows on demand, so this is not a line limit
    stream_buffer_size: int = DEFAULT_STREAM_BUFFER_SIZE
    # Inactivity timeout between reads (seconds); 0 disables
    stream_read_timeout: float = 0


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for client settings."""
    return Settings()
