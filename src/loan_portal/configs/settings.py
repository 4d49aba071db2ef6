from __future__ import annotations

from typing import Any, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Central configuration.

    - Values loaded from `.env`
    - Comma-separated lists for multi-value settings like CORS_ORIGINS
    """

    # ----------------------------
    # Service
    # ----------------------------
    SERVICE_NAME: str = "loan-portal"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ----------------------------
    # Remote loan platform API
    # ----------------------------
    api_base_url: str = "http://localhost:8000/api"
    api_timeout_seconds: float = 15.0

    # ----------------------------
    # Token persistence
    # ----------------------------
    token_storage: Literal["file", "redis", "memory"] = "file"
    token_storage_dir: str = ".portal_tokens"
    token_storage_key: str = "token"  # the single well-known key
    redis_url: str = "redis://localhost:6379/0"

    # ----------------------------
    # Browser session
    # ----------------------------
    session_cookie_name: str = "portal_sid"
    session_cookie_secure: bool = False
    login_path: str = "/login"
    unauthorized_path: str = "/unauthorized"
    session_idle_seconds: float = 1800.0  # idle sessions are evicted from memory
    session_max: int = 10000

    # ----------------------------
    # CORS
    # ----------------------------
    # store as raw string list from env; we will normalize in code
    CORS_ORIGINS: Any = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
