from __future__ import annotations

from typing import Any

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """
    Central configuration.

    - Values loaded from the environment and `.env`
    - Comma-separated lists for multi-value settings like ADMIN_ROLES
    """

    # ----------------------------
    # Service
    # ----------------------------
    SERVICE_NAME: str = "authz-engine"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ----------------------------
    # Admin policy
    # ----------------------------
    # store as raw string or list from env; we will normalize in code
    ADMIN_ROLES: Any = "admin"
    ADMIN_USER_IDS: Any = Field(default_factory=list)

    # ----------------------------
    # Permission policy
    # ----------------------------
    DEFAULT_ROLE: str = "user"

    # Pydantic settings config (v2 style)
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
