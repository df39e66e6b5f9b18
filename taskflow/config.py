"""Application settings and configuration helpers."""
from functools import lru_cache
import os
from typing import Literal

from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

SESSION_TTL_SECONDS = 7 * 24 * 60 * 60
SESSION_SWEEP_SECONDS = 24 * 60 * 60


class Settings(BaseModel):
    """Runtime configuration loaded from environment variables."""

    database_url: str = Field(
        default="sqlite+aiosqlite:///./taskflow.db", alias="DATABASE_URL"
    )
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    storage_backend: Literal["database", "memory"] = Field(
        default="database", alias="TASKFLOW_STORAGE"
    )
    environment: str = Field(default="development", alias="APP_ENV")
    session_ttl_seconds: int = Field(
        default=SESSION_TTL_SECONDS, gt=0, alias="SESSION_TTL_SECONDS"
    )
    session_sweep_seconds: int = Field(
        default=SESSION_SWEEP_SECONDS, gt=0, alias="SESSION_SWEEP_SECONDS"
    )
    session_cookie_name: str = Field(default="taskflow.sid", alias="SESSION_COOKIE_NAME")
    password_hash_rounds: int = Field(default=29000, ge=1000, alias="PASSWORD_HASH_ROUNDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        """Whether cookies must be marked secure."""

        return self.environment.lower() == "production"


def settings_from_env() -> Settings:
    """Build a Settings instance from whichever variables are set."""

    values = {
        field.alias: os.environ[field.alias]
        for field in Settings.model_fields.values()
        if field.alias and field.alias in os.environ
    }
    return Settings(**values)


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return settings_from_env()
