from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TRUTHY = {"1", "true", "yes", "y", "on"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Time Bank Scheduler"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://timebank:timebank@db:5432/timebank"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    default_timezone: str = "Europe/Madrid"
    overtime_reconciliation_enabled: bool = True
    worker_poll_interval_seconds: int = 30

    @field_validator("overtime_reconciliation_enabled", mode="before")
    @classmethod
    def _parse_enabled_flag(cls, value: object) -> object:
        # An empty variable keeps the scheduler on; anything else must be an explicit "yes".
        if isinstance(value, str):
            normalized = value.strip().lower()
            if not normalized:
                return True
            return normalized in _TRUTHY
        return value


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
