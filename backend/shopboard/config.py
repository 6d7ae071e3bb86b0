from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CORS_ORIGINS = "http://127.0.0.1:3000,http://localhost:3000,http://127.0.0.1:5173,http://localhost:5173"


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
    """Application runtime configuration."""

    app_name: str = "ShopBoard"
    environment: str = os.getenv("SB_ENVIRONMENT", "development")
    host: str = os.getenv("SB_HOST", "127.0.0.1")
    port: int = int(os.getenv("SB_PORT", "3001"))
    log_level: str = os.getenv("SB_LOG_LEVEL", "INFO").upper()

    sqlite_path: Path = Path(os.getenv("SB_SQLITE_PATH", "./data/shopboard.db"))

    tick_interval_seconds: float = float(os.getenv("SB_TICK_INTERVAL", "1.0"))
    accrual_enabled: bool = os.getenv("SB_ACCRUAL_ENABLED", "true").lower() == "true"
    completion_delay_seconds: float = float(os.getenv("SB_COMPLETION_DELAY", "1.0"))

    cors_origins: List[str] = Field(
        default_factory=lambda: _split_csv(os.getenv("SB_CORS_ORIGINS", DEFAULT_CORS_ORIGINS))
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return _split_csv(value)

    @field_validator("tick_interval_seconds")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Tick interval must be positive")
        return value

    @field_validator("completion_delay_seconds")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Completion delay must not be negative")
        return value


settings = Settings()

# Ensure the database directory exists
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
