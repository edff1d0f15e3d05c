"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    claims_table_name: str = Field(
        default="Claims",
        description="Logical table that holds claim items and their index keys",
    )
    storage_backend: Literal["memory", "sqlite"] = Field(
        default="sqlite",
        description="Backing key-value store (memory is lost on exit)",
    )
    sqlite_path: Path = Field(
        default=Path("data") / "claims.db",
        description="SQLite database file used by the sqlite backend",
    )

    # Query Configuration
    default_lookback_months: int = Field(
        default=12,
        ge=1,
        description="Window used for date-range reads when no start date is given",
    )

    # Ingestion Configuration
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest CSV upload accepted by the API (bytes)",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Convenience access
settings = get_settings()
