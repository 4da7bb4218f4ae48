"""
Traffic Cop Configuration Module

Centralized configuration management using pydantic-settings.
Loads settings from TRAFFICCOP_* environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Find the project root (where .env is located)
_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRAFFICCOP_",
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )

    # ==========================================================================
    # Analysis Configuration
    # ==========================================================================
    live_buffer_capacity: int = Field(
        default=10000,
        description="Maximum entries kept by the live capture buffer",
    )
    slow_threshold_ms: float = Field(
        default=1000,
        description="Duration at or above which a request counts as slow (ms)",
    )
    large_threshold_bytes: int = Field(
        default=1024 * 1024,  # 1MiB
        description="Response size at or above which a response counts as large",
    )
    top_n: int = Field(
        default=10,
        description="Number of rows in slowest/largest listings",
    )
    auto_repair: bool = Field(
        default=True,
        description="Attempt to repair malformed capture files before parsing",
    )

    # ==========================================================================
    # Capture Identity
    # ==========================================================================
    creator_name: str = Field(default="Traffic Cop", description="Creator name for exported captures")
    creator_version: str = Field(default="0.7.0", description="Creator version for exported captures")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("live_buffer_capacity", "top_n")
    @classmethod
    def ensure_positive(cls, v: int) -> int:
        """Capacities and limits must be at least 1."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience alias
settings = get_settings()
