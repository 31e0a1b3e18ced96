"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
KOL tracker, loading and validating environment variables at startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kol_tracker.performance.models import PerformanceWindow

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite (aiosqlite) connection string",
    )
    pool_size: int = Field(
        default=5,
        alias="DATABASE_POOL_SIZE",
        ge=1,
        le=100,
        description="Connection pool size (ignored for SQLite)",
    )
    echo: bool = Field(
        default=False,
        alias="DATABASE_ECHO",
        description="Log every SQL statement",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string"
            )
        return v


class ProfilerSettings(BaseSettings):
    """Behavior and activity profiling settings."""

    model_config = SettingsConfigDict(env_prefix="PROFILER_", extra="ignore")

    history_limit: int = Field(
        default=100,
        alias="PROFILER_HISTORY_LIMIT",
        ge=1,
        le=100_000,
        description="Most recent transactions sampled per behavior profile",
    )
    size_granularity: Decimal = Field(
        default=Decimal("0.01"),
        alias="PROFILER_SIZE_GRANULARITY",
        gt=0,
        description="Rounding unit for typical trade sizes",
    )
    typical_size_count: int = Field(
        default=5,
        alias="PROFILER_TYPICAL_SIZE_COUNT",
        ge=1,
        le=100,
        description="Number of typical buy/sell sizes kept",
    )
    max_hold_seconds: float = Field(
        default=24 * 3600,
        alias="PROFILER_MAX_HOLD_SECONDS",
        gt=0,
        description="Hold time samples above this are discarded as outliers",
    )
    activity_history_limit: int = Field(
        default=1000,
        alias="PROFILER_ACTIVITY_HISTORY_LIMIT",
        ge=1,
        le=1_000_000,
        description="Most recent transactions used for the hourly activity pattern",
    )


class DeviationSettings(BaseSettings):
    """Deviation detector thresholds."""

    model_config = SettingsConfigDict(env_prefix="DEVIATION_", extra="ignore")

    test_buy_threshold: Decimal = Field(
        default=Decimal("0.5"),
        alias="DEVIATION_TEST_BUY_THRESHOLD",
        gt=0,
        description="Buys below this quote amount are test buys",
    )
    large_buy_multiplier: Decimal = Field(
        default=Decimal("3"),
        alias="DEVIATION_LARGE_BUY_MULTIPLIER",
        gt=0,
        description="Buys above this multiple of the test threshold are large buys",
    )
    recent_window_size: int = Field(
        default=10,
        alias="DEVIATION_RECENT_WINDOW_SIZE",
        ge=1,
        le=1000,
        description="Recent transactions of the pair inspected for sequence heuristics",
    )
    long_hold_multiplier: float = Field(
        default=3.0,
        alias="DEVIATION_LONG_HOLD_MULTIPLIER",
        gt=0,
        description="Multiple of the average hold time that counts as unusually long",
    )
    large_avg_multiplier: Decimal = Field(
        default=Decimal("2.5"),
        alias="DEVIATION_LARGE_AVG_MULTIPLIER",
        gt=0,
        description="Multiple of the average buy size that counts as unusually large",
    )
    typical_size_tolerance: Decimal = Field(
        default=Decimal("0.1"),
        alias="DEVIATION_TYPICAL_SIZE_TOLERANCE",
        ge=0,
        description="Absolute distance within which a buy matches a typical size",
    )


class PerformanceSettings(BaseSettings):
    """Performance analysis and leaderboard settings."""

    model_config = SettingsConfigDict(env_prefix="PERFORMANCE_", extra="ignore")

    windows: str = Field(
        default="24h,48h,7d",
        alias="PERFORMANCE_WINDOWS",
        description="Leaderboard windows to generate (comma-separated)",
    )
    leaderboard_limit: int = Field(
        default=50,
        alias="PERFORMANCE_LEADERBOARD_LIMIT",
        ge=1,
        le=10_000,
        description="Entries kept per leaderboard",
    )
    max_concurrency: int = Field(
        default=8,
        alias="PERFORMANCE_MAX_CONCURRENCY",
        ge=1,
        le=256,
        description="Participants evaluated concurrently during leaderboard generation",
    )
    analysis_interval_seconds: float = Field(
        default=3600.0,
        alias="PERFORMANCE_ANALYSIS_INTERVAL_SECONDS",
        ge=1,
        description="Seconds between scheduled analysis passes",
    )
    pnl_history_limit: int | None = Field(
        default=None,
        alias="PERFORMANCE_PNL_HISTORY_LIMIT",
        ge=1,
        description="Newest transactions per pair used for PnL (unset = full history)",
    )

    @field_validator("windows")
    @classmethod
    def validate_windows(cls, v: str) -> str:
        """Validate that every window label is known."""
        parts = [p.strip() for p in v.split(",") if p.strip()]
        if not parts:
            raise ValueError("PERFORMANCE_WINDOWS must name at least one window")
        for part in parts:
            PerformanceWindow.parse(part)
        return ",".join(parts)

    @property
    def window_list(self) -> tuple[PerformanceWindow, ...]:
        return tuple(PerformanceWindow.parse(p) for p in self.windows.split(","))


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from kol_tracker.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested configuration groups
    #
    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    profiler: ProfilerSettings = Field(
        default_factory=lambda: ProfilerSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    deviation: DeviationSettings = Field(
        default_factory=lambda: DeviationSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    performance: PerformanceSettings = Field(
        default_factory=lambda: PerformanceSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "profiler": {
                "history_limit": str(self.profiler.history_limit),
                "typical_size_count": str(self.profiler.typical_size_count),
            },
            "deviation": {
                "test_buy_threshold": str(self.deviation.test_buy_threshold),
                "recent_window_size": str(self.deviation.recent_window_size),
            },
            "performance": {
                "windows": self.performance.windows,
                "leaderboard_limit": str(self.performance.leaderboard_limit),
                "analysis_interval_seconds": str(self.performance.analysis_interval_seconds),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
