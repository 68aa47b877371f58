"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Rate limiting constants live here as well so the guard policy is built once
from settings and handed to the guards explicitly.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Production may inject everything via env vars only
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether maintenance endpoints require an API key",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for maintenance endpoints",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Authentication abuse-mitigation configuration.

    All durations are milliseconds.
    """

    enabled: bool = Field(
        True,
        description="Enforce login/registration rate limits",
    )
    store_backend: str = Field(
        "memory",
        description="Counter store backend: memory or sql",
    )
    database_url: str = Field(
        "sqlite:///./data/rate_limits.db",
        description="SQLAlchemy URL used when store_backend=sql",
    )

    ip_short_window_ms: int = Field(MINUTE_MS, ge=1)
    ip_short_max_attempts: int = Field(10, ge=1)
    ip_medium_window_ms: int = Field(HOUR_MS, ge=1)
    ip_medium_max_attempts: int = Field(60, ge=1)
    ip_long_window_ms: int = Field(DAY_MS, ge=1)
    ip_long_max_attempts: int = Field(200, ge=1)

    username_window_ms: int = Field(15 * MINUTE_MS, ge=1)
    username_max_attempts: int = Field(5, ge=1)
    initial_lockout_ms: int = Field(5 * MINUTE_MS, ge=1)
    lockout_multiplier: int = Field(2, ge=1)
    max_lockout_ms: int = Field(DAY_MS, ge=1)
    escalation_decay_ms: int = Field(
        DAY_MS,
        description="Forget lockout escalation after this much inactivity",
        ge=1,
    )

    register_window_ms: int = Field(HOUR_MS, ge=1)
    register_max_attempts: int = Field(3, ge=1)

    cleanup_stale_after_ms: int = Field(
        DAY_MS,
        description="Sweeper deletes unlocked records idle for longer than this",
        ge=1,
    )
    cas_max_retries: int = Field(
        3,
        description="Retries for a counter update that lost a version race",
        ge=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
