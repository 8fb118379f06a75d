"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Order is preserved and duplicates are dropped.

    Examples:
        >>> parse_csv("alice, bob,,alice")
        ['alice', 'bob']
        >>> parse_csv(None)
        []
    """
    if not value:
        return []

    items: list[str] = []
    for raw in value.split(","):
        item = raw.strip()
        if item and item not in items:
            items.append(item)
    return items


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "",
        description="Application name, used as prefix for limiter names shared in one store",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin endpoints",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    store_backend: str = Field(
        "redis",
        description="Counter store backend: 'redis' (shared) or 'memory' (per-process)",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable the enforce_rate_limit dependency on protected routes",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on checked responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Redis connection used for counters, access lists and sync messages."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection string (redis:// or rediss://)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Timeout for a single Redis command",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        2.0,
        description="Timeout for establishing a Redis connection",
        gt=0,
    )
    subscriber_poll_seconds: float = Field(
        1.0,
        description="How long the sync subscriber waits for a message per poll",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LimiterSettings(BaseSettings):
    """Rate limiter thresholds and static access lists."""

    name: str = Field(
        "default",
        description="Limiter name; prefixes every store key and names the sync channel",
    )
    window_seconds: float = Field(
        60,
        description="Counting window duration in seconds",
        gt=0,
    )
    warning_times: int = Field(
        0,
        description="Count at which requests are warned (0 disables warnings)",
        ge=0,
    )
    block_times: int = Field(
        0,
        description="Count at which requests are blocked (0 disables blocking)",
        ge=0,
    )
    block_seconds: float = Field(
        0,
        description="Timed block duration; 0 escalates to the permanent blacklist",
        ge=0,
    )
    whitelist: str | None = Field(
        None,
        description="Comma-separated identities that are always allowed",
    )
    blacklist: str | None = Field(
        None,
        description="Comma-separated identities that are always blocked",
    )
    sync_enabled: bool = Field(
        True,
        description="Publish access list changes and subscribe to peer instances",
    )
    store_timeout_seconds: float = Field(
        5.0,
        description="Maximum time an HTTP request waits for a limiter store call",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    limiter: LimiterSettings = Field(default_factory=LimiterSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
