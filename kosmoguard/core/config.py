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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated files to keep")
    security_file_path: str | None = Field(
        None,
        description="Optional extra file receiving only security audit events",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    secret_key: str = Field(
        "change-me",
        description="Salt mixed into IP/user-agent hashes written to audit logs",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated key:user_id pairs identifying API callers",
    )
    admin_user_ids: str | None = Field(
        None,
        description="Comma-separated user ids allowed to manage account security flags",
    )
    trust_proxy_headers: bool = Field(
        False,
        description="Resolve the client IP from the first X-Forwarded-For entry",
    )
    max_upload_size_mb: int = Field(
        10,
        description="Maximum file upload size in megabytes",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiter and counter store configuration."""

    enabled: bool = Field(
        True,
        description="Enable request rate limiting",
    )
    backend: str = Field(
        "memory",
        description="Counter store backend: memory or redis",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL when backend=redis",
    )
    redis_timeout_seconds: float = Field(
        0.5,
        description="Socket timeout for Redis commands",
    )
    fail_open: bool = Field(
        True,
        description="Allow requests when the counter store is unreachable",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    api_max_attempts: int = Field(
        60,
        description="Default maximum requests per window for the api limiter",
        ge=1,
    )
    api_decay_minutes: int = Field(
        1,
        description="Default window length in minutes for the api limiter",
        ge=1,
    )
    upload_max_attempts: int = Field(
        10,
        description="Maximum uploads per window",
        ge=1,
    )
    upload_decay_minutes: int = Field(
        1,
        description="Upload window length in minutes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class SecuritySettings(BaseSettings):
    """Abuse escalation and security flag configuration."""

    abuse_threshold: int = Field(
        5,
        description="Rate limit violations within the abuse window that flag an actor",
        ge=1,
    )
    abuse_window_seconds: int = Field(
        24 * 60 * 60,
        description="Rolling window for counting rate limit violations",
        ge=1,
    )
    suspicious_flag_ttl_seconds: int = Field(
        24 * 60 * 60,
        description="How long an actor stays flagged as suspicious",
        ge=1,
    )
    account_flag_ttl_seconds: int = Field(
        7 * 24 * 60 * 60,
        description="How long an admin-set account security flag lasts",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
