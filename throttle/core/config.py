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


DEFAULT_HEADER_NAMES: dict[str, str] = {
    "limit": "X-RateLimit-Limit",
    "remaining": "X-RateLimit-Remaining",
    "reset": "X-RateLimit-Reset",
}


def _build_throttle_settings() -> "ThrottleSettings":
    """Build throttle settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return ThrottleSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> "CacheSettings":
    return CacheSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class ThrottleSettings(BaseSettings):
    """Request throttling configuration.

    Interval and identifier values are validated when the throttle engine is
    composed, so a bad value fails at startup (interval) or on the first
    request (identifier) with a ConfigurationError.
    """

    enabled: bool = Field(
        True,
        description="Enable request throttling for non-exempt paths",
    )
    message: str = Field(
        "Rate limit exceeded",
        description="Message returned to clients when the limit is exceeded",
    )
    interval: str = Field(
        "+1 minute",
        description="Relative duration of one counting interval (e.g. '+1 minute', '2 hours')",
    )
    limit: int = Field(
        10,
        description="Maximum number of hits allowed per interval and identifier",
        ge=0,
    )
    identifier: str | None = Field(
        None,
        description="Import path 'package.module:function' of a custom identifier function",
    )
    headers: dict[str, str] | None = Field(
        default_factory=lambda: dict(DEFAULT_HEADER_NAMES),
        description="Mapping of limit/remaining/reset to response header names",
    )
    namespace: str = Field(
        "throttle",
        description="Counter store namespace (also the key prefix)",
    )
    status_code: int = Field(
        429,
        description="HTTP status returned when a request is rejected",
    )
    trust_proxy: bool = Field(
        False,
        description="Use the left-most X-Forwarded-For entry as client IP",
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health", "/docs", "/openapi.json"],
        description="Request paths that are never throttled",
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Default cache backend of the application.

    The throttle counter store is created with the same backend technology so
    no separate cache has to be provisioned for it.
    """

    backend: str = Field(
        "memory",
        description="Backend short name (memory, redis) or dotted class path",
    )
    url: str = Field(
        "redis://localhost:6379/0",
        description="Connection URL for network backends",
    )
    socket_timeout_seconds: float | None = Field(
        None,
        description="Socket timeout for network backends (None keeps the client default)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate file logs after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
