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


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables; the
    explicit builders keep static type checkers from treating fields as
    required constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_ads_settings() -> "AdFrequencySettings":
    return AdFrequencySettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for presentation surfaces",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class AdFrequencySettings(BaseSettings):
    """Sponsored-slot frequency policy configuration."""

    max_session_impressions: int = Field(
        12,
        description="Maximum impressions per visitor session",
        ge=0,
    )
    max_daily_impressions: int = Field(
        30,
        description="Maximum impressions per visitor per calendar day",
        ge=0,
    )
    cooldown_seconds: int = Field(
        60,
        description="Minimum seconds between two impressions for one visitor",
        ge=0,
    )
    storage_backend: str = Field(
        "memory",
        description="Key-value store backing the frequency state (memory, file)",
    )
    storage_path: str = Field(
        "data/ad_frequency",
        description="Directory used by the file storage backend",
    )
    storage_key: str = Field(
        "ad_frequency_state",
        description="Key prefix under which frequency state is persisted",
    )
    timezone: str = Field(
        "UTC",
        description="IANA time zone used to decide the calendar day for daily limits",
    )
    client_id: str = Field(
        "ca-pub-0000000000000000",
        description="Ad network publisher id returned with slot configurations",
    )
    policy_cache_ttl_seconds: int = Field(
        1800,
        description="Idle time after which a visitor's policy is reloaded from storage",
        ge=1,
    )
    policy_cache_max_entries: int | None = Field(
        10000,
        description="Maximum number of visitor policies kept in memory (None for unlimited)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ADS_",
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
    backup_count: int = Field(5, description="Number of rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    ads: AdFrequencySettings = Field(default_factory=_build_ads_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
