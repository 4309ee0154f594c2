"""
Configuration Management for FinFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Base URLs, API version and timeouts are environment concerns, so they
live in settings rather than in the client code.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkSettings(BaseSettings):
    """Backend API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINFLOW_NETWORK_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://api.finflow.com/api",
        description="Base URL every endpoint path is appended to"
    )
    api_version: str = Field(
        default="1",
        description="Value of the API-Version header (backend assumes 1 when absent)"
    )

    # Transport timeouts are fixed per process, never per request
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a single connect/read/write/pool step"
    )
    resource_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Overall deadline in seconds for one exchange, connect retries included"
    )
    connect_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts made when the connection cannot be established"
    )

    log_body_limit: int = Field(
        default=1000,
        ge=0,
        description="Maximum characters of a request/response body written to logs"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints start with '/', so the base must not end with one."""
        return v.rstrip("/")


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINFLOW_STORAGE_",
        extra="ignore"
    )

    cache_dir: Path = Field(
        default=Path.home() / ".cache" / "finflow",
        description="Directory holding the profile cache"
    )
    secret_service: str = Field(
        default="com.finflow.app",
        description="Service name secrets are stored under"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level written by the structured logger"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def network(self) -> NetworkSettings:
        return NetworkSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("network", "storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
