"""Configuration package."""

from finflow.config.settings import (
    AppSettings,
    NetworkSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "NetworkSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
