"""Configuration management using pydantic-settings."""

from .settings import (
    EngineSettings,
    LoggingSettings,
    TristateSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "EngineSettings",
    "LoggingSettings",
    "TristateSettings",
    "clear_settings_cache",
    "get_settings",
]
