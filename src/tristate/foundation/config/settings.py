"""Environment-based configuration using pydantic-settings.

Supplies the defaults used when a stateful stream is constructed without
explicit options.

Example:
    >>> from tristate.foundation.config import get_settings
    >>> get_settings().engine.cache_size
    42

    # Or with environment variables:
    # TRISTATE_ENGINE_CACHE_SIZE=100
    # TRISTATE_ENGINE_MAP_OPERATOR=concat
    # TRISTATE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Defaults for the stateful engine."""

    model_config = SettingsConfigDict(
        env_prefix="TRISTATE_ENGINE_",
        extra="ignore",
    )

    cache_size: NonNegativeInt = Field(default=42, description="Entries per cache generation")
    map_operator: Literal["switch", "merge", "concat"] = Field(
        default="switch",
        description="Overlap policy when a new input arrives while a loader is in flight",
    )
    name: str = Field(default="unnamed", description="Display name used in diagnostics")

    @field_validator("map_operator", mode="before")
    @classmethod
    def _normalize_operator(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRISTATE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class TristateSettings(BaseSettings):
    """Root settings, loaded from ``TRISTATE_`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="TRISTATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> TristateSettings:
    """Get the global settings instance (cached)."""
    return TristateSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
