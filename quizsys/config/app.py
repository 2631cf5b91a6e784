"""Application-level configuration models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator

from quizsys.config.backup import BackupConfig
from quizsys.config.base import BaseConfig
from quizsys.config.migration import MigrationConfig

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseConfig):
    """Top-level runtime configuration for the migration tooling."""

    settings_path: Path | None = Field(None, description="Path to the persisted plugin settings (JSON)")
    logging_level: str = Field("INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")
    backup: BackupConfig = Field(default_factory=BackupConfig, description="Backup configuration")
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig,
        description="Migration behaviour configuration",
    )

    @field_validator("logging_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"logging_level must be one of {sorted(_LOG_LEVELS)}")
        return level


__all__ = ["AppConfig"]
