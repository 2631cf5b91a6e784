"""Settings backup configuration models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator

from quizsys.config.base import BaseConfig


class BackupConfig(BaseConfig):
    """Where and how settings snapshots are written before a migration."""

    enabled: bool = Field(True, description="Whether a file backup is written before migrating")
    directory: Path = Field(
        Path("./backups"),
        description="Directory that receives settings-backup-*.json files",
    )
    max_backups: int = Field(
        10,
        ge=1,
        description="Retention window (number of most recent backups kept)",
    )
    plugin_version: str = Field(
        "1.0.0",
        description="Version string recorded in backup metadata",
        min_length=1,
    )

    @field_validator("plugin_version")
    @classmethod
    def _strip_version(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("plugin_version must not be blank")
        return stripped


__all__ = ["BackupConfig"]
