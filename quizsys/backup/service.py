"""Settings snapshots written before a migration touches anything."""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from quizsys.config import BackupConfig

BACKUP_PREFIX = "settings-backup-"
BACKUP_SUFFIX = ".json"
_BACKUP_NAME = re.compile(rf"^{re.escape(BACKUP_PREFIX)}(\d+){re.escape(BACKUP_SUFFIX)}$")

BackupReason = Literal["migration", "manual", "pre-update", "recovery"]


class BackupError(RuntimeError):
    """Raised when a backup cannot be read or restored."""


class BackupMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    created_at: str
    timestamp: int = Field(..., ge=0)
    plugin_version: str
    reason: BackupReason
    description: str | None = None


class SettingsBackup(BaseModel):
    """On-disk shape of ``settings-backup-*.json``."""

    model_config = ConfigDict(extra="ignore")

    metadata: BackupMetadata
    settings: dict[str, Any]

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class BackupOutcome:
    success: bool
    path: Path | None = None
    backup: SettingsBackup | None = None
    error: str | None = None


@dataclass(frozen=True)
class RestoreOutcome:
    success: bool
    settings: dict[str, Any] | None = None
    backup: SettingsBackup | None = None
    error: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BackupValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BackupInfo:
    path: Path
    timestamp: int
    reason: str
    created_at: str
    description: str | None = None


class SettingsBackupService:
    """Create, list, restore and prune settings backups in one directory."""

    def __init__(self, config: BackupConfig) -> None:
        self.config = config

    @property
    def directory(self) -> Path:
        return self.config.directory.expanduser()

    async def create_backup(
        self,
        settings: dict[str, Any],
        reason: BackupReason = "migration",
        description: str | None = None,
    ) -> BackupOutcome:
        """Write a backup and apply retention; failures are returned, never raised."""

        try:
            timestamp = int(time.time() * 1000)
            backup = SettingsBackup(
                metadata=BackupMetadata(
                    created_at=datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
                    .isoformat()
                    .replace("+00:00", "Z"),
                    timestamp=timestamp,
                    plugin_version=self.config.plugin_version,
                    reason=reason,
                    description=description,
                ),
                settings=settings,
            )
            path = await asyncio.to_thread(self._write_backup, backup)
        except Exception as exc:
            logger.error("Failed to create settings backup: {}", exc)
            return BackupOutcome(success=False, error=str(exc))

        logger.info("Created settings backup {} ({})", path.name, reason)
        try:
            await asyncio.to_thread(self.cleanup_old_backups)
        except OSError as exc:
            logger.warning("Backup retention cleanup failed: {}", exc)
        return BackupOutcome(success=True, path=path, backup=backup)

    def list_backups(self) -> list[BackupInfo]:
        """Readable backups, newest first."""

        infos: list[BackupInfo] = []
        for path in self._backup_files():
            try:
                backup = self._read_backup(path)
            except BackupError as exc:
                logger.warning("Skipping unreadable backup {}: {}", path.name, exc)
                continue
            meta = backup.metadata
            infos.append(
                BackupInfo(
                    path=path,
                    timestamp=meta.timestamp,
                    reason=meta.reason,
                    created_at=meta.created_at,
                    description=meta.description,
                )
            )
        infos.sort(key=lambda info: info.timestamp, reverse=True)
        return infos

    def latest_backup(self) -> BackupInfo | None:
        backups = self.list_backups()
        return backups[0] if backups else None

    def restore_from_backup(self, path: Path) -> RestoreOutcome:
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return RestoreOutcome(success=False, error=f"Backup file not found: {path}")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            return RestoreOutcome(success=False, error=f"Failed to read backup {path}: {exc}")

        validation = self.validate_backup(raw)
        if not validation.valid:
            return RestoreOutcome(
                success=False,
                error="Invalid backup: " + "; ".join(validation.errors),
                warnings=tuple(validation.warnings),
            )

        backup = SettingsBackup.model_validate(raw)
        logger.info("Restored settings from backup {}", Path(path).name)
        return RestoreOutcome(
            success=True,
            settings=backup.settings,
            backup=backup,
            warnings=tuple(validation.warnings),
        )

    def delete_backup(self, path: Path) -> bool:
        path = Path(path)
        if path.parent.resolve() != self.directory.resolve() or not _BACKUP_NAME.match(path.name):
            logger.warning("Refusing to delete {}: not a settings backup in {}", path, self.directory)
            return False
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted settings backup {}", path.name)
        return True

    def cleanup_old_backups(self, max_count: int | None = None) -> list[Path]:
        """Delete all but the ``max_count`` most recent backups; return what was removed."""

        keep = self.config.max_backups if max_count is None else max_count
        files = sorted(self._backup_files(), key=_backup_timestamp, reverse=True)
        removed: list[Path] = []
        for old_file in files[max(keep, 0) :]:
            logger.info("Removing expired settings backup {}", old_file.name)
            old_file.unlink(missing_ok=True)
            removed.append(old_file)
        return removed

    def validate_backup(self, raw: Any) -> BackupValidation:
        if not isinstance(raw, dict):
            return BackupValidation(valid=False, errors=["Backup must be a JSON object"])

        try:
            backup = SettingsBackup.model_validate(raw)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ]
            return BackupValidation(valid=False, errors=errors)

        warnings: list[str] = []
        if not backup.settings:
            warnings.append("Backup contains empty settings")
        if backup.metadata.plugin_version != self.config.plugin_version:
            warnings.append(
                f"Backup was created by version {backup.metadata.plugin_version}, "
                f"current version is {self.config.plugin_version}"
            )
        return BackupValidation(valid=True, warnings=warnings)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _backup_files(self) -> list[Path]:
        directory = self.directory
        if not directory.exists():
            return []
        return [p for p in directory.iterdir() if p.is_file() and _BACKUP_NAME.match(p.name)]

    def _write_backup(self, backup: SettingsBackup) -> Path:
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        stamp = backup.metadata.timestamp
        path = directory / f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"
        while path.exists():
            stamp += 1
            path = directory / f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"
        payload = json.dumps(backup.to_json(), ensure_ascii=False, indent=2)
        path.write_text(payload, encoding="utf-8")
        return path

    def _read_backup(self, path: Path) -> SettingsBackup:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return SettingsBackup.model_validate(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise BackupError(str(exc)) from exc


def _backup_timestamp(path: Path) -> int:
    match = _BACKUP_NAME.match(path.name)
    return int(match.group(1)) if match else 0


__all__ = [
    "BACKUP_PREFIX",
    "BackupError",
    "BackupInfo",
    "BackupMetadata",
    "BackupOutcome",
    "BackupValidation",
    "RestoreOutcome",
    "SettingsBackup",
    "SettingsBackupService",
]
