"""Backup utilities for quizsys."""

from .service import (
    BackupError,
    BackupInfo,
    BackupOutcome,
    BackupValidation,
    RestoreOutcome,
    SettingsBackup,
    SettingsBackupService,
)

__all__ = [
    "SettingsBackupService",
    "SettingsBackup",
    "BackupOutcome",
    "BackupInfo",
    "BackupValidation",
    "RestoreOutcome",
    "BackupError",
]
