"""Configuration namespace for quizsys."""

from __future__ import annotations

from .app import AppConfig
from .backup import BackupConfig
from .base import BaseConfig, load_config
from .migration import MigrationConfig

__all__ = [
    "BaseConfig",
    "AppConfig",
    "load_config",
    "BackupConfig",
    "MigrationConfig",
]
