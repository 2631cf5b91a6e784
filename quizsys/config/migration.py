"""Migration behaviour switches."""

from __future__ import annotations

from pydantic import Field

from quizsys.config.base import BaseConfig


class MigrationConfig(BaseConfig):
    """Controls optional steps of the settings migration."""

    create_backup: bool = Field(True, description="Require a backup before mutating settings")
    prune_legacy_fields: bool = Field(
        True,
        description="Remove legacy provider fields once their models are in the registry",
    )


__all__ = ["MigrationConfig"]
