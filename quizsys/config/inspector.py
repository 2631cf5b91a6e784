"""Utilities for inspecting and validating configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Union

from pydantic import ValidationError

from .app import AppConfig
from .base import load_config


class ConfigInspectionError(RuntimeError):
    """Raised when configuration inspection fails unexpectedly."""


def check_config(path: Path, *, config_cls: type[AppConfig] = AppConfig) -> tuple[dict[str, Any], int, AppConfig | None]:
    """Validate the configuration file and collect warnings.

    Returns a tuple of ``(result_dict, exit_code, config_instance_or_None)``.
    """

    try:
        config = load_config(config_cls, path)
    except FileNotFoundError as exc:
        return _error_report(path, "missing_file", str(exc)), 2, None
    except ValidationError as exc:
        report = _error_report(path, "validation_error", "Configuration validation failed")
        report["error"]["details"] = [
            {
                "loc": _format_error_location(err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return report, 3, None
    except PermissionError as exc:
        return _error_report(path, "permission_error", str(exc)), 2, None
    except ValueError as exc:
        return _error_report(path, "invalid_format", str(exc)), 1, None
    except Exception as exc:  # pragma: no cover - unexpected failures
        raise ConfigInspectionError("Unexpected configuration inspection error") from exc

    result = {
        "status": "ok",
        "config_path": str(path),
        "warnings": _collect_warnings(config),
    }
    return result, 0, config


def _error_report(path: Path, error_type: str, message: str) -> dict[str, Any]:
    return {
        "status": "error",
        "config_path": str(path),
        "error": {
            "type": error_type,
            "message": message,
        },
    }


def _format_error_location(location: Iterable[Union[int, str]]) -> str:
    return ".".join(str(part) for part in location)


def _collect_warnings(config: AppConfig) -> list[str]:
    warnings: list[str] = []

    if config.settings_path is None:
        warnings.append("'settings_path' is not set; pass --settings to migration commands")
    if not config.backup.enabled and config.migration.create_backup:
        warnings.append("'migration.create_backup' is true but file backups are disabled")
    if not config.migration.prune_legacy_fields:
        warnings.append("Legacy provider fields will be kept after migration")

    return warnings


__all__ = ["check_config", "ConfigInspectionError"]
