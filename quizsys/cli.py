"""Command line interface for the quizsys migration toolkit."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from loguru import logger

from .backup import BackupError, SettingsBackupService
from .config import AppConfig, load_config
from .config.inspector import check_config
from .migration import SettingsMigrator, detect_migration_needs, get_settings_version
from .settings_store import load_settings, save_settings

_log_handler_id: int | None = None


@dataclass(slots=True)
class CLIState:
    """Holds shared state between Typer commands."""

    config_path: Path
    _config: AppConfig | None = None

    def ensure_config(self) -> AppConfig:
        if self._config is None:
            self._config = load_config(AppConfig, self.config_path)
            _configure_logging(self._config.logging_level)
            logger.debug("Loaded configuration from {}", self.config_path)
        return self._config


app = typer.Typer(help="Quiz generator settings migration helpers")
config_app = typer.Typer(help="Validate configuration files")
app.add_typer(config_app, name="config")
migrate_app = typer.Typer(help="Inspect and migrate persisted settings")
app.add_typer(migrate_app, name="migrate")
backup_app = typer.Typer(help="Manage settings backups")
app.add_typer(backup_app, name="backup")


def _default_config_path() -> Path:
    repo_root = Path(__file__).resolve().parents[1]
    return repo_root / "config" / "example.toml"


def _configure_logging(level: str) -> None:
    global _log_handler_id
    if _log_handler_id is not None:
        logger.remove(_log_handler_id)
    else:
        try:
            logger.remove(0)
        except ValueError:
            pass
    _log_handler_id = logger.add(lambda message: sys.stderr.write(message), level=level)


def _normalize_format(value: str) -> str:
    return value.lower()


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):  # pragma: no cover - defensive guard
        raise RuntimeError("CLI context is not initialised")
    return state


def _exit(code: int) -> None:
    raise typer.Exit(code)


def _resolve_settings_path(config: AppConfig, override: Path | None) -> Path:
    path = override or config.settings_path
    if path is None:
        logger.error("No settings file given; pass --settings or set 'settings_path' in the configuration")
        _exit(2)
    return Path(path).expanduser()


def _read_settings(path: Path) -> Any:
    try:
        return load_settings(path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error("Cannot read settings from {}: {}", path, exc)
        _exit(1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Path = typer.Option(
        _default_config_path(),
        help="Path to the TOML configuration file",
    ),
) -> None:
    """Initialise CLI state."""

    ctx.obj = CLIState(config_path=config.resolve())
    if ctx.invoked_subcommand is None:
        logger.warning("No command provided. Try 'migrate status' or 'config check'.")
        _exit(0)


@config_app.command(help="Validate the configuration file")
def check(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for validation results",
        callback=_normalize_format,
    ),
) -> None:
    state = _get_state(ctx)
    result, exit_code, _ = check_config(state.config_path)

    if format == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
        _exit(exit_code)

    if result["status"] == "ok":
        logger.info("Configuration OK: {}", result["config_path"])
        for warning in result["warnings"]:
            logger.warning(warning)
    else:
        error: dict[str, Any] = result["error"]
        logger.error(
            "Configuration error ({}) for {}: {}",
            error["type"],
            result["config_path"],
            error["message"],
        )
        for detail in error.get("details", []):
            location = detail["loc"] or "<root>"
            logger.error("  - {}: {} ({})", location, detail["message"], detail["type"])

    _exit(exit_code)


@migrate_app.command("status", help="Report whether the settings file needs migrating")
def migrate_status(
    ctx: typer.Context,
    settings: Path | None = typer.Option(None, "--settings", help="Settings JSON file to inspect"),
) -> None:
    config = _get_state(ctx).ensure_config()
    path = _resolve_settings_path(config, settings)
    raw = _read_settings(path)

    detection = detect_migration_needs(raw)
    payload = {
        "settings_path": str(path),
        "exists": raw is not None,
        "settings_version": get_settings_version(raw),
        "needs_migration": raw is not None and detection.needs_migration,
        "reasons": [reason.value for reason in detection.reasons] if raw is not None else [],
        "details": list(detection.details) if raw is not None else [],
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


@migrate_app.command("run", help="Migrate the settings file to the model registry layout")
def migrate_run(
    ctx: typer.Context,
    settings: Path | None = typer.Option(None, "--settings", help="Settings JSON file to migrate"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report the outcome without writing files"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the file backup before migrating"),
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for the migration report",
        callback=_normalize_format,
    ),
) -> None:
    config = _get_state(ctx).ensure_config()
    path = _resolve_settings_path(config, settings)
    raw = _read_settings(path)
    if raw is None:
        logger.error("Settings file not found: {}", path)
        _exit(2)

    migrator = SettingsMigrator(config.migration)
    use_backup = (
        config.backup.enabled and config.migration.create_backup and not no_backup and not dry_run
    )
    if use_backup:
        service = SettingsBackupService(config.backup)
        result = asyncio.run(migrator.migrate_with_backup(raw, service))
    else:
        result = migrator.migrate(raw)

    if result.success and result.migrated and not dry_run:
        save_settings(path, result.settings)
        logger.info("Migrated settings written to {}", path)

    if format == "json":
        report = result.to_report()
        report["dry_run"] = dry_run
        if dry_run:
            report["settings"] = result.settings
        print(json.dumps(report, indent=2, ensure_ascii=False, default=str))
    else:
        if not result.migrated and result.success:
            logger.info("Settings are up to date; nothing to migrate")
        elif result.success:
            logger.info(
                "Migration finished: {} new, {} reused, {} duplicates removed",
                result.stats.new_models_added,
                result.stats.matched_existing,
                result.stats.duplicates_removed,
            )
        for warning in result.warnings:
            logger.warning(warning)
        for error in result.errors:
            logger.error(error)
        if dry_run and result.migrated:
            logger.info("Dry run: settings file left unchanged")

    _exit(0 if result.success else 1)


@backup_app.command("list", help="List settings backups, newest first")
def backup_list(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for the backup listing",
        callback=_normalize_format,
    ),
) -> None:
    config = _get_state(ctx).ensure_config()
    backups = SettingsBackupService(config.backup).list_backups()

    if format == "json":
        payload = [
            {
                "path": str(info.path),
                "timestamp": info.timestamp,
                "created_at": info.created_at,
                "reason": info.reason,
                "description": info.description,
            }
            for info in backups
        ]
        print(json.dumps({"backups": payload}, indent=2, ensure_ascii=False))
        return

    if not backups:
        logger.info("No settings backups found in {}", config.backup.directory)
        return
    for info in backups:
        logger.info("{} [{}] {} {}", info.path.name, info.reason, info.created_at, info.description or "")


@backup_app.command("restore", help="Restore a settings backup over the settings file")
def backup_restore(
    ctx: typer.Context,
    backup: Path = typer.Argument(..., help="Backup file path or name inside the backup directory"),
    settings: Path | None = typer.Option(None, "--settings", help="Settings JSON file to overwrite"),
) -> None:
    config = _get_state(ctx).ensure_config()
    path = _resolve_settings_path(config, settings)
    service = SettingsBackupService(config.backup)

    backup_path = backup
    if not backup_path.exists() and (service.directory / backup.name).exists():
        backup_path = service.directory / backup.name

    outcome = service.restore_from_backup(backup_path)
    if not outcome.success or outcome.settings is None:
        raise BackupError(outcome.error or f"Could not restore {backup_path}")
    for warning in outcome.warnings:
        logger.warning(warning)

    current = _read_settings(path)
    if current is not None and config.backup.enabled:
        asyncio.run(
            service.create_backup(current, reason="recovery", description=f"Before restoring {backup_path.name}")
        )
    save_settings(path, outcome.settings)
    logger.info("Restored {} into {}", backup_path.name, path)


def main(argv: list[str] | None = None) -> int:
    """Entry point compatible with setuptools console scripts."""

    try:
        result = app(args=argv, standalone_mode=False)
    except typer.Exit as exc:  # pragma: no cover - Typer translates exit codes
        return exc.exit_code
    except BackupError as exc:
        logger.error("Restore failed: {}", exc)
        return 1
    if isinstance(result, int):
        return result
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
