"""Shared helpers for CLI tests."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable

import pytest
from loguru import logger


@contextmanager
def _logger_to_stderr(level: str = "INFO"):
    handler_id = logger.add(sys.stderr, level=level)
    try:
        yield
    finally:
        logger.remove(handler_id)


@pytest.fixture
def logger_to_stderr():
    """Temporarily route Loguru output to stderr for assertion."""

    return _logger_to_stderr


@pytest.fixture
def write_app_config(tmp_path: Path) -> Callable[..., Path]:
    """Write a TOML config pointing at files under ``tmp_path``."""

    def _write(*, backups_enabled: bool = True, prune: bool = True, max_backups: int = 10) -> Path:
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            "\n".join(
                [
                    f'settings_path = "{(tmp_path / "data.json").as_posix()}"',
                    'logging_level = "INFO"',
                    "",
                    "[backup]",
                    f"enabled = {'true' if backups_enabled else 'false'}",
                    f'directory = "{(tmp_path / "backups").as_posix()}"',
                    f"max_backups = {max_backups}",
                    "",
                    "[migration]",
                    f"prune_legacy_fields = {'true' if prune else 'false'}",
                ]
            ),
            encoding="utf-8",
        )
        return config_file

    return _write
