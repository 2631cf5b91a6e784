"""Read and write the persisted settings JSON file."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger


def load_settings(path: Path) -> Any:
    """Return the parsed settings, or ``None`` when the file does not exist yet."""

    path = Path(path)
    if not path.exists():
        logger.debug("Settings file {} does not exist", path)
        return None
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def save_settings(path: Path, settings: Any) -> None:
    """Atomically replace ``path`` with ``settings`` serialised as JSON."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, ensure_ascii=False, indent=2)
            fh.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug("Wrote settings to {}", path)


__all__ = ["load_settings", "save_settings"]
