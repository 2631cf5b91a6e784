"""Display names and ids for models created by the migration."""

from __future__ import annotations

import re
import secrets
import time
from urllib.parse import urlparse

from .models import DEFAULT_OLLAMA_BASE_URL, DEFAULT_OPENAI_BASE_URL, Provider

_HOST_FALLBACK = re.compile(r"^(?:https?://)?([^/:]+)")


def extract_hostname(url: str) -> str:
    if not url:
        return ""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        hostname = None
    if hostname:
        return hostname
    match = _HOST_FALLBACK.match(url)
    return match.group(1) if match else ""


def is_default_base_url(provider: Provider, base_url: str) -> bool:
    hostname = extract_hostname(base_url)
    if provider is Provider.OPENAI:
        return base_url in (DEFAULT_OPENAI_BASE_URL, "https://api.openai.com") or hostname == "api.openai.com"
    return base_url == DEFAULT_OLLAMA_BASE_URL or hostname in ("localhost", "127.0.0.1")


def migration_display_name(
    provider: Provider,
    base_url: str,
    *,
    source: str | None = None,
    index: int | None = None,
) -> str:
    """Build a readable name such as ``"Consensus OpenAI 2 - lmstudio.local"``.

    Default endpoints get a ``(migrated)`` suffix instead of the hostname.
    """

    prefix = f"{source.capitalize()} " if source else ""
    suffix = f" {index}" if index is not None else ""
    label = f"{prefix}{provider.display_name}{suffix}"

    hostname = extract_hostname(base_url)
    if is_default_base_url(provider, base_url) or not hostname or hostname == "localhost":
        return f"{label} (migrated)"
    return f"{label} - {hostname}"


class ModelIdFactory:
    """Issues ``{source}_{epoch_ms}_{suffix}`` ids unique within one run."""

    def __init__(self) -> None:
        self._issued: set[str] = set()

    def new_id(self, source: str) -> str:
        while True:
            candidate = f"{source}_{int(time.time() * 1000)}_{secrets.token_hex(2)}"
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate


def now_ms() -> int:
    return int(time.time() * 1000)


__all__ = [
    "ModelIdFactory",
    "extract_hostname",
    "is_default_base_url",
    "migration_display_name",
    "now_ms",
]
