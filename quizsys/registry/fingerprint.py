"""Content-derived identity for model configurations.

Two configurations with the same fingerprint describe the same functional
model: id, display name and timestamps never take part in the key.
"""

from __future__ import annotations

import json
import re

from .models import ModelConfiguration, OpenAIProviderConfig, ProviderConfig

_TRAILING_SLASHES = re.compile(r"/+$")


def normalize_field(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().lower()


def normalize_base_url(url: str | None) -> str:
    if url is None:
        return ""
    return _TRAILING_SLASHES.sub("", url.strip()).lower()


def fingerprint_provider(config: ProviderConfig) -> str:
    """Fingerprint a bare provider configuration."""

    components: dict[str, str] = {
        "provider": str(config.provider),
        "textGenerationModel": normalize_field(config.text_generation_model),
        "embeddingModel": normalize_field(config.embedding_model),
        "baseUrl": normalize_base_url(config.base_url),
    }
    if isinstance(config, OpenAIProviderConfig):
        components["apiKey"] = normalize_field(config.api_key)
    return json.dumps(components, sort_keys=True, separators=(",", ":"))


def fingerprint(model: ModelConfiguration) -> str:
    """Fingerprint a registry entry; total for every valid configuration."""

    return fingerprint_provider(model.provider_config)


__all__ = ["fingerprint", "fingerprint_provider", "normalize_base_url", "normalize_field"]
