"""Model registry types and identity helpers."""

from __future__ import annotations

from .fingerprint import fingerprint, fingerprint_provider, normalize_base_url, normalize_field
from .mapping import IdMapping
from .models import (
    CURRENT_SETTINGS_VERSION,
    ChairConfig,
    ChairStrategy,
    ModelConfiguration,
    ModelReference,
    ModelRegistry,
    OllamaProviderConfig,
    OpenAIProviderConfig,
    Provider,
    ProviderConfig,
    SettingsVersion,
    parse_registry,
    salvage_registry,
)
from .naming import ModelIdFactory, migration_display_name

__all__ = [
    "CURRENT_SETTINGS_VERSION",
    "ChairConfig",
    "ChairStrategy",
    "IdMapping",
    "ModelConfiguration",
    "ModelIdFactory",
    "ModelReference",
    "ModelRegistry",
    "OllamaProviderConfig",
    "OpenAIProviderConfig",
    "Provider",
    "ProviderConfig",
    "SettingsVersion",
    "fingerprint",
    "fingerprint_provider",
    "migration_display_name",
    "normalize_base_url",
    "normalize_field",
    "parse_registry",
    "salvage_registry",
]
