"""Recognise which historical settings shape a raw object has.

Settings arrive as whatever JSON was persisted, so every check here works on
untyped data. :func:`classify_settings` turns that into one of the tagged
shape variants the orchestrator dispatches on.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from quizsys.registry.models import (
    CURRENT_SETTINGS_VERSION,
    Provider,
    SettingsVersion,
    is_model_reference,
    parse_registry,
)


class MigrationReason(str, Enum):
    MISSING_MODEL_REGISTRY = "missing_model_registry"
    INVALID_MODEL_REGISTRY = "invalid_model_registry"
    HAS_LEGACY_MAIN_MODEL = "has_legacy_main_model"
    HAS_LEGACY_CONSENSUS_MODELS = "has_legacy_consensus_models"
    HAS_LEGACY_COUNCIL_MODELS = "has_legacy_council_models"
    CONSENSUS_MISSING_MODEL_REFERENCES = "consensus_missing_model_references"
    COUNCIL_MISSING_MODEL_REFERENCES = "council_missing_model_references"


@dataclass(frozen=True, slots=True)
class MigrationDetection:
    """Outcome of :func:`detect_migration_needs`."""

    needs_migration: bool
    reasons: tuple[MigrationReason, ...] = ()
    details: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class _ListSource:
    section: str
    legacy_key: str
    label: str
    legacy_reason: MigrationReason
    missing_reason: MigrationReason


CONSENSUS_SOURCE = _ListSource(
    section="consensusSettings",
    legacy_key="consensusModels",
    label="consensus",
    legacy_reason=MigrationReason.HAS_LEGACY_CONSENSUS_MODELS,
    missing_reason=MigrationReason.CONSENSUS_MISSING_MODEL_REFERENCES,
)
COUNCIL_SOURCE = _ListSource(
    section="councilSettings",
    legacy_key="councilModels",
    label="council",
    legacy_reason=MigrationReason.HAS_LEGACY_COUNCIL_MODELS,
    missing_reason=MigrationReason.COUNCIL_MISSING_MODEL_REFERENCES,
)

_PROVIDER_VALUES = {provider.value for provider in Provider}


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def has_legacy_main_fields(settings: dict[str, Any]) -> bool:
    """True when root-level provider fields from the old layout are present."""

    if settings.get("provider") in _PROVIDER_VALUES:
        return True
    return any(
        _non_empty_string(settings.get(key))
        for key in ("openAIApiKey", "openAITextGenModel", "ollamaTextGenModel")
    )


def legacy_entries(settings: dict[str, Any], source: _ListSource) -> list[Any] | None:
    """Return the legacy embedded-model list of ``source``, if there is one."""

    section = settings.get(source.section)
    if not isinstance(section, dict):
        return None
    entries = section.get(source.legacy_key)
    return entries if isinstance(entries, list) else None


def _has_embedded_settings(entry: Any) -> bool:
    return isinstance(entry, dict) and isinstance(entry.get("settings"), dict)


def _check_registry(settings: dict[str, Any]) -> tuple[list[MigrationReason], list[str]]:
    if settings.get("modelRegistry") is None:
        if "modelRegistry" in settings:
            return [MigrationReason.INVALID_MODEL_REGISTRY], ["modelRegistry is null"]
        return [MigrationReason.MISSING_MODEL_REGISTRY], ["No modelRegistry field found in settings"]
    if parse_registry(settings["modelRegistry"]) is None:
        return (
            [MigrationReason.INVALID_MODEL_REGISTRY],
            ["modelRegistry exists but is not a valid registry structure"],
        )
    return [], []


def _check_main_model(settings: dict[str, Any]) -> tuple[list[MigrationReason], list[str]]:
    has_new_main = parse_registry(settings.get("modelRegistry")) is not None and (
        "activeModelId" in settings
        and (settings["activeModelId"] is None or isinstance(settings["activeModelId"], str))
    )
    if has_new_main or not has_legacy_main_fields(settings):
        return [], []
    return (
        [MigrationReason.HAS_LEGACY_MAIN_MODEL],
        [f"Legacy main model config found: provider={settings.get('provider')}"],
    )


def _check_list_source(settings: dict[str, Any], source: _ListSource) -> tuple[list[MigrationReason], list[str]]:
    entries = legacy_entries(settings, source)
    if not entries:
        return [], []

    references = settings[source.section].get("models")
    has_references = (
        isinstance(references, list)
        and len(references) > 0
        and all(is_model_reference(ref) for ref in references)
    )
    # Embedded blobs left next to a valid reference list were already migrated.
    if has_references:
        return [], []

    details = [f"{source.label.capitalize()} has legacy models but no model references"]
    if any(_has_embedded_settings(entry) for entry in entries):
        details.insert(0, f"Found {len(entries)} {source.label} models with embedded settings (legacy format)")
        return [source.legacy_reason], details
    return [source.missing_reason], details


def detect_migration_needs(settings: Any) -> MigrationDetection:
    """Explain why ``settings`` needs migrating (an empty result means it does not)."""

    if not isinstance(settings, dict):
        return MigrationDetection(
            needs_migration=True,
            reasons=(MigrationReason.MISSING_MODEL_REGISTRY,),
            details=("Settings is null or not an object",),
        )

    reasons: list[MigrationReason] = []
    details: list[str] = []
    for check in (
        _check_registry(settings),
        _check_main_model(settings),
        _check_list_source(settings, CONSENSUS_SOURCE),
        _check_list_source(settings, COUNCIL_SOURCE),
    ):
        reasons.extend(check[0])
        details.extend(check[1])

    return MigrationDetection(needs_migration=bool(reasons), reasons=tuple(reasons), details=tuple(details))


def needs_migration(settings: Any) -> bool:
    return detect_migration_needs(settings).needs_migration


def get_settings_version(settings: Any) -> int:
    """Explicit ``settingsVersion``, else V1 when a valid registry exists, else LEGACY."""

    if not isinstance(settings, dict):
        return SettingsVersion.LEGACY
    version = settings.get("settingsVersion")
    if isinstance(version, int) and not isinstance(version, bool):
        return version
    if parse_registry(settings.get("modelRegistry")) is not None:
        return SettingsVersion.REGISTRY_V1
    return SettingsVersion.LEGACY


def needs_registry_migration(settings: Any) -> bool:
    """Combine the version marker with structural detection; ``None`` is fresh settings."""

    if settings is None:
        return False
    if get_settings_version(settings) >= CURRENT_SETTINGS_VERSION:
        return False
    return needs_migration(settings)


@dataclass(frozen=True, slots=True)
class UnrecognizedSettings:
    raw: Any
    description: str


@dataclass(frozen=True, slots=True)
class LegacySettings:
    data: dict[str, Any]
    detection: MigrationDetection


@dataclass(frozen=True, slots=True)
class RegistryV1Settings:
    data: dict[str, Any]
    detection: MigrationDetection


@dataclass(frozen=True, slots=True)
class RegistryV2Settings:
    data: dict[str, Any]
    detection: MigrationDetection


SettingsShape = Union[UnrecognizedSettings, LegacySettings, RegistryV1Settings, RegistryV2Settings]


def classify_settings(raw: Any) -> SettingsShape:
    """Tag ``raw`` with the settings generation it belongs to."""

    if raw is None:
        return UnrecognizedSettings(raw=raw, description="Settings is null")
    if not isinstance(raw, dict):
        return UnrecognizedSettings(
            raw=raw,
            description=f"Settings must be an object, received {type(raw).__name__}",
        )

    detection = detect_migration_needs(raw)
    version = get_settings_version(raw)
    if version >= SettingsVersion.REGISTRY_V2:
        return RegistryV2Settings(data=raw, detection=detection)
    if version == SettingsVersion.REGISTRY_V1:
        return RegistryV1Settings(data=raw, detection=detection)
    return LegacySettings(data=raw, detection=detection)


__all__ = [
    "CONSENSUS_SOURCE",
    "COUNCIL_SOURCE",
    "LegacySettings",
    "MigrationDetection",
    "MigrationReason",
    "RegistryV1Settings",
    "RegistryV2Settings",
    "SettingsShape",
    "UnrecognizedSettings",
    "classify_settings",
    "detect_migration_needs",
    "get_settings_version",
    "has_legacy_main_fields",
    "legacy_entries",
    "needs_migration",
    "needs_registry_migration",
]
