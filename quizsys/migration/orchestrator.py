"""Sequence detection, backup, extraction, dedup, matching and rewriting.

:class:`SettingsMigrator` is the single entry point. It never raises for bad
input: every outcome, including failures, comes back as a
:class:`MigrationResult` whose ``settings`` are always safe to persist.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from quizsys.config.migration import MigrationConfig
from quizsys.registry.mapping import IdMapping
from quizsys.registry.models import (
    CURRENT_SETTINGS_VERSION,
    REGISTRY_SCHEMA_VERSION,
    ChairStrategy,
    ModelConfiguration,
    ModelReference,
    ModelRegistry,
    salvage_registry,
)
from quizsys.registry.naming import ModelIdFactory

from .dedupe import Candidate, MergeInfo, dedupe
from .detection import (
    CONSENSUS_SOURCE,
    COUNCIL_SOURCE,
    LegacySettings,
    MigrationDetection,
    MigrationReason,
    RegistryV1Settings,
    RegistryV2Settings,
    UnrecognizedSettings,
    classify_settings,
    legacy_entries,
)
from .extract import BatchExtraction, ExtractionResult, extract_all_list_models, extract_chair, extract_main_model
from .matcher import MatchDetail, match_against_registry
from .prune import prune_legacy_fields
from .rewrite import merge_references, parse_references, rewrite_chair, rewrite_references
from .sections import normalize_consensus_section, normalize_council_section

_SECTION_NORMALIZERS = {
    CONSENSUS_SOURCE.label: normalize_consensus_section,
    COUNCIL_SOURCE.label: normalize_council_section,
}


class MigrationError(RuntimeError):
    """Base error for the migration package."""


class MigrationState(str, Enum):
    NOT_NEEDED = "not_needed"
    DETECTING = "detecting"
    BACKING_UP = "backing_up"
    EXTRACTING = "extracting"
    DEDUPING = "deduping"
    MATCHING = "matching"
    REWRITING = "rewriting"
    PRUNING = "pruning"
    VERSIONING = "versioning"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class MigrationStats:
    main_models_extracted: int = 0
    consensus_models_extracted: int = 0
    council_models_extracted: int = 0
    total_before_dedup: int = 0
    total_after_dedup: int = 0
    duplicates_removed: int = 0
    matched_existing: int = 0
    new_models_added: int = 0

    @property
    def extracted_per_source(self) -> dict[str, int]:
        return {
            "main": self.main_models_extracted,
            "consensus": self.consensus_models_extracted,
            "council": self.council_models_extracted,
        }


@dataclass(slots=True)
class MigrationResult:
    migrated: bool
    success: bool
    settings: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    stats: MigrationStats = field(default_factory=MigrationStats)
    state: MigrationState = MigrationState.DONE
    reasons: tuple[MigrationReason, ...] = ()
    removed_legacy_fields: tuple[str, ...] = ()
    backup_path: Path | None = None
    merges: tuple[MergeInfo, ...] = ()
    registry_matches: tuple[MatchDetail, ...] = ()

    def to_report(self) -> dict[str, Any]:
        """JSON-friendly summary without the settings payload."""

        stats = asdict(self.stats)
        stats["extracted_per_source"] = self.stats.extracted_per_source
        return {
            "migrated": self.migrated,
            "success": self.success,
            "state": self.state.value,
            "reasons": [reason.value for reason in self.reasons],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "stats": stats,
            "removed_legacy_fields": list(self.removed_legacy_fields),
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "merges": [
                {
                    "canonical_id": merge.canonical_id,
                    "canonical_name": merge.canonical_name,
                    "merged_ids": list(merge.merged_ids),
                    "origins": sorted(merge.origins),
                }
                for merge in self.merges
            ],
            "registry_matches": [asdict(detail) for detail in self.registry_matches],
        }


class BackupReceipt(Protocol):
    success: bool
    path: Path | None
    error: str | None


class BackupWriter(Protocol):
    async def create_backup(self, settings: dict[str, Any]) -> BackupReceipt: ...


def default_settings() -> dict[str, Any]:
    """Settings for a fresh install: empty registry, no active model."""

    return {
        "modelRegistry": {"models": {}, "version": REGISTRY_SCHEMA_VERSION},
        "activeModelId": None,
        "settingsVersion": int(CURRENT_SETTINGS_VERSION),
    }


class _StateTracker:
    def __init__(self) -> None:
        self.state = MigrationState.DETECTING
        logger.debug("Migration state -> {}", self.state.value)

    def advance(self, state: MigrationState) -> None:
        logger.debug("Migration state {} -> {}", self.state.value, state.value)
        self.state = state


def _coerce_registry(raw: ModelRegistry | dict[str, Any] | None) -> tuple[dict[str, ModelConfiguration], dict[str, Any], list[str]]:
    if raw is None:
        return {}, {}, []
    if isinstance(raw, ModelRegistry):
        return dict(raw.models), {key: model.to_settings() for key, model in raw.models.items()}, []
    registry, kept_raw, warnings = salvage_registry(raw)
    if registry is None:
        return {}, {}, warnings
    return dict(registry.models), kept_raw, warnings


def _extraction_candidates(
    main: ExtractionResult | None,
    batches: list[BatchExtraction],
) -> list[Candidate]:
    candidates: list[Candidate] = []
    if main is not None and main.model is not None:
        candidates.append(Candidate(model=main.model, origin=main.source))
    for batch in batches:
        for result in batch.results:
            if result.model is None:
                continue
            candidates.append(
                Candidate(
                    model=result.model,
                    origin=result.source,
                    original_id=result.original_id,
                    weight=result.original_weight,
                    enabled=result.original_enabled,
                )
            )
    return candidates


def _references_for(batch: BatchExtraction) -> list[ModelReference]:
    return [
        ModelReference(
            model_id=result.model.id,
            weight=result.original_weight if result.original_weight is not None else 1.0,
            enabled=result.original_enabled if result.original_enabled is not None else True,
        )
        for result in batch.results
        if result.model is not None
    ]


class SettingsMigrator:
    """Convert legacy settings into the registry layout."""

    def __init__(self, config: MigrationConfig | None = None) -> None:
        self._config = config or MigrationConfig()

    def migrate(
        self,
        settings: Any,
        *,
        existing_registry: ModelRegistry | dict[str, Any] | None = None,
    ) -> MigrationResult:
        """Run the pipeline with an in-memory snapshot standing in for the backup."""

        shape = classify_settings(settings)
        early = self._short_circuit(shape)
        if early is not None:
            return early

        snapshot = copy.deepcopy(shape.data)
        tracker = _StateTracker()
        tracker.advance(MigrationState.BACKING_UP)
        return self._execute(snapshot, shape.detection, tracker, existing_registry, backup_path=None)

    async def migrate_with_backup(
        self,
        settings: Any,
        backup: BackupWriter,
        *,
        existing_registry: ModelRegistry | dict[str, Any] | None = None,
    ) -> MigrationResult:
        """Write a backup through ``backup`` before touching anything, then migrate."""

        shape = classify_settings(settings)
        early = self._short_circuit(shape)
        if early is not None:
            return early

        snapshot = copy.deepcopy(shape.data)
        tracker = _StateTracker()
        tracker.advance(MigrationState.BACKING_UP)
        try:
            receipt = await backup.create_backup(copy.deepcopy(snapshot))
            failure = None if receipt.success else (receipt.error or "unknown error")
        except Exception as exc:
            receipt = None
            failure = str(exc)

        if failure is not None:
            tracker.advance(MigrationState.FAILED)
            logger.error("Failed to create backup before migration: {}", failure)
            return MigrationResult(
                migrated=False,
                success=False,
                settings=snapshot,
                errors=[f"Failed to create backup: {failure}"],
                state=tracker.state,
                reasons=shape.detection.reasons,
            )

        backup_path = receipt.path if receipt is not None else None
        logger.info("Settings backed up to {}", backup_path)
        return self._execute(snapshot, shape.detection, tracker, existing_registry, backup_path=backup_path)

    def _short_circuit(self, shape: Any) -> MigrationResult | None:
        match shape:
            case UnrecognizedSettings(raw=None):
                logger.info("No settings found; using defaults")
                return MigrationResult(
                    migrated=False,
                    success=True,
                    settings=default_settings(),
                    state=MigrationState.NOT_NEEDED,
                )
            case UnrecognizedSettings(description=description):
                logger.error("Cannot migrate settings: {}", description)
                return MigrationResult(
                    migrated=False,
                    success=False,
                    settings=default_settings(),
                    errors=[description],
                    state=MigrationState.FAILED,
                )
            case RegistryV2Settings(data=data, detection=MigrationDetection(needs_migration=False)):
                logger.debug("Settings already at version {}; nothing to migrate", int(CURRENT_SETTINGS_VERSION))
                return MigrationResult(
                    migrated=False,
                    success=True,
                    settings=copy.deepcopy(data),
                    state=MigrationState.NOT_NEEDED,
                )
            case LegacySettings() | RegistryV1Settings() | RegistryV2Settings():
                return None
        raise MigrationError(f"Unhandled settings shape: {type(shape).__name__}")

    def _execute(
        self,
        snapshot: dict[str, Any],
        detection: MigrationDetection,
        tracker: _StateTracker,
        existing_registry: ModelRegistry | dict[str, Any] | None,
        *,
        backup_path: Path | None,
    ) -> MigrationResult:
        warnings: list[str] = []
        errors: list[str] = []
        stats = MigrationStats()

        def failed(message: str | None = None) -> MigrationResult:
            tracker.advance(MigrationState.FAILED)
            if message:
                errors.append(message)
            return MigrationResult(
                migrated=False,
                success=False,
                settings=snapshot,
                warnings=warnings,
                errors=errors,
                stats=stats,
                state=tracker.state,
                reasons=detection.reasons,
                backup_path=backup_path,
            )

        for detail in detection.details:
            logger.debug("Migration reason: {}", detail)

        try:
            tracker.advance(MigrationState.EXTRACTING)
            ids = ModelIdFactory()
            main: ExtractionResult | None = None
            if MigrationReason.HAS_LEGACY_MAIN_MODEL in detection.reasons:
                main = extract_main_model(snapshot, ids=ids)
                warnings.extend(main.warnings)
                errors.extend(main.errors)
                stats.main_models_extracted = 1 if main.success else 0

            batches: dict[str, BatchExtraction] = {}
            empty_sources: list[str] = []
            for source in (CONSENSUS_SOURCE, COUNCIL_SOURCE):
                entries = legacy_entries(snapshot, source)
                if not entries:
                    continue
                batch = extract_all_list_models(entries, source.label, ids=ids)
                batches[source.label] = batch
                warnings.extend(batch.warnings)
                errors.extend(batch.errors)
                if batch.success_count == 0:
                    empty_sources.append(source.label)

            if CONSENSUS_SOURCE.label in batches:
                stats.consensus_models_extracted = batches[CONSENSUS_SOURCE.label].success_count
            if COUNCIL_SOURCE.label in batches:
                stats.council_models_extracted = batches[COUNCIL_SOURCE.label].success_count

            if empty_sources:
                return failed(
                    "No models could be migrated from: "
                    + ", ".join(empty_sources)
                    + ". Settings were left unchanged; please reconfigure these models manually."
                )

            tracker.advance(MigrationState.DEDUPING)
            dedup = dedupe(_extraction_candidates(main, list(batches.values())))
            stats.total_before_dedup = dedup.stats.total_before
            stats.total_after_dedup = dedup.stats.total_after
            stats.duplicates_removed = dedup.stats.duplicates_removed
            if dedup.stats.duplicates_removed:
                warnings.append(f"Removed {dedup.stats.duplicates_removed} duplicate model configurations")

            tracker.advance(MigrationState.MATCHING)
            own_models, own_raw, salvage_warnings = _coerce_registry(snapshot.get("modelRegistry"))
            warnings.extend(salvage_warnings)
            extra_models, extra_raw, extra_warnings = _coerce_registry(existing_registry)
            warnings.extend(extra_warnings)
            known_models = {**extra_models, **own_models}
            known_raw = {**extra_raw, **own_raw}

            match = match_against_registry(dedup.unique_models, ModelRegistry(models=known_models))
            stats.matched_existing = match.stats.matched_existing
            stats.new_models_added = match.stats.new_models
            if match.stats.matched_existing:
                warnings.append(
                    f"Found {match.stats.matched_existing} model(s) that match existing registry entries. "
                    "Reusing existing entries to avoid duplicates."
                )
            final_mapping = dedup.id_mapping.compose(match.id_mapping)

            tracker.advance(MigrationState.REWRITING)
            migrated = copy.deepcopy(snapshot)
            registry_models = dict(known_raw)
            for model in match.to_insert:
                registry_models[model.id] = model.to_settings()
            raw_registry = snapshot.get("modelRegistry")
            registry_version = raw_registry.get("version") if isinstance(raw_registry, dict) else None
            if not isinstance(registry_version, int) or isinstance(registry_version, bool):
                registry_version = REGISTRY_SCHEMA_VERSION
            migrated["modelRegistry"] = {"models": registry_models, "version": registry_version}

            active_id = final_mapping.resolve(main.model.id) if main is not None and main.model is not None else None
            if active_id is None:
                existing_active = snapshot.get("activeModelId")
                active_id = existing_active if isinstance(existing_active, str) and existing_active else None
            migrated["activeModelId"] = active_id

            for source in (CONSENSUS_SOURCE, COUNCIL_SOURCE):
                raw_section = migrated.get(source.section)
                if not isinstance(raw_section, dict):
                    continue
                section = _SECTION_NORMALIZERS[source.label](raw_section)
                batch = batches.get(source.label)
                if batch is None:
                    migrated[source.section] = section
                    continue
                rewritten = rewrite_references(_references_for(batch), final_mapping)
                section["models"] = [
                    ref.to_settings() for ref in merge_references(parse_references(section.get("models")), rewritten)
                ]
                if source is COUNCIL_SOURCE:
                    warnings.extend(
                        self._rewrite_chair_section(section, batch, final_mapping, set(registry_models))
                    )
                migrated[source.section] = section

            tracker.advance(MigrationState.PRUNING)
            removed: tuple[str, ...] = ()
            if self._config.prune_legacy_fields:
                pruned = prune_legacy_fields(migrated)
                migrated, removed = pruned.settings, pruned.removed
        except Exception as exc:
            logger.exception("Migration failed in state {}", tracker.state.value)
            return failed(f"Migration failed: {exc}")

        tracker.advance(MigrationState.VERSIONING)
        migrated["settingsVersion"] = int(CURRENT_SETTINGS_VERSION)
        tracker.advance(MigrationState.DONE)

        logger.info(
            "Migrated {} model(s) into the registry ({} reused, {} duplicates removed)",
            stats.new_models_added,
            stats.matched_existing,
            stats.duplicates_removed,
        )
        return MigrationResult(
            migrated=True,
            success=True,
            settings=migrated,
            warnings=warnings,
            errors=errors,
            stats=stats,
            state=tracker.state,
            reasons=detection.reasons,
            removed_legacy_fields=removed,
            backup_path=backup_path,
            merges=dedup.merges,
            registry_matches=match.details,
        )

    @staticmethod
    def _rewrite_chair_section(
        section: dict[str, Any],
        batch: BatchExtraction,
        final_mapping: IdMapping,
        registry_ids: set[str],
    ) -> list[str]:
        chair_raw = section.get("chairModel")
        if not isinstance(chair_raw, dict):
            return []
        if (
            chair_raw.get("selectionStrategy") == ChairStrategy.CONFIGURED.value
            and chair_raw.get("configuredChairId") in registry_ids
        ):
            return []

        legacy_list = section.get(COUNCIL_SOURCE.legacy_key)
        extraction = extract_chair(chair_raw, legacy_list if isinstance(legacy_list, list) else [])
        warnings = list(extraction.warnings)
        chair = extraction.chair
        if extraction.found:
            council_ids: dict[str, str] = {}
            for result in batch.results:
                if result.model is not None and result.original_id is not None:
                    council_ids.setdefault(result.original_id, result.model.id)
            rewrite = rewrite_chair(chair, IdMapping(council_ids).compose(final_mapping))
            chair = rewrite.chair
            warnings.extend(rewrite.warnings)
        section["chairModel"] = chair.to_settings()
        return warnings


def migrate_settings(
    settings: Any,
    *,
    existing_registry: ModelRegistry | dict[str, Any] | None = None,
    config: MigrationConfig | None = None,
) -> MigrationResult:
    return SettingsMigrator(config).migrate(settings, existing_registry=existing_registry)


__all__ = [
    "BackupReceipt",
    "BackupWriter",
    "MigrationError",
    "MigrationResult",
    "MigrationState",
    "MigrationStats",
    "SettingsMigrator",
    "default_settings",
    "migrate_settings",
]
