from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from quizsys.config import MigrationConfig
from quizsys.migration import MigrationState, SettingsMigrator, default_settings, migrate_settings
from quizsys.registry import ModelConfiguration, ModelRegistry, OllamaProviderConfig


@dataclass
class _Receipt:
    success: bool
    path: Path | None = None
    error: str | None = None


@dataclass
class _RecordingBackup:
    succeed: bool = True
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def create_backup(self, settings: dict[str, Any]) -> _Receipt:
        self.calls.append(settings)
        if self.succeed:
            return _Receipt(success=True, path=Path("/tmp/settings-backup-1.json"))
        return _Receipt(success=False, error="disk full")


class _ExplodingBackup:
    async def create_backup(self, settings: dict[str, Any]) -> _Receipt:
        raise OSError("read-only file system")


def _registry_entry(model_id: str, provider_config: dict[str, Any], name: str = "User model") -> dict[str, Any]:
    return {
        "id": model_id,
        "displayName": name,
        "isAutoGeneratedName": False,
        "providerConfig": provider_config,
        "createdAt": 1700000000000,
        "modifiedAt": 1700000000000,
    }


def test_concrete_openai_and_ollama_scenario(scenario_settings) -> None:
    result = migrate_settings(scenario_settings)

    assert result.success
    assert result.migrated
    assert result.state is MigrationState.DONE

    settings = result.settings
    models = settings["modelRegistry"]["models"]
    assert len(models) == 2
    by_generation = {entry["providerConfig"]["textGenerationModel"]: entry for entry in models.values()}
    openai_entry = by_generation["gpt-4"]
    ollama_entry = by_generation["llama2"]
    assert openai_entry["providerConfig"]["provider"] == "OPENAI"
    assert openai_entry["providerConfig"]["apiKey"] == "sk-key-a"
    assert ollama_entry["providerConfig"]["provider"] == "OLLAMA"
    assert settings["activeModelId"] == openai_entry["id"]

    refs = settings["consensusSettings"]["models"]
    assert refs == [
        {"modelId": openai_entry["id"], "weight": 1.2, "enabled": True},
        {"modelId": ollama_entry["id"], "weight": 1.0, "enabled": False},
    ]
    assert settings["consensusSettings"]["minAgreement"] == 2
    assert "consensusModels" not in settings["consensusSettings"]
    for legacy_key in ("provider", "openAIApiKey", "openAITextGenModel", "ollamaTextGenModel"):
        assert legacy_key not in settings
    assert settings["settingsVersion"] == 2

    assert result.stats.main_models_extracted == 1
    assert result.stats.consensus_models_extracted == 2
    assert result.stats.total_before_dedup == 3
    assert result.stats.total_after_dedup == 2
    assert result.stats.duplicates_removed == 1
    assert result.stats.extracted_per_source == {"main": 1, "consensus": 2, "council": 0}
    assert "Removed 1 duplicate model configurations" in result.warnings
    assert "provider" in result.removed_legacy_fields
    assert result.merges[0].origins == {"main", "consensus"}


def test_migration_is_idempotent(scenario_settings) -> None:
    first = migrate_settings(scenario_settings)
    second = migrate_settings(first.settings)

    assert second.migrated is False
    assert second.success is True
    assert second.state is MigrationState.NOT_NEEDED
    assert second.settings == first.settings
    assert second.settings is not first.settings


def test_idempotent_when_legacy_fields_are_kept(scenario_settings) -> None:
    migrator = SettingsMigrator(MigrationConfig(prune_legacy_fields=False))

    first = migrator.migrate(scenario_settings)
    second = migrator.migrate(first.settings)

    assert first.settings["provider"] == "OPENAI"
    assert first.removed_legacy_fields == ()
    assert second.migrated is False
    assert second.settings == first.settings


def test_input_is_never_mutated(scenario_settings) -> None:
    original = copy.deepcopy(scenario_settings)

    migrate_settings(scenario_settings)

    assert scenario_settings == original


def test_none_input_yields_default_settings() -> None:
    result = migrate_settings(None)

    assert result.success is True
    assert result.migrated is False
    assert result.settings == default_settings()
    assert migrate_settings(result.settings).migrated is False


def test_non_object_input_is_a_structural_error() -> None:
    result = migrate_settings(["unexpected"])

    assert result.success is False
    assert result.migrated is False
    assert result.settings == default_settings()
    assert result.errors == ["Settings must be an object, received list"]


def test_empty_object_migrates_to_defaults() -> None:
    result = migrate_settings({})

    assert result.success
    assert result.settings == default_settings()
    assert migrate_settings(result.settings).migrated is False


def test_council_partial_failure_is_isolated(council_settings) -> None:
    council_settings["councilSettings"]["councilModels"][0]["settings"]["openAITextGenModel"] = ""

    result = migrate_settings(council_settings)

    assert result.success is True
    assert result.stats.council_models_extracted == 2
    assert any("#1" in error and "council-a" in error for error in result.errors)
    refs = result.settings["councilSettings"]["models"]
    assert [ref["weight"] for ref in refs] == [0.8, 0.5]
    assert result.settings["councilSettings"]["phaseTimeouts"]["synthesis"] == 60000


def test_council_chair_is_rewritten_to_registry_id(council_settings) -> None:
    result = migrate_settings(council_settings)

    chair = result.settings["councilSettings"]["chairModel"]
    models = result.settings["modelRegistry"]["models"]
    assert chair["selectionStrategy"] == "configured"
    assert models[chair["configuredChairId"]]["providerConfig"]["textGenerationModel"] == "mistral"


def test_chair_pointing_at_failed_model_is_cleared(council_settings) -> None:
    council_settings["councilSettings"]["councilModels"][1]["settings"]["ollamaTextGenModel"] = ""

    result = migrate_settings(council_settings)

    chair = result.settings["councilSettings"]["chairModel"]
    assert result.success
    assert "configuredChairId" not in chair
    assert any("council-b" in warning and "chair" in warning for warning in result.warnings)


def test_chair_missing_from_council_list_warns(council_settings) -> None:
    council_settings["councilSettings"]["chairModel"]["configuredChairId"] = "ghost"

    result = migrate_settings(council_settings)

    assert "configuredChairId" not in result.settings["councilSettings"]["chairModel"]
    assert any('"ghost" not found in council models' in warning for warning in result.warnings)


def test_source_with_zero_successes_is_fatal(council_settings) -> None:
    for entry in council_settings["councilSettings"]["councilModels"]:
        entry["provider"] = "MYSTERY"
    original = copy.deepcopy(council_settings)

    result = migrate_settings(council_settings)

    assert result.success is False
    assert result.migrated is False
    assert result.state is MigrationState.FAILED
    assert result.settings == original
    assert len(result.errors) == 4
    assert "council" in result.errors[-1]


def test_main_failure_is_not_fatal(scenario_settings) -> None:
    scenario_settings["openAIApiKey"] = ""

    result = migrate_settings(scenario_settings)

    assert result.success is True
    assert result.stats.main_models_extracted == 0
    assert "Main model: OpenAI API key not found in settings" in result.errors
    assert result.settings["activeModelId"] is None
    assert len(result.settings["modelRegistry"]["models"]) == 2


def test_existing_registry_entries_are_reused(openai_fields) -> None:
    existing = _registry_entry(
        "user-gpt4",
        {
            "provider": "OPENAI",
            "apiKey": "sk-key-a",
            "baseUrl": "https://api.openai.com/v1/",
            "textGenerationModel": "GPT-4",
            "embeddingModel": "text-embedding-3-small",
        },
    )
    settings = {
        "provider": "OPENAI",
        **openai_fields(),
        "modelRegistry": {"models": {"user-gpt4": existing}, "version": 1},
    }

    result = migrate_settings(settings)

    assert result.success
    assert result.settings["activeModelId"] == "user-gpt4"
    assert result.settings["modelRegistry"]["models"] == {"user-gpt4": existing}
    assert result.stats.matched_existing == 1
    assert result.stats.new_models_added == 0
    assert result.registry_matches[0].existing_id == "user-gpt4"
    assert any("Reusing existing entries" in warning for warning in result.warnings)


def test_caller_supplied_registry_is_merged(scenario_settings) -> None:
    user_llama = ModelConfiguration(
        id="user-llama",
        display_name="Local llama",
        provider_config=OllamaProviderConfig(text_generation_model="llama2", embedding_model="nomic-embed-text"),
    )

    result = SettingsMigrator().migrate(
        scenario_settings,
        existing_registry=ModelRegistry(models={"user-llama": user_llama}),
    )

    models = result.settings["modelRegistry"]["models"]
    assert set(models) == {"user-llama", result.settings["activeModelId"]}
    assert result.settings["consensusSettings"]["models"][1]["modelId"] == "user-llama"


def test_corrupt_registry_entries_are_salvaged() -> None:
    good = _registry_entry(
        "good",
        {"provider": "OLLAMA", "baseUrl": "http://localhost:11434", "textGenerationModel": "llama2", "embeddingModel": ""},
    )
    settings = {"modelRegistry": {"models": {"good": good, "bad": {"id": ""}}, "version": 1}, "activeModelId": "good"}

    result = migrate_settings(settings)

    assert result.success
    assert result.settings["modelRegistry"]["models"] == {"good": good}
    assert result.settings["activeModelId"] == "good"
    assert 'Dropped invalid registry entry "bad"' in result.warnings


def test_existing_references_survive_partial_migration(legacy_entry, ollama_fields) -> None:
    settings = {
        "modelRegistry": {"models": {}, "version": 1},
        "activeModelId": None,
        "councilSettings": {
            "models": [{"modelId": "already-there", "weight": 2.0, "enabled": True}],
            "councilModels": [legacy_entry("c1", "OLLAMA", ollama_fields(), weight=0.4)],
        },
    }

    result = migrate_settings(settings)

    refs = result.settings["councilSettings"]["models"]
    assert refs[0] == {"modelId": "already-there", "weight": 2.0, "enabled": True}
    assert refs[1]["weight"] == 0.4


def test_version_marker_without_registry_still_repairs() -> None:
    result = migrate_settings({"settingsVersion": 2, "theme": "dark"})

    assert result.migrated is True
    assert result.settings["modelRegistry"] == {"models": {}, "version": 1}
    assert result.settings["theme"] == "dark"


def test_unexpected_error_returns_snapshot(scenario_settings, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(candidates):
        raise RuntimeError("boom")

    monkeypatch.setattr("quizsys.migration.orchestrator.dedupe", _boom)
    original = copy.deepcopy(scenario_settings)

    result = migrate_settings(scenario_settings)

    assert result.success is False
    assert result.state is MigrationState.FAILED
    assert result.settings == original
    assert "Migration failed: boom" in result.errors


def test_migrate_with_backup_writes_snapshot_first(scenario_settings) -> None:
    backup = _RecordingBackup()

    result = asyncio.run(SettingsMigrator().migrate_with_backup(scenario_settings, backup))

    assert result.success
    assert backup.calls == [scenario_settings]
    assert backup.calls[0] is not scenario_settings
    assert result.backup_path == Path("/tmp/settings-backup-1.json")


def test_backup_failure_aborts_before_mutation(scenario_settings) -> None:
    original = copy.deepcopy(scenario_settings)

    result = asyncio.run(SettingsMigrator().migrate_with_backup(scenario_settings, _RecordingBackup(succeed=False)))

    assert result.success is False
    assert result.migrated is False
    assert result.state is MigrationState.FAILED
    assert result.settings == original
    assert result.errors == ["Failed to create backup: disk full"]


def test_backup_exception_is_reported(scenario_settings) -> None:
    result = asyncio.run(SettingsMigrator().migrate_with_backup(scenario_settings, _ExplodingBackup()))

    assert result.success is False
    assert result.errors == ["Failed to create backup: read-only file system"]


def test_backup_skipped_when_nothing_to_migrate(scenario_settings) -> None:
    migrated = migrate_settings(scenario_settings).settings
    backup = _RecordingBackup()

    result = asyncio.run(SettingsMigrator().migrate_with_backup(migrated, backup))

    assert result.migrated is False
    assert backup.calls == []


def test_report_is_json_friendly(scenario_settings) -> None:
    report = migrate_settings(scenario_settings).to_report()

    assert report["state"] == "done"
    assert report["stats"]["extracted_per_source"]["consensus"] == 2
    assert report["merges"][0]["origins"] == ["consensus", "main"]
    assert "settings" not in report


def test_versioned_settings_with_leftover_blobs_are_migrated(legacy_entry, ollama_fields) -> None:
    settings = {
        "settingsVersion": 2,
        "modelRegistry": {"models": {}, "version": 1},
        "activeModelId": None,
        "consensusSettings": {"consensusModels": [legacy_entry("c1", "OLLAMA", ollama_fields(), weight=1.3)]},
    }

    result = migrate_settings(settings)

    assert result.migrated is True
    assert result.state is MigrationState.DONE
    models = result.settings["modelRegistry"]["models"]
    assert len(models) == 1
    (model_id,) = models
    assert result.settings["consensusSettings"]["models"] == [{"modelId": model_id, "weight": 1.3, "enabled": True}]
    assert "consensusModels" not in result.settings["consensusSettings"]
    assert migrate_settings(result.settings).migrated is False


def test_stale_root_fields_do_not_replace_active_model(openai_fields) -> None:
    existing = _registry_entry(
        "user-llama",
        {"provider": "OLLAMA", "baseUrl": "http://localhost:11434", "textGenerationModel": "llama2", "embeddingModel": ""},
    )
    settings = {
        "provider": "OPENAI",
        **openai_fields(),
        "modelRegistry": {"models": {"user-llama": existing}, "version": 1},
        "activeModelId": "user-llama",
    }

    result = migrate_settings(settings)

    assert result.success
    assert result.stats.main_models_extracted == 0
    assert result.settings["activeModelId"] == "user-llama"
    assert result.settings["modelRegistry"]["models"] == {"user-llama": existing}
    assert "provider" not in result.settings


def test_sections_are_normalised(council_settings) -> None:
    del council_settings["councilSettings"]["phaseTimeouts"]["synthesis"]
    council_settings["councilSettings"]["enableCritique"] = "sometimes"
    council_settings["consensusSettings"] = {"enabled": True, "consensusThreshold": None}

    result = migrate_settings(council_settings)

    council = result.settings["councilSettings"]
    assert council["phaseTimeouts"]["synthesis"] == 60000
    assert council["phaseTimeouts"]["critique"] == 60000
    assert council["enableCritique"] is True
    assert council["minModelsRequired"] == 2
    consensus = result.settings["consensusSettings"]
    assert consensus["enabled"] is True
    assert consensus["consensusThreshold"] == 0.66
    assert consensus["models"] == []
