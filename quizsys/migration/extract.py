"""Pull model configurations out of the legacy settings layout.

Each routine takes raw, untyped JSON and never raises for malformed input:
problems are reported as warnings (degraded but usable) or errors (this one
candidate could not be migrated).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from quizsys.registry.models import (
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OPENAI_BASE_URL,
    ChairConfig,
    ChairStrategy,
    ModelConfiguration,
    OllamaProviderConfig,
    OpenAIProviderConfig,
    Provider,
    ProviderConfig,
)
from quizsys.registry.naming import ModelIdFactory, migration_display_name, now_ms

MAIN_SOURCE = "main"
CONSENSUS_SOURCE = "consensus"
COUNCIL_SOURCE = "council"

_EMBEDDING_HINT = "short/long answer evaluation may not work correctly"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """One candidate model (or the reason there is none) from one legacy slot."""

    source: str
    model: ModelConfiguration | None
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    original_weight: float | None = None
    original_enabled: bool | None = None
    original_id: str | None = None

    @property
    def success(self) -> bool:
        return self.model is not None


@dataclass(frozen=True, slots=True)
class BatchExtraction:
    """Results for every entry of a consensus or council legacy list."""

    source: str
    results: tuple[ExtractionResult, ...]

    @property
    def models(self) -> list[ModelConfiguration]:
        return [result.model for result in self.results if result.model is not None]

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failure_count(self) -> int:
        return self.total_count - self.success_count

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def warnings(self) -> list[str]:
        return [warning for result in self.results for warning in result.warnings]

    @property
    def errors(self) -> list[str]:
        return [error for result in self.results for error in result.errors]

    def model_id_for(self, original_id: str) -> str | None:
        """Id given to the successfully extracted entry whose legacy id is ``original_id``."""

        for result in self.results:
            if result.original_id == original_id and result.model is not None:
                return result.model.id
        return None


@dataclass(frozen=True, slots=True)
class ChairExtraction:
    chair: ChairConfig
    legacy_chair_id: str | None
    found: bool
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class _LegacyEntry:
    id: str
    provider: str
    settings: dict[str, Any]
    weight: float
    enabled: bool


def _string_field(fields: dict[str, Any], key: str, default: str = "") -> str:
    value = fields.get(key)
    return value if isinstance(value, str) else default


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_legacy_entry(raw: Any) -> _LegacyEntry | None:
    if not isinstance(raw, dict):
        return None
    if not (
        isinstance(raw.get("id"), str)
        and isinstance(raw.get("provider"), str)
        and isinstance(raw.get("settings"), dict)
        and _is_number(raw.get("weight"))
        and isinstance(raw.get("enabled"), bool)
    ):
        return None
    return _LegacyEntry(
        id=raw["id"],
        provider=raw["provider"],
        settings=raw["settings"],
        weight=float(raw["weight"]),
        enabled=raw["enabled"],
    )


def _parse_provider(value: Any) -> Provider | None:
    try:
        return Provider(value)
    except ValueError:
        return None


def extract_provider_config(
    fields: dict[str, Any],
    provider: Provider,
    *,
    location: str = "settings",
) -> tuple[ProviderConfig | None, list[str]]:
    """Read the old flat provider fields; returns ``(config, errors)``."""

    errors: list[str] = []
    if provider is Provider.OPENAI:
        api_key = _string_field(fields, "openAIApiKey")
        base_url = _string_field(fields, "openAIBaseURL") or DEFAULT_OPENAI_BASE_URL
        generation_model = _string_field(fields, "openAITextGenModel")
        embedding_model = _string_field(fields, "openAIEmbeddingModel")
        if not api_key:
            errors.append(f"OpenAI API key not found in {location}")
        if not generation_model:
            errors.append(f"OpenAI text generation model not found in {location}")
        if errors:
            return None, errors
        return (
            OpenAIProviderConfig(
                api_key=api_key,
                base_url=base_url,
                text_generation_model=generation_model,
                embedding_model=embedding_model,
            ),
            errors,
        )

    base_url = _string_field(fields, "ollamaBaseURL") or DEFAULT_OLLAMA_BASE_URL
    generation_model = _string_field(fields, "ollamaTextGenModel")
    embedding_model = _string_field(fields, "ollamaEmbeddingModel")
    if not generation_model:
        return None, [f"Ollama text generation model not found in {location}"]
    return (
        OllamaProviderConfig(
            base_url=base_url,
            text_generation_model=generation_model,
            embedding_model=embedding_model,
        ),
        errors,
    )


def _build_model(
    config: ProviderConfig,
    provider: Provider,
    *,
    source: str,
    ids: ModelIdFactory,
    index: int | None = None,
) -> ModelConfiguration:
    timestamp = now_ms()
    return ModelConfiguration(
        id=ids.new_id(source),
        display_name=migration_display_name(provider, config.base_url, source=source, index=index),
        is_auto_generated_name=True,
        provider_config=config,
        created_at=timestamp,
        modified_at=timestamp,
    )


def extract_main_model(settings: Any, *, ids: ModelIdFactory | None = None) -> ExtractionResult:
    """Turn the root-level ``provider``/``openAI*``/``ollama*`` fields into one model."""

    if not isinstance(settings, dict):
        return ExtractionResult(MAIN_SOURCE, None, errors=("Settings is null or not an object",))

    raw_provider = settings.get("provider")
    if raw_provider is None:
        return ExtractionResult(
            MAIN_SOURCE,
            None,
            errors=("No provider field found in settings - cannot extract main model",),
        )
    provider = _parse_provider(raw_provider)
    if provider is None:
        return ExtractionResult(MAIN_SOURCE, None, errors=(f"Unknown provider: {raw_provider}",))

    config, errors = extract_provider_config(settings, provider)
    if config is None:
        return ExtractionResult(MAIN_SOURCE, None, errors=tuple(f"Main model: {error}" for error in errors))

    warnings: list[str] = []
    if not config.embedding_model:
        warnings.append(f"Main model: embedding model not configured - {_EMBEDDING_HINT}")

    model = _build_model(config, provider, source=MAIN_SOURCE, ids=ids or ModelIdFactory())
    logger.debug("Extracted main model {} ({})", model.id, model.display_name)
    return ExtractionResult(MAIN_SOURCE, model, warnings=tuple(warnings))


def extract_list_model(
    entry: Any,
    source: str,
    *,
    index: int | None = None,
    ids: ModelIdFactory | None = None,
) -> ExtractionResult:
    """Extract one consensus/council entry carrying an embedded settings blob."""

    label = source.capitalize()
    position = f"{label} model #{index}" if index is not None else f"{label} model"

    legacy = _as_legacy_entry(entry)
    if legacy is None:
        return ExtractionResult(
            source,
            None,
            errors=(f"{position}: not a valid legacy {source} model config",),
        )

    context = dict(
        original_weight=legacy.weight,
        original_enabled=legacy.enabled,
        original_id=legacy.id,
    )
    where = f'{position} ("{legacy.id}")'

    provider = _parse_provider(legacy.provider)
    if provider is None:
        return ExtractionResult(
            source,
            None,
            errors=(f"{where}: unknown provider {legacy.provider}",),
            **context,
        )

    config, errors = extract_provider_config(legacy.settings, provider, location="embedded settings")
    if config is None:
        return ExtractionResult(source, None, errors=tuple(f"{where}: {error}" for error in errors), **context)

    warnings: list[str] = []
    if not config.embedding_model:
        warnings.append(f'{label} model "{legacy.id}": embedding model not configured - {_EMBEDDING_HINT}')

    model = _build_model(config, provider, source=source, ids=ids or ModelIdFactory(), index=index)
    return ExtractionResult(source, model, warnings=tuple(warnings), **context)


def extract_all_list_models(
    entries: list[Any],
    source: str,
    *,
    ids: ModelIdFactory | None = None,
) -> BatchExtraction:
    """Extract every entry; one malformed entry never hides the others."""

    ids = ids or ModelIdFactory()
    results = tuple(
        extract_list_model(entry, source, index=position, ids=ids)
        for position, entry in enumerate(entries, start=1)
    )
    batch = BatchExtraction(source=source, results=results)
    logger.debug(
        "Extracted {}/{} {} models",
        batch.success_count,
        batch.total_count,
        source,
    )
    return batch


def extract_consensus_models(entries: list[Any], *, ids: ModelIdFactory | None = None) -> BatchExtraction:
    return extract_all_list_models(entries, CONSENSUS_SOURCE, ids=ids)


def extract_council_models(entries: list[Any], *, ids: ModelIdFactory | None = None) -> BatchExtraction:
    return extract_all_list_models(entries, COUNCIL_SOURCE, ids=ids)


def extract_chair(chair_raw: Any, council_entries: list[Any]) -> ChairExtraction:
    """Read the legacy chair settings and locate a configured chair in the council list.

    The returned chair still carries the *legacy* id in ``configured_chair_id``;
    the reference rewriter maps it to a registry id later.
    """

    if not isinstance(chair_raw, dict):
        return ChairExtraction(chair=ChairConfig(), legacy_chair_id=None, found=False)

    warnings: list[str] = []
    synthesis_weight = chair_raw.get("synthesisWeight")
    if not _is_number(synthesis_weight):
        synthesis_weight = 1.0
    rotation_index = chair_raw.get("rotationIndex")
    if not isinstance(rotation_index, int) or isinstance(rotation_index, bool):
        rotation_index = None

    raw_strategy = chair_raw.get("selectionStrategy")
    try:
        strategy = ChairStrategy(raw_strategy)
    except ValueError:
        warnings.append(
            f'Invalid or missing chair selection strategy: "{raw_strategy}", defaulting to "highest-ranked"'
        )
        strategy = ChairStrategy.HIGHEST_RANKED

    chair_kwargs: dict[str, Any] = {
        "selection_strategy": strategy,
        "synthesis_weight": float(synthesis_weight),
        "rotation_index": rotation_index,
    }
    if strategy is not ChairStrategy.CONFIGURED:
        return ChairExtraction(
            chair=ChairConfig(**chair_kwargs),
            legacy_chair_id=None,
            found=False,
            warnings=tuple(warnings),
        )

    legacy_id = chair_raw.get("configuredChairId")
    if not isinstance(legacy_id, str) or not legacy_id.strip():
        warnings.append(
            'Chair selection strategy is "configured" but no configuredChairId is specified; '
            "the chair model needs to be reconfigured"
        )
        return ChairExtraction(chair=ChairConfig(**chair_kwargs), legacy_chair_id=None, found=False, warnings=tuple(warnings))

    found = any(isinstance(entry, dict) and entry.get("id") == legacy_id for entry in council_entries)
    if not found:
        warnings.append(
            f'Configured chair model "{legacy_id}" not found in council models. '
            "After migration, you may need to reconfigure the chair model."
        )
        return ChairExtraction(chair=ChairConfig(**chair_kwargs), legacy_chair_id=legacy_id, found=False, warnings=tuple(warnings))

    return ChairExtraction(
        chair=ChairConfig(configured_chair_id=legacy_id, **chair_kwargs),
        legacy_chair_id=legacy_id,
        found=True,
        warnings=tuple(warnings),
    )


__all__ = [
    "BatchExtraction",
    "CONSENSUS_SOURCE",
    "COUNCIL_SOURCE",
    "ChairExtraction",
    "ExtractionResult",
    "MAIN_SOURCE",
    "extract_all_list_models",
    "extract_chair",
    "extract_consensus_models",
    "extract_council_models",
    "extract_list_model",
    "extract_main_model",
    "extract_provider_config",
]
