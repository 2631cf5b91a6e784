"""Registry data models shared by the migration pipeline."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"

REGISTRY_SCHEMA_VERSION = 1


class Provider(str, Enum):
    """Model backends understood by the quiz generator."""

    OPENAI = "OPENAI"
    OLLAMA = "OLLAMA"

    @property
    def display_name(self) -> str:
        return "OpenAI" if self is Provider.OPENAI else "Ollama"


class SettingsVersion(IntEnum):
    """Structural version of a persisted settings object."""

    LEGACY = 0
    REGISTRY_V1 = 1
    REGISTRY_V2 = 2


CURRENT_SETTINGS_VERSION = SettingsVersion.REGISTRY_V2


class RegistryModel(BaseModel):
    """Immutable base for registry values stored with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_settings(self) -> dict[str, Any]:
        """Serialise to the JSON shape used in the settings file."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OpenAIProviderConfig(RegistryModel):
    provider: Literal["OPENAI"] = "OPENAI"
    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL
    text_generation_model: str
    embedding_model: str = ""


class OllamaProviderConfig(RegistryModel):
    provider: Literal["OLLAMA"] = "OLLAMA"
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    text_generation_model: str
    embedding_model: str = ""


ProviderConfig = Annotated[
    Union[OpenAIProviderConfig, OllamaProviderConfig],
    Field(discriminator="provider"),
]


class ModelConfiguration(RegistryModel):
    """A single model entry in the registry."""

    id: str = Field(..., min_length=1)
    display_name: str
    is_auto_generated_name: bool = False
    provider_config: ProviderConfig
    created_at: int | float = 0
    modified_at: int | float = 0


class ModelReference(RegistryModel):
    """Lightweight pointer used by consensus and council model lists."""

    model_id: str = Field(..., min_length=1)
    weight: float = 1.0
    enabled: bool = True


class ChairStrategy(str, Enum):
    CONFIGURED = "configured"
    HIGHEST_RANKED = "highest-ranked"
    ROTATING = "rotating"


class ChairConfig(RegistryModel):
    """How the council picks the model that synthesises its final answer."""

    selection_strategy: ChairStrategy = ChairStrategy.HIGHEST_RANKED
    configured_chair_id: str | None = None
    synthesis_weight: float = 1.0
    rotation_index: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _drop_inapplicable_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)
        strategy = values.get("selectionStrategy", values.get("selection_strategy"))
        if strategy not in (ChairStrategy.CONFIGURED, ChairStrategy.CONFIGURED.value):
            values.pop("configuredChairId", None)
            values.pop("configured_chair_id", None)
        if strategy not in (ChairStrategy.ROTATING, ChairStrategy.ROTATING.value):
            values.pop("rotationIndex", None)
            values.pop("rotation_index", None)
        return values


class ModelRegistry(RegistryModel):
    """Central store of unique model configurations keyed by id."""

    models: dict[str, ModelConfiguration] = Field(default_factory=dict)
    version: int = REGISTRY_SCHEMA_VERSION


def parse_registry(raw: Any) -> ModelRegistry | None:
    """Return the validated registry, or ``None`` when ``raw`` is not a registry."""

    if not isinstance(raw, dict):
        return None
    try:
        return ModelRegistry.model_validate(raw)
    except ValidationError:
        return None


def is_model_reference(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    try:
        ModelReference.model_validate(raw)
    except ValidationError:
        return False
    return True


def salvage_registry(raw: Any) -> tuple[ModelRegistry | None, dict[str, Any], list[str]]:
    """Keep the valid entries of a possibly damaged registry.

    Returns ``(registry, raw_entries, warnings)``. ``raw_entries`` holds the
    untouched JSON of every entry that validated so callers can persist the
    user's data verbatim. ``registry`` is ``None`` when ``raw`` is not even a
    mapping.
    """

    if not isinstance(raw, dict):
        return None, {}, []

    warnings: list[str] = []
    models_raw = raw.get("models")
    if not isinstance(models_raw, dict):
        if models_raw is not None:
            warnings.append("Existing model registry has no usable 'models' map; starting from an empty registry")
        models_raw = {}

    version = raw.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        version = REGISTRY_SCHEMA_VERSION

    valid: dict[str, ModelConfiguration] = {}
    kept_raw: dict[str, Any] = {}
    for key, entry in models_raw.items():
        try:
            model = ModelConfiguration.model_validate(entry)
        except ValidationError:
            warnings.append(f'Dropped invalid registry entry "{key}"')
            continue
        valid[key] = model
        kept_raw[key] = entry

    return ModelRegistry(models=valid, version=version), kept_raw, warnings


__all__ = [
    "CURRENT_SETTINGS_VERSION",
    "ChairConfig",
    "ChairStrategy",
    "DEFAULT_OLLAMA_BASE_URL",
    "DEFAULT_OPENAI_BASE_URL",
    "ModelConfiguration",
    "ModelReference",
    "ModelRegistry",
    "OllamaProviderConfig",
    "OpenAIProviderConfig",
    "Provider",
    "ProviderConfig",
    "REGISTRY_SCHEMA_VERSION",
    "RegistryModel",
    "SettingsVersion",
    "is_model_reference",
    "parse_registry",
    "salvage_registry",
]
