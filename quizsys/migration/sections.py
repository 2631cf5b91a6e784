"""Typed defaults for the consensus and council settings sections.

Both sections are rebuilt during migration: every known option is checked
against its expected type and replaced by its default when it is missing or
malformed. Keys the models do not know about are carried over untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic.alias_generators import to_camel

from quizsys.registry.models import ChairConfig

DEFAULT_PHASE_TIMEOUT_MS = 60000


class SectionModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_when_malformed(
        cls,
        value: Any,
        handler: ValidatorFunctionWrapHandler,
        info: ValidationInfo,
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)

    def to_settings(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # Unknown keys keep their value even when it is null.
        data.update(self.model_extra or {})
        return data


class PhaseTimeouts(SectionModel):
    """Per-phase council timeouts in milliseconds."""

    parallel_query: int = Field(DEFAULT_PHASE_TIMEOUT_MS, strict=True)
    critique: int = Field(DEFAULT_PHASE_TIMEOUT_MS, strict=True)
    ranking: int = Field(DEFAULT_PHASE_TIMEOUT_MS, strict=True)
    synthesis: int = Field(DEFAULT_PHASE_TIMEOUT_MS, strict=True)


class PrivacyPreferences(SectionModel):
    privacy_warning_acknowledged: bool = Field(False, strict=True)
    privacy_warning_acknowledged_at: int | None = Field(None, strict=True)
    local_only_mode: bool = Field(False, strict=True)
    approved_providers: list[str] = Field(default_factory=list)

    @field_validator("approved_providers", mode="before")
    @classmethod
    def _keep_provider_names(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


class ConsensusSection(SectionModel):
    enabled: bool = Field(False, strict=True)
    models: list[Any] = Field(default_factory=list)
    min_models_required: int = Field(2, strict=True)
    consensus_threshold: float = Field(0.66, strict=True)
    max_iterations: int = Field(3, strict=True)
    enable_source_validation: bool = Field(False, strict=True)
    enable_caching: bool = Field(True, strict=True)
    show_audit_trail: bool = Field(True, strict=True)
    fallback_to_single_model: bool = Field(True, strict=True)
    privacy_preferences: PrivacyPreferences | None = None


class CouncilSection(SectionModel):
    enabled: bool = Field(False, strict=True)
    models: list[Any] = Field(default_factory=list)
    min_models_required: int = Field(2, strict=True)
    enable_critique: bool = Field(True, strict=True)
    enable_ranking: bool = Field(True, strict=True)
    show_debate_trail: bool = Field(True, strict=True)
    fallback_to_single_model: bool = Field(True, strict=True)
    enable_caching: bool = Field(True, strict=True)
    phase_timeouts: PhaseTimeouts = Field(default_factory=PhaseTimeouts)


def normalize_consensus_section(raw: dict[str, Any]) -> dict[str, Any]:
    return ConsensusSection.model_validate(raw).to_settings()


def normalize_council_section(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalise council options; a missing chair becomes the highest-ranked default."""

    section = CouncilSection.model_validate(raw).to_settings()
    if not isinstance(section.get("chairModel"), dict):
        section["chairModel"] = ChairConfig().to_settings()
    return section


__all__ = [
    "ConsensusSection",
    "CouncilSection",
    "DEFAULT_PHASE_TIMEOUT_MS",
    "PhaseTimeouts",
    "PrivacyPreferences",
    "normalize_consensus_section",
    "normalize_council_section",
]
