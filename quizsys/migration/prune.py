"""Remove the fields the registry layout replaces."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

LEGACY_ROOT_FIELDS: tuple[str, ...] = (
    "provider",
    "openAIApiKey",
    "openAIBaseURL",
    "openAITextGenModel",
    "openAIEmbeddingModel",
    "ollamaBaseURL",
    "ollamaTextGenModel",
    "ollamaEmbeddingModel",
)
LEGACY_SECTION_FIELDS: tuple[tuple[str, str], ...] = (
    ("consensusSettings", "consensusModels"),
    ("councilSettings", "councilModels"),
)


@dataclass(frozen=True, slots=True)
class PruneResult:
    settings: dict[str, Any]
    removed: tuple[str, ...]


def prune_legacy_fields(settings: dict[str, Any]) -> PruneResult:
    """Return a copy of ``settings`` without legacy fields, plus the dotted paths dropped."""

    pruned = copy.deepcopy(settings)
    removed: list[str] = []

    for key in LEGACY_ROOT_FIELDS:
        if key in pruned:
            del pruned[key]
            removed.append(key)

    for section_key, field_key in LEGACY_SECTION_FIELDS:
        section = pruned.get(section_key)
        if isinstance(section, dict) and field_key in section:
            del section[field_key]
            removed.append(f"{section_key}.{field_key}")

    return PruneResult(settings=pruned, removed=tuple(removed))


__all__ = ["LEGACY_ROOT_FIELDS", "LEGACY_SECTION_FIELDS", "PruneResult", "prune_legacy_fields"]
