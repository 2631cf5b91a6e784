"""Reconcile deduplicated candidates with models already in the registry."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from quizsys.registry.fingerprint import fingerprint
from quizsys.registry.mapping import IdMapping
from quizsys.registry.models import ModelConfiguration, ModelRegistry


@dataclass(frozen=True, slots=True)
class MatchDetail:
    """One candidate that resolved to an existing registry entry."""

    candidate_id: str
    existing_id: str
    existing_name: str


@dataclass(frozen=True, slots=True)
class MatchStats:
    total_processed: int
    matched_existing: int
    new_models: int


@dataclass(frozen=True, slots=True)
class RegistryMatch:
    to_insert: tuple[ModelConfiguration, ...]
    id_mapping: IdMapping
    stats: MatchStats
    details: tuple[MatchDetail, ...]


def _fingerprint_index(registry: ModelRegistry | None) -> dict[str, ModelConfiguration]:
    index: dict[str, ModelConfiguration] = {}
    if registry is None:
        return index
    for model in registry.models.values():
        index.setdefault(fingerprint(model), model)
    return index


def match_against_registry(
    candidates: Iterable[ModelConfiguration],
    registry: ModelRegistry | None,
) -> RegistryMatch:
    """Reuse existing ids for known fingerprints and queue the rest for insertion."""

    index = _fingerprint_index(registry)
    to_insert: list[ModelConfiguration] = []
    inserted: dict[str, str] = {}
    mapping: dict[str, str] = {}
    details: list[MatchDetail] = []
    processed = 0

    for model in candidates:
        processed += 1
        key = fingerprint(model)
        existing = index.get(key)
        if existing is not None:
            mapping[model.id] = existing.id
            details.append(MatchDetail(model.id, existing.id, existing.display_name))
            logger.debug("Reusing registry model {} for {}", existing.id, model.id)
            continue
        if key in inserted:
            mapping[model.id] = inserted[key]
            continue
        inserted[key] = model.id
        mapping[model.id] = model.id
        to_insert.append(model)

    stats = MatchStats(
        total_processed=processed,
        matched_existing=len(details),
        new_models=len(to_insert),
    )
    return RegistryMatch(
        to_insert=tuple(to_insert),
        id_mapping=IdMapping(mapping),
        stats=stats,
        details=tuple(details),
    )


__all__ = ["MatchDetail", "MatchStats", "RegistryMatch", "match_against_registry"]
