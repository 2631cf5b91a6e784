"""Collapse functionally identical candidates into one canonical model."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from quizsys.registry.fingerprint import fingerprint
from quizsys.registry.mapping import IdMapping
from quizsys.registry.models import ModelConfiguration


@dataclass(frozen=True, slots=True)
class Candidate:
    """An extracted model plus where it came from."""

    model: ModelConfiguration
    origin: str
    original_id: str | None = None
    weight: float | None = None
    enabled: bool | None = None


@dataclass(slots=True)
class MergeInfo:
    """Audit entry for one fingerprint that had more than one candidate."""

    fingerprint: str
    canonical_id: str
    canonical_name: str
    merged_ids: list[str] = field(default_factory=list)
    merged_names: list[str] = field(default_factory=list)
    origins: set[str] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class DedupStats:
    total_before: int
    total_after: int
    duplicates_removed: int


@dataclass(frozen=True, slots=True)
class DedupResult:
    unique_models: tuple[ModelConfiguration, ...]
    id_mapping: IdMapping
    merges: tuple[MergeInfo, ...]
    stats: DedupStats


def dedupe(candidates: Iterable[Candidate]) -> DedupResult:
    """Keep the first candidate per fingerprint; map every id to its survivor."""

    canonical_by_fp: dict[str, ModelConfiguration] = {}
    merges_by_fp: dict[str, MergeInfo] = {}
    mapping: dict[str, str] = {}
    total = 0

    for candidate in candidates:
        total += 1
        model = candidate.model
        key = fingerprint(model)
        canonical = canonical_by_fp.get(key)
        if canonical is None:
            canonical_by_fp[key] = model
            mapping[model.id] = model.id
            merges_by_fp[key] = MergeInfo(
                fingerprint=key,
                canonical_id=model.id,
                canonical_name=model.display_name,
                origins={candidate.origin},
            )
            continue

        mapping[model.id] = canonical.id
        merge = merges_by_fp[key]
        merge.merged_ids.append(model.id)
        merge.merged_names.append(model.display_name)
        merge.origins.add(candidate.origin)
        logger.debug("Merged {} into {} ({})", model.id, canonical.id, canonical.display_name)

    unique = tuple(canonical_by_fp.values())
    merges = tuple(merge for merge in merges_by_fp.values() if merge.merged_ids)
    stats = DedupStats(
        total_before=total,
        total_after=len(unique),
        duplicates_removed=total - len(unique),
    )
    return DedupResult(unique_models=unique, id_mapping=IdMapping(mapping), merges=merges, stats=stats)


__all__ = ["Candidate", "DedupResult", "DedupStats", "MergeInfo", "dedupe"]
