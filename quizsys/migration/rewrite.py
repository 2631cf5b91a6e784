"""Point references at canonical registry ids."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from quizsys.registry.mapping import IdMapping
from quizsys.registry.models import ChairConfig, ChairStrategy, ModelReference


@dataclass(frozen=True, slots=True)
class ChairRewrite:
    chair: ChairConfig
    warnings: tuple[str, ...] = ()


def _as_mapping(id_mapping: Mapping[str, str]) -> IdMapping:
    return id_mapping if isinstance(id_mapping, IdMapping) else IdMapping(id_mapping)


def rewrite_references(refs: Iterable[ModelReference], id_mapping: Mapping[str, str]) -> list[ModelReference]:
    """Map each reference; the first one per canonical id wins, unmapped ones are dropped."""

    mapping = _as_mapping(id_mapping)
    seen: set[str] = set()
    rewritten: list[ModelReference] = []
    for ref in refs:
        target = mapping.resolve(ref.model_id)
        if target is None or target in seen:
            continue
        seen.add(target)
        rewritten.append(ref.model_copy(update={"model_id": target}))
    return rewritten


def rewrite_chair(chair: ChairConfig, id_mapping: Mapping[str, str]) -> ChairRewrite:
    if chair.selection_strategy is not ChairStrategy.CONFIGURED or not chair.configured_chair_id:
        return ChairRewrite(chair=chair)

    target = _as_mapping(id_mapping).resolve(chair.configured_chair_id)
    if target is None:
        return ChairRewrite(
            chair=chair.model_copy(update={"configured_chair_id": None}),
            warnings=(
                f'Could not map configured chair "{chair.configured_chair_id}" to a migrated model. '
                "The chair model needs to be reconfigured.",
            ),
        )
    return ChairRewrite(chair=chair.model_copy(update={"configured_chair_id": target}))


def parse_references(raw: Any) -> list[ModelReference]:
    """Valid references from a raw ``models`` list; anything else is ignored."""

    if not isinstance(raw, list):
        return []
    refs: list[ModelReference] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            refs.append(ModelReference.model_validate(item))
        except ValidationError:
            continue
    return refs


def merge_references(existing: Iterable[ModelReference], migrated: Iterable[ModelReference]) -> list[ModelReference]:
    """Existing references first, then migrated ones, one per model id."""

    seen: set[str] = set()
    merged: list[ModelReference] = []
    for ref in (*existing, *migrated):
        if ref.model_id in seen:
            continue
        seen.add(ref.model_id)
        merged.append(ref)
    return merged


__all__ = [
    "ChairRewrite",
    "merge_references",
    "parse_references",
    "rewrite_chair",
    "rewrite_references",
]
