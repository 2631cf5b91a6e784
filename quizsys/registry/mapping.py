"""Immutable id lookup table threaded between migration stages."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class IdMapping(Mapping[str, str]):
    """Read-only ``original id -> canonical id`` table.

    Stages never mutate a mapping they receive; they build a new one and hand
    it on. Composition chains two lookups so the intra-batch and registry
    mappings stay separately testable.
    """

    _table: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_table", MappingProxyType(dict(self._table)))

    @classmethod
    def identity(cls, ids: list[str] | tuple[str, ...]) -> "IdMapping":
        return cls({model_id: model_id for model_id in ids})

    def __getitem__(self, key: str) -> str:
        return self._table[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def resolve(self, model_id: str | None) -> str | None:
        """Return the canonical id, or ``None`` when ``model_id`` is unknown."""

        if not model_id:
            return None
        return self._table.get(model_id)

    def compose(self, then: Mapping[str, str]) -> "IdMapping":
        """Apply ``self`` first, then ``then``; ids ``then`` does not know pass through."""

        composed = {source: then.get(target, target) for source, target in self._table.items()}
        for source, target in then.items():
            composed.setdefault(source, target)
        return IdMapping(composed)

    def canonical_ids(self) -> set[str]:
        return set(self._table.values())


__all__ = ["IdMapping"]
