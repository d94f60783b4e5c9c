from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable


@dataclass(frozen=True)
class AccessSet:
    """Virtual textures read and written by one file (or one merged pass)."""

    reads: FrozenSet[str] = field(default_factory=frozenset)
    writes: FrozenSet[str] = field(default_factory=frozenset)

    def union(self, other: "AccessSet") -> "AccessSet":
        return AccessSet(reads=self.reads | other.reads, writes=self.writes | other.writes)

    def touches(self, name: str) -> bool:
        return name in self.reads or name in self.writes

    def names(self) -> FrozenSet[str]:
        return self.reads | self.writes


def merge_accesses(items: Iterable[AccessSet]) -> AccessSet:
    out = AccessSet()
    for a in items:
        out = out.union(a)
    return out
