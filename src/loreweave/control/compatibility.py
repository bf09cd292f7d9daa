"""Relationship kinds that cannot coexist between the same pair."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from loreweave.domain.schema import DomainSchema
from loreweave.graph.view import GraphView


@dataclass
class CompatibilityMatrix:
    contradictions: dict[str, set[str]] = field(default_factory=dict)

    @classmethod
    def from_domain(cls, domain: DomainSchema) -> "CompatibilityMatrix":
        matrix = cls()
        for definition in domain.relationship_kinds:
            for other in definition.contradicts:
                matrix.add(definition.kind, other)
        return matrix

    def add(self, kind: str, other: str) -> None:
        self.contradictions.setdefault(kind, set()).add(other)
        self.contradictions.setdefault(other, set()).add(kind)

    def contradicts(self, kind: str, other: str) -> bool:
        return other in self.contradictions.get(kind, set())

    def conflicts(self, kind: str, existing_kinds: Iterable[str]) -> list[str]:
        return sorted({other for other in existing_kinds if self.contradicts(kind, other)})

    def compatible(self, view: GraphView, src: str, dst: str, kind: str) -> bool:
        """True when no live edge between the pair, either direction, contradicts `kind`."""
        existing = [
            rel.kind
            for rel in view.get_entity_relationships(src)
            if (rel.src == src and rel.dst == dst) or (rel.src == dst and rel.dst == src)
        ]
        return not self.conflicts(kind, existing)
