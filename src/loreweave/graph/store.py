"""World graph store backed by a NetworkX adjacency index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import networkx as nx

from loreweave import config
from loreweave.domain import rules
from loreweave.domain.enums import Prominence, RelationshipStatus
from loreweave.domain.models import HardState, Relationship
from loreweave.domain.schema import DomainSchema
from loreweave.util.ids import IdAllocator
from loreweave.util.numbers import clamp
from loreweave.util.rng import Rng

_IMMUTABLE_FIELDS = {"id", "links", "created_at"}


@dataclass
class GraphStore:
    domain: Optional[DomainSchema] = None
    rng: Rng = field(default_factory=lambda: Rng(config.SEED))
    ids: IdAllocator = field(default_factory=IdAllocator)
    entities: dict[str, HardState] = field(default_factory=dict)
    relationships: list[Relationship] = field(default_factory=list)
    graph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph)
    _by_kind: dict[str, dict[str, None]] = field(default_factory=dict)
    _by_subtype: dict[tuple[str, str], dict[str, None]] = field(default_factory=dict)

    # Entities

    def get_entity(self, entity_id: str) -> HardState | None:
        return self.entities.get(entity_id)

    def has_entity(self, entity_id: str) -> bool:
        return entity_id in self.entities

    def get_entities(self) -> list[HardState]:
        return list(self.entities.values())

    def get_entities_by_kind(self, kind: str) -> list[HardState]:
        return [self.entities[entity_id] for entity_id in self._by_kind.get(kind, {})]

    def get_entity_count(self, kind: str | None = None, subtype: str | None = None) -> int:
        if kind is None:
            if subtype is None:
                return len(self.entities)
            return sum(1 for entity in self.entities.values() if entity.subtype == subtype)
        if subtype is None:
            return len(self._by_kind.get(kind, {}))
        return len(self._by_subtype.get((kind, subtype), {}))

    def find_entities(
        self,
        kind: str | None = None,
        subtype: str | None = None,
        status: str | None = None,
        tags: Iterable[str] | None = None,
        prominence: Prominence | str | None = None,
        culture: str | None = None,
        exclude: Iterable[str] | None = None,
    ) -> list[HardState]:
        if kind is not None and subtype is not None:
            candidates: Iterable[str] = self._by_subtype.get((kind, subtype), {})
        elif kind is not None:
            candidates = self._by_kind.get(kind, {})
        else:
            candidates = self.entities
        required_tags = list(tags or [])
        excluded = set(exclude or [])
        matches: list[HardState] = []
        for entity_id in candidates:
            entity = self.entities[entity_id]
            if entity_id in excluded:
                continue
            if subtype is not None and entity.subtype != subtype:
                continue
            if status is not None and entity.status != status:
                continue
            if prominence is not None and entity.prominence != prominence:
                continue
            if culture is not None and entity.culture != culture:
                continue
            if any(tag not in entity.tags for tag in required_tags):
                continue
            matches.append(entity)
        return matches

    def create_entity(self, partial: Mapping[str, Any], tick: int = 0) -> str:
        fields = dict(partial)
        kind = fields.get("kind")
        if not kind:
            raise ValueError("entities require a kind")
        if "subtype" not in fields:
            raise ValueError("entities require a subtype")
        if not fields.get("status"):
            if self.domain is None:
                raise ValueError("entities require a status when no domain is attached")
            fields["status"] = self.domain.default_status(kind)
        entity_id = fields.pop("id", None) or self.ids.next_id(kind)
        if entity_id in self.entities:
            raise ValueError(f"Duplicate entity id: {entity_id}")
        self.ids.observe(entity_id)
        fields.pop("links", None)
        fields.setdefault("created_at", tick)
        fields["updated_at"] = tick
        fields["tags"] = list(dict.fromkeys(fields.get("tags") or []))
        entity = HardState.model_validate({"id": entity_id, **fields})
        self.entities[entity_id] = entity
        self._index(entity)
        self.graph.add_node(entity_id, kind=entity.kind, subtype=entity.subtype)
        return entity_id

    def update_entity(self, entity_id: str, changes: Mapping[str, Any], tick: int | None = None) -> bool:
        entity = self.entities.get(entity_id)
        if entity is None:
            return False
        # Every change is checked before anything is touched, so a rejected update leaves the entity indexed.
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            if key in _IMMUTABLE_FIELDS:
                raise ValueError(f"Field {key!r} cannot be updated")
            if key not in HardState.model_fields:
                raise KeyError(f"Unknown entity field: {key}")
            if key == "prominence":
                value = Prominence(value)
            elif key == "tags":
                value = list(dict.fromkeys(value))
            normalized[key] = value
        reindex = "kind" in normalized or "subtype" in normalized
        if reindex:
            self._unindex(entity)
        for key, value in normalized.items():
            setattr(entity, key, value)
        if reindex:
            self._index(entity)
            self.graph.nodes[entity_id].update(kind=entity.kind, subtype=entity.subtype)
        if tick is not None:
            entity.updated_at = tick
        return True

    def delete_entity(self, entity_id: str) -> bool:
        entity = self.entities.pop(entity_id, None)
        if entity is None:
            return False
        self._unindex(entity)
        self.graph.remove_node(entity_id)
        self.relationships = [rel for rel in self.relationships if not rel.touches(entity_id)]
        for other in self.entities.values():
            other.links = [link for link in other.links if not link.touches(entity_id)]
        return True

    # Relationships

    def get_relationships(self, include_historical: bool = True) -> list[Relationship]:
        if include_historical:
            return list(self.relationships)
        return [rel for rel in self.relationships if rel.is_active]

    def get_relationship_count(self, include_historical: bool = True) -> int:
        if include_historical:
            return len(self.relationships)
        return self.graph.number_of_edges()

    def find_relationships(
        self,
        kind: str | None = None,
        src: str | None = None,
        dst: str | None = None,
        status: RelationshipStatus | str | None = None,
    ) -> list[Relationship]:
        return [
            rel
            for rel in self.relationships
            if (kind is None or rel.kind == kind)
            and (src is None or rel.src == src)
            and (dst is None or rel.dst == dst)
            and (status is None or rel.status == status)
        ]

    def get_entity_relationships(self, entity_id: str, include_historical: bool = False) -> list[Relationship]:
        entity = self.entities.get(entity_id)
        if entity is None:
            return []
        if include_historical:
            return list(entity.links)
        return entity.live_links()

    def get_connected_entities(self, entity_id: str, relation_kind: str | None = None) -> list[HardState]:
        if entity_id not in self.graph:
            return []
        neighbors: dict[str, None] = {}
        for _, other, key in self.graph.out_edges(entity_id, keys=True):
            if relation_kind is None or key == relation_kind:
                neighbors[other] = None
        for other, _, key in self.graph.in_edges(entity_id, keys=True):
            if relation_kind is None or key == relation_kind:
                neighbors[other] = None
        return [self.entities[other] for other in neighbors]

    def has_relationship(self, src: str, dst: str, kind: str | None = None, directed: bool = False) -> bool:
        """Check for a live edge src->dst, and dst->src unless `directed`."""
        if self._has_edge(src, dst, kind):
            return True
        return not directed and self._has_edge(dst, src, kind)

    def live_degree(self, entity_id: str) -> int:
        if entity_id not in self.graph:
            return 0
        return self.graph.degree(entity_id)

    def add_relationship(self, rel: Relationship | Mapping[str, Any], tick: int = 0) -> bool:
        relationship = rel if isinstance(rel, Relationship) else Relationship.model_validate(dict(rel))
        rules.ensure_entity_exists(relationship.src, self.entities)
        rules.ensure_entity_exists(relationship.dst, self.entities)
        if self._has_edge(relationship.src, relationship.dst, relationship.kind):
            return False
        self._apply_vocabulary_defaults(relationship)
        rules.validate_unit_interval(relationship.strength, "strength")
        rules.validate_unit_interval(relationship.distance, "distance")
        relationship.created_at = tick
        relationship.status = RelationshipStatus.ACTIVE
        relationship.archived_at = None
        self.relationships.append(relationship)
        self.graph.add_edge(relationship.src, relationship.dst, key=relationship.kind, rel=relationship)
        self.entities[relationship.src].links.append(relationship)
        if relationship.dst != relationship.src:
            self.entities[relationship.dst].links.append(relationship)
        return True

    def archive_relationship(self, src: str, dst: str, kind: str, tick: int = 0) -> bool:
        if not self._has_edge(src, dst, kind):
            return False
        relationship: Relationship = self.graph.edges[src, dst, kind]["rel"]
        relationship.status = RelationshipStatus.HISTORICAL
        relationship.archived_at = tick
        self.graph.remove_edge(src, dst, key=kind)
        return True

    def archive_entity_relationships(self, entity_id: str, tick: int = 0) -> list[Relationship]:
        archived = self.get_entity_relationships(entity_id)
        for rel in archived:
            self.archive_relationship(rel.src, rel.dst, rel.kind, tick)
        return archived

    def modify_relationship_strength(self, src: str, dst: str, kind: str, delta: float, tick: int = 0) -> bool:
        if not self._has_edge(src, dst, kind):
            return False
        relationship: Relationship = self.graph.edges[src, dst, kind]["rel"]
        base = relationship.strength if relationship.strength is not None else config.DEFAULT_RELATIONSHIP_STRENGTH
        relationship.strength = clamp(base + delta, 0.0, 1.0)
        return True

    def get_live_relationship(self, src: str, dst: str, kind: str) -> Relationship | None:
        if not self._has_edge(src, dst, kind):
            return None
        return self.graph.edges[src, dst, kind]["rel"]

    # Internals

    def _has_edge(self, src: str, dst: str, kind: str | None) -> bool:
        if kind is None:
            return self.graph.has_edge(src, dst)
        return self.graph.has_edge(src, dst, key=kind)

    def _apply_vocabulary_defaults(self, relationship: Relationship) -> None:
        definition = self.domain.relationship_kind(relationship.kind) if self.domain else None
        if definition is None:
            if relationship.strength is None:
                relationship.strength = config.DEFAULT_RELATIONSHIP_STRENGTH
            return
        if relationship.strength is None:
            relationship.strength = definition.strength
        if relationship.category is None:
            relationship.category = definition.category.value
        if relationship.distance is None and definition.distance_range is not None:
            low, high = definition.distance_range
            relationship.distance = round(self.rng.uniform(low, high), 3)

    def _index(self, entity: HardState) -> None:
        self._by_kind.setdefault(entity.kind, {})[entity.id] = None
        self._by_subtype.setdefault((entity.kind, entity.subtype), {})[entity.id] = None

    def _unindex(self, entity: HardState) -> None:
        self._by_kind.get(entity.kind, {}).pop(entity.id, None)
        self._by_subtype.get((entity.kind, entity.subtype), {}).pop(entity.id, None)
