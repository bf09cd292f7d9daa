"""Query helpers over the world graph."""

from __future__ import annotations

from typing import Iterable

from loreweave.domain.enums import FactionStance, Prominence
from loreweave.domain.models import HardState
from loreweave.domain.rules import prominence_rank
from loreweave.graph.view import GraphView

MEMBERSHIP_KINDS = ("member_of", "leader_of")
HOSTILE_KINDS = ("at_war_with", "enemy_of")
ALLIANCE_KINDS = ("allied_with",)


def related(
    view: GraphView,
    entity_id: str,
    kind: str,
    direction: str = "src",
    status: str | None = None,
) -> list[HardState]:
    """Entities joined to `entity_id` by a live `kind` edge.

    direction "src" follows outgoing edges, "dst" incoming ones, "any" both.
    """
    results: dict[str, HardState] = {}
    for rel in view.get_entity_relationships(entity_id):
        if rel.kind != kind:
            continue
        if direction == "src" and rel.src != entity_id:
            continue
        if direction == "dst" and rel.dst != entity_id:
            continue
        other = view.get_entity(rel.other(entity_id))
        if other is None:
            continue
        if status is not None and other.status != status:
            continue
        results[other.id] = other
    return list(results.values())


def location_of(view: GraphView, entity_id: str, kind: str = "resident_of") -> HardState | None:
    places = related(view, entity_id, kind, "src")
    return places[0] if places else None


def factions_of(view: GraphView, entity_id: str, kinds: Iterable[str] = ("member_of",)) -> list[HardState]:
    found: dict[str, HardState] = {}
    for kind in kinds:
        for faction in related(view, entity_id, kind, "src"):
            found[faction.id] = faction
    return list(found.values())


def faction_relationship(view: GraphView, left: list[HardState], right: list[HardState]) -> FactionStance:
    """Relationship between two sets of factions: enemy beats allied beats neutral."""
    allied = False
    for faction in left:
        for other in right:
            if any(view.has_relationship(faction.id, other.id, kind) for kind in HOSTILE_KINDS):
                return FactionStance.ENEMY
            if any(view.has_relationship(faction.id, other.id, kind) for kind in ALLIANCE_KINDS):
                allied = True
    return FactionStance.ALLIED if allied else FactionStance.NEUTRAL


def connection_weight(link_count: int) -> float:
    """Formation weight that favors isolated entities over hubs."""
    if link_count == 0:
        return 3.0
    if link_count <= 2:
        return 2.0
    if link_count <= 5:
        return 1.0
    if link_count <= 10:
        return 0.5
    return 0.2


def at_least_prominence(entities: Iterable[HardState], minimum: Prominence | str) -> list[HardState]:
    floor = prominence_rank(minimum)
    return [entity for entity in entities if prominence_rank(entity.prominence) >= floor]


def has_any_tag(entity: HardState, tags: Iterable[str]) -> bool:
    return any(tag in entity.tags for tag in tags)
