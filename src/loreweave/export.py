"""World export, re-import and debugging dumps."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any, Mapping

from loreweave.domain.enums import RelationshipStatus
from loreweave.domain.models import HardState, Metadata, Relationship, WorldExport
from loreweave.domain.schema import DomainSchema
from loreweave.graph.store import GraphStore
from loreweave.util.rng import Rng

if TYPE_CHECKING:
    from loreweave.engine.state import SimulationState


def build_export(state: "SimulationState") -> WorldExport:
    store = state.store
    return WorldExport(
        metadata=Metadata(
            tick=state.tick,
            epoch=state.epoch,
            entity_count=store.get_entity_count(),
            relationship_count=store.get_relationship_count(),
            current_era=state.current_era,
        ),
        hard_state=store.get_entities(),
        relationships=store.get_relationships(),
        pressures=state.pressures.snapshot(),
        history=list(state.history),
    )


def export_state(state: "SimulationState") -> dict:
    return build_export(state).to_dict()


def import_state(payload: Mapping[str, Any], domain: DomainSchema | None = None, rng: Rng | None = None) -> GraphStore:
    """Rebuild a store from an export, historical relationships included."""
    export = WorldExport.model_validate(dict(payload))
    store = GraphStore(domain=domain) if rng is None else GraphStore(domain=domain, rng=rng)
    for entity in export.hard_state:
        fields = entity.model_dump(exclude={"links"})
        store.create_entity(fields, entity.updated_at)
    for rel in export.relationships:
        restored = rel.model_copy()
        archived_at = restored.archived_at
        historical = restored.status == RelationshipStatus.HISTORICAL
        store.add_relationship(restored, restored.created_at)
        if historical:
            store.archive_relationship(restored.src, restored.dst, restored.kind, archived_at or restored.created_at)
    return store


def _entity_line(entity: HardState) -> str:
    tags = f" tags({', '.join(entity.tags)})" if entity.tags else ""
    return f"- {entity.name or '(unnamed)'} [{entity.id}] {entity.subtype}, {entity.status}, {entity.prominence}{tags}"


def _relationship_line(rel: Relationship) -> str:
    when = f"t{rel.created_at}"
    if rel.archived_at is not None:
        when += f"-t{rel.archived_at}"
    strength = f" s={rel.strength:.2f}" if rel.strength is not None else ""
    return f"- {rel.src} -{rel.kind}-> {rel.dst} ({when}){strength}"


def dump_world(state: "SimulationState", history_limit: int = 20) -> str:
    store = state.store
    lines: list[str] = []
    lines.append(f"World: {state.domain.name} tick {state.tick} epoch {state.epoch} era {state.current_era}")
    lines.append("Pressures:")
    for pressure_id, value in state.pressures.snapshot().items():
        lines.append(f"- {pressure_id}: {value:.1f}")
    kinds = Counter(entity.kind for entity in store.get_entities())
    for kind in sorted(kinds):
        lines.append("")
        lines.append(f"{kind.title()} ({kinds[kind]}):")
        for entity in store.get_entities_by_kind(kind):
            lines.append(_entity_line(entity))
    live = store.get_relationships(include_historical=False)
    lines.append("")
    lines.append(f"Relationships ({len(live)} live, {store.get_relationship_count() - len(live)} historical):")
    for rel in live:
        lines.append(_relationship_line(rel))
    lines.append("")
    lines.append("Recent history:")
    for event in state.history[-history_limit:]:
        lines.append(f"- t{event.tick} [{event.type}] {event.description}")
    return "\n".join(lines)
