"""The single choke point through which template and system output reaches the graph."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable

from loreweave.domain.enums import HistoryEventType
from loreweave.domain.models import Relationship, StateChange
from loreweave.domain.refs import EntityRef, Pending, resolve_ref
from loreweave.engine.state import SimulationState
from loreweave.naming import Naming
from loreweave.systems.base import SystemResult
from loreweave.templates.base import ArchiveRequest, EntityModification, TemplateResult

logger = logging.getLogger(__name__)


@dataclass
class CommitReport:
    entities_created: list[str] = field(default_factory=list)
    relationships_added: list[Relationship] = field(default_factory=list)
    rejected: int = 0
    archived: list[Relationship] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.entities_created or self.relationships_added or self.archived or self.modified)


def _pending_indices(refs: Iterable[EntityRef | None]) -> list[int]:
    return [ref.index for ref in refs if isinstance(ref, Pending)]


class MutationGate:
    def __init__(self, state: SimulationState, naming: Naming | None = None) -> None:
        self.state = state
        self.naming = naming or Naming()

    async def commit_template(self, template_id: str, result: TemplateResult) -> CommitReport:
        """Insert drafts, resolve placeholders, then validate and commit relationships."""
        state = self.state
        report = CommitReport()
        self._check_placeholders(template_id, result)

        assigned: dict[int, str] = {}
        for index, draft in enumerate(result.entities):
            partial = draft.to_partial()
            partial["name"] = await self.naming.name_for(draft)
            entity_id = state.store.create_entity(partial, state.tick)
            assigned[index] = entity_id
            report.entities_created.append(entity_id)
            entity = state.store.get_entity(entity_id)
            state.narrative.entity_created(state.tick, state.current_era, entity, template_id, result.description)

        for request in result.archive:
            self._archive(request, assigned, report)

        for draft in result.relationships:
            src = resolve_ref(draft.src, assigned)
            dst = resolve_ref(draft.dst, assigned)
            catalyst = resolve_ref(draft.catalyzed_by, assigned) if draft.catalyzed_by is not None else None
            pairs = [(src, dst)]
            definition = state.domain.relationship_kind(draft.kind)
            if draft.bidirectional and src != dst and (definition is None or not definition.bidirectional):
                pairs.append((dst, src))
            for left, right in pairs:
                rel = Relationship(
                    kind=draft.kind,
                    src=left,
                    dst=right,
                    strength=draft.strength,
                    distance=draft.distance,
                    catalyzed_by=catalyst,
                )
                self._commit(rel, report, check_cooldown=True)

        for modification in result.modifications:
            self._modify(modification, report, template_id)

        state.pressures.apply_changes(result.pressure_changes)
        if result.record_creation:
            state.rate_limit(template_id).record_creation(state.tick)
        if result.record_discovery:
            state.discovery.record_discovery(state.tick)

        if report.changed:
            state.record_history(
                HistoryEventType.GROWTH,
                result.description or template_id,
                entities_created=report.entities_created,
                relationships_created=report.relationships_added,
                entities_modified=report.modified,
                component=template_id,
            )
        return report

    def commit_system(self, system_id: str, result: SystemResult) -> CommitReport:
        state = self.state
        report = CommitReport()
        for request in result.relationships_archived:
            self._archive(request, {}, report)
        for change in result.strength_changes:
            state.store.modify_relationship_strength(change.src, change.dst, change.kind, change.delta, state.tick)
        for rel in result.relationships_added:
            self._commit(rel, report, check_cooldown=True, both_ends=True)
        for modification in result.entities_modified:
            self._modify(modification, report, system_id)
        state.pressures.apply_changes(result.pressure_changes)

        if report.changed:
            state.record_history(
                HistoryEventType.SIMULATION,
                result.description or system_id,
                relationships_created=report.relationships_added,
                entities_modified=report.modified,
                component=system_id,
            )
        return report

    def accepts(self, rel: Relationship, check_cooldown: bool = True, both_ends: bool = False) -> bool:
        """Every rule except the budget; nothing is consumed or recorded.

        With ``both_ends`` the destination's cooldown is checked as well as the source's.
        """
        state = self.state
        definition = state.domain.relationship_kind(rel.kind)
        if definition is None:
            logger.warning("Rejecting relationship of unknown kind %s (%s -> %s)", rel.kind, rel.src, rel.dst)
            return False
        src = state.store.get_entity(rel.src)
        dst = state.store.get_entity(rel.dst)
        if src is None or dst is None:
            return False
        if state.domain.is_terminal(src.kind, src.status) or state.domain.is_terminal(dst.kind, dst.status):
            logger.debug("Relationship %s touches a terminal entity (%s -> %s)", rel.kind, rel.src, rel.dst)
            return False
        if not definition.allows(src.kind, dst.kind):
            logger.debug("Relationship %s not allowed between %s and %s", rel.kind, src.kind, dst.kind)
            return False
        if state.store.has_relationship(rel.src, rel.dst, rel.kind, directed=True):
            return False
        if not state.compatibility.compatible(state.store, rel.src, rel.dst, rel.kind):
            return False
        if check_cooldown and definition.cooldown > 0:
            ends = (rel.src, rel.dst) if both_ends else (rel.src,)
            return all(state.cooldowns.can_form(end, rel.kind, definition.cooldown, state.tick) for end in ends)
        return True

    # Internals

    def _check_placeholders(self, template_id: str, result: TemplateResult) -> None:
        refs: list[EntityRef | None] = []
        for draft in result.relationships:
            refs.extend([draft.src, draft.dst, draft.catalyzed_by])
        for request in result.archive:
            refs.extend([request.src, request.dst])
        for index in _pending_indices(refs):
            if index >= len(result.entities):
                raise KeyError(f"Template {template_id} references unknown pending entity {index}")

    def _commit(self, rel: Relationship, report: CommitReport, check_cooldown: bool, both_ends: bool = False) -> bool:
        state = self.state
        if not self.accepts(rel, check_cooldown, both_ends) or not state.budget.try_consume():
            report.rejected += 1
            return False
        state.store.add_relationship(rel, state.tick)
        # Cooldowns start only once the edge is in the graph.
        if check_cooldown and state.domain.cooldown_for(rel.kind) > 0:
            for end in (rel.src, rel.dst) if both_ends else (rel.src,):
                state.cooldowns.record(end, rel.kind, state.tick)
        report.relationships_added.append(rel)
        return True

    def _archive(self, request: ArchiveRequest, assigned: dict[int, str], report: CommitReport) -> None:
        src = resolve_ref(request.src, assigned)
        dst = resolve_ref(request.dst, assigned)
        rel = self.state.store.get_live_relationship(src, dst, request.kind)
        if rel is None:
            return
        self.state.store.archive_relationship(src, dst, request.kind, self.state.tick)
        report.archived.append(rel)

    def _modify(self, modification: EntityModification, report: CommitReport, cause: str) -> None:
        state = self.state
        entity = state.store.get_entity(modification.entity_id)
        if entity is None:
            logger.warning("%s modified missing entity %s", cause, modification.entity_id)
            return
        changes = [
            StateChange(
                entity_id=entity.id,
                field=key,
                previous_value=_text(getattr(entity, key, None)),
                new_value=_text(value),
            )
            for key, value in modification.changes.items()
            if getattr(entity, key, None) != value
        ]
        state.store.update_entity(entity.id, modification.changes, state.tick)
        report.modified.append(entity.id)
        if "status" in modification.changes and state.domain.is_terminal(entity.kind, entity.status):
            report.archived.extend(state.store.archive_entity_relationships(entity.id, state.tick))
        if changes:
            state.narrative.state_changed(state.tick, state.current_era, entity, changes, cause)


def _text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)
