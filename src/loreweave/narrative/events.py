"""Narrative events derived from world changes."""

from __future__ import annotations

from dataclasses import dataclass, field

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState, NarrativeEvent, StateChange

SIGNIFICANCE = {
    Prominence.FORGOTTEN: 0.1,
    Prominence.MARGINAL: 0.25,
    Prominence.RECOGNIZED: 0.5,
    Prominence.RENOWNED: 0.75,
    Prominence.MYTHIC: 0.95,
}


@dataclass
class NarrativeEventBuilder:
    events: list[NarrativeEvent] = field(default_factory=list)

    def _next_id(self) -> str:
        return f"event_{len(self.events) + 1}"

    def _add(self, event: NarrativeEvent) -> NarrativeEvent:
        self.events.append(event)
        return event

    def entity_created(self, tick: int, era: str, entity: HardState, cause: str, description: str) -> NarrativeEvent:
        return self._add(
            NarrativeEvent(
                id=self._next_id(),
                tick=tick,
                era=era,
                event_kind="entity_created",
                significance=SIGNIFICANCE[Prominence(entity.prominence)],
                subject=entity.id,
                action="emerged",
                headline=f"{entity.name or entity.subtype} appears",
                description=description,
                caused_by=cause,
                narrative_tags=[entity.kind, entity.subtype, *entity.tags],
            )
        )

    def state_changed(
        self,
        tick: int,
        era: str,
        entity: HardState,
        changes: list[StateChange],
        cause: str,
    ) -> NarrativeEvent:
        summary = ", ".join(f"{change.field} -> {change.new_value}" for change in changes)
        significance = SIGNIFICANCE[Prominence(entity.prominence)]
        if any(change.field == "status" for change in changes):
            significance = min(1.0, significance + 0.2)
        return self._add(
            NarrativeEvent(
                id=self._next_id(),
                tick=tick,
                era=era,
                event_kind="state_changed",
                significance=significance,
                subject=entity.id,
                action="changed",
                headline=f"{entity.name or entity.subtype} changes",
                description=summary,
                state_changes=changes,
                caused_by=cause,
                narrative_tags=[entity.kind],
            )
        )

    def era_transition(
        self,
        tick: int,
        era: str,
        ending: HardState | None,
        beginning: HardState | None,
        text: str,
    ) -> NarrativeEvent:
        participants = [entity.id for entity in (ending, beginning) if entity is not None]
        return self._add(
            NarrativeEvent(
                id=self._next_id(),
                tick=tick,
                era=era,
                event_kind="era_transition",
                significance=1.0,
                subject=ending.id if ending else None,
                object=beginning.id if beginning else None,
                action="gave way to",
                headline=text,
                description=text,
                narrative_tags=["era"],
                participants=participants or None,
            )
        )

    def since(self, tick: int) -> list[NarrativeEvent]:
        return [event for event in self.events if event.tick >= tick]
