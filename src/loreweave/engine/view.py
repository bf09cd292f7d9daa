"""The engine-backed view that templates and systems work through."""

from __future__ import annotations

from typing import Iterable

from loreweave.control.rate import DiscoveryState, RateLimitState
from loreweave.domain.models import HardState, Relationship
from loreweave.domain.schema import DomainSchema, EraDef
from loreweave.engine.state import SimulationState
from loreweave.util.rng import Rng


class EngineView:
    """Reads go straight to the store; control hooks go through the engine state."""

    def __init__(self, state: SimulationState, rng: Rng | None = None) -> None:
        self._state = state
        self.rng = rng or state.rng

    @property
    def tick(self) -> int:
        return self._state.tick

    @property
    def epoch(self) -> int:
        return self._state.epoch

    @property
    def era(self) -> EraDef:
        return self._state.era

    @property
    def domain(self) -> DomainSchema:
        return self._state.domain

    def get_entity(self, entity_id: str) -> HardState | None:
        return self._state.store.get_entity(entity_id)

    def has_entity(self, entity_id: str) -> bool:
        return self._state.store.has_entity(entity_id)

    def get_entities(self) -> list[HardState]:
        return self._state.store.get_entities()

    def get_entities_by_kind(self, kind: str) -> list[HardState]:
        return self._state.store.get_entities_by_kind(kind)

    def get_entity_count(self, kind: str | None = None, subtype: str | None = None) -> int:
        return self._state.store.get_entity_count(kind, subtype)

    def find_entities(
        self,
        kind: str | None = None,
        subtype: str | None = None,
        status: str | None = None,
        tags: Iterable[str] | None = None,
        **criteria: object,
    ) -> list[HardState]:
        return self._state.store.find_entities(kind=kind, subtype=subtype, status=status, tags=tags, **criteria)

    def get_connected_entities(self, entity_id: str, relation_kind: str | None = None) -> list[HardState]:
        return self._state.store.get_connected_entities(entity_id, relation_kind)

    def get_relationships(self, include_historical: bool = True) -> list[Relationship]:
        return self._state.store.get_relationships(include_historical)

    def find_relationships(
        self,
        kind: str | None = None,
        src: str | None = None,
        dst: str | None = None,
        status: str | None = None,
    ) -> list[Relationship]:
        return self._state.store.find_relationships(kind=kind, src=src, dst=dst, status=status)

    def get_entity_relationships(self, entity_id: str, include_historical: bool = False) -> list[Relationship]:
        return self._state.store.get_entity_relationships(entity_id, include_historical)

    def has_relationship(self, src: str, dst: str, kind: str | None = None, directed: bool = False) -> bool:
        return self._state.store.has_relationship(src, dst, kind, directed)

    def live_degree(self, entity_id: str) -> int:
        return self._state.store.live_degree(entity_id)

    def get_pressure(self, pressure_id: str) -> float:
        return self._state.pressures.level(pressure_id)

    def is_saturated(self, kind: str, subtype: str, overshoot: float | None = None) -> bool:
        return self._state.saturation.is_saturated(kind, subtype, overshoot)

    def saturation_ratio(self, kind: str, subtype: str) -> float:
        return self._state.saturation.saturation_ratio(kind, subtype)

    def can_form_relationship(self, entity_id: str, kind: str, cooldown: int | None = None) -> bool:
        ticks = self._state.domain.cooldown_for(kind) if cooldown is None else cooldown
        return self._state.cooldowns.can_form(entity_id, kind, ticks, self._state.tick)

    def record_relationship_formation(self, entity_id: str, kind: str) -> None:
        self._state.cooldowns.record(entity_id, kind, self._state.tick)

    def are_relationships_compatible(self, src: str, dst: str, kind: str) -> bool:
        return self._state.compatibility.compatible(self, src, dst, kind)

    def rate_limit(self, template_id: str) -> RateLimitState:
        return self._state.rate_limit(template_id)

    def discovery_state(self) -> DiscoveryState:
        return self._state.discovery
