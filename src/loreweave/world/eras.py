"""Era ordering, weighting and transition checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from loreweave.domain.schema import DomainSchema, EraDef, TransitionCondition
from loreweave.graph.store import GraphStore


@dataclass(frozen=True)
class EraClock:
    tick: int
    era_started_tick: int
    last_transition_tick: int | None

    @property
    def era_age(self) -> int:
        return self.tick - self.era_started_tick


@dataclass
class EraSchedule:
    eras: list[EraDef]
    min_era_length: int
    transition_cooldown: int

    @classmethod
    def from_domain(cls, domain: DomainSchema) -> "EraSchedule":
        return cls(
            eras=list(domain.eras),
            min_era_length=domain.engine.min_era_length,
            transition_cooldown=domain.engine.transition_cooldown,
        )

    @property
    def first(self) -> EraDef:
        return self.eras[0]

    def get(self, era_id: str) -> EraDef:
        for era in self.eras:
            if era.id == era_id:
                return era
        raise KeyError(f"Unknown era id: {era_id}")

    def next_era(self, era_id: str) -> EraDef | None:
        ids = [era.id for era in self.eras]
        index = ids.index(era_id)
        if index + 1 >= len(self.eras):
            return None
        return self.eras[index + 1]

    def template_weight(self, era_id: str, template_id: str) -> float:
        return self.get(era_id).template_weights.get(template_id, 1.0)

    def system_modifier(self, era_id: str, system_id: str) -> float:
        return self.get(era_id).system_modifiers.get(system_id, 1.0)

    def should_transition(
        self,
        era_id: str,
        clock: EraClock,
        pressures: Mapping[str, float],
        store: GraphStore,
    ) -> bool:
        if self.next_era(era_id) is None:
            return False
        if clock.era_age < self.min_era_length:
            return False
        if clock.last_transition_tick is not None and clock.tick - clock.last_transition_tick < self.transition_cooldown:
            return False
        conditions = self.get(era_id).transition_conditions
        if conditions is None:
            return clock.era_age > self.min_era_length * 2
        return all(condition_met(condition, clock, pressures, store) for condition in conditions)


def condition_met(
    condition: TransitionCondition,
    clock: EraClock,
    pressures: Mapping[str, float],
    store: GraphStore,
) -> bool:
    if condition.type == "time":
        return clock.era_age > condition.min_ticks
    if condition.type == "pressure":
        value = pressures.get(condition.pressure_id or "", 0.0)
    else:
        matches = store.find_entities(kind=condition.entity_kind, subtype=condition.subtype, status=condition.status)
        value = float(len(matches))
    if condition.operator == "above":
        return value > condition.threshold
    return value < condition.threshold
