"""Named world pressures and their per-tick drift."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Mapping

from loreweave import config
from loreweave.domain.schema import DomainSchema, EraDef, PressureDef, PressureDriver
from loreweave.graph.store import GraphStore
from loreweave.util.numbers import clamp
from loreweave.util.rng import Rng

logger = logging.getLogger(__name__)


def pressure_threshold(value: float, minimum: float, maximum: float, extreme_chance: float, rng: Rng) -> bool:
    """Gate on a pressure band; above the band only `extreme_chance` of rolls pass."""
    if value < minimum:
        return False
    if value <= maximum:
        return True
    return rng.random() < extreme_chance


def _driver_amount(store: GraphStore, driver: PressureDriver) -> float:
    if driver.relationship_kind is not None:
        return float(len(store.find_relationships(kind=driver.relationship_kind, status="active")))
    return float(len(store.find_entities(kind=driver.entity_kind, subtype=driver.subtype, status=driver.status)))


@dataclass
class PressureModel:
    definitions: dict[str, PressureDef] = field(default_factory=dict)
    values: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_domain(cls, domain: DomainSchema) -> "PressureModel":
        definitions = {pressure.id: pressure for pressure in domain.pressures}
        values = {pressure.id: pressure.initial for pressure in domain.pressures}
        return cls(definitions=definitions, values=values)

    def get(self, pressure_id: str) -> float:
        """Raw stored value, which producers may have pushed past the nominal bounds."""
        return self.values.get(pressure_id, 0.0)

    def level(self, pressure_id: str) -> float:
        return clamp(self.get(pressure_id), config.PRESSURE_MIN, config.PRESSURE_MAX)

    def apply_delta(self, pressure_id: str, delta: float) -> bool:
        if pressure_id not in self.values:
            logger.warning("Ignoring change to unknown pressure %s", pressure_id)
            return False
        self.values[pressure_id] += delta
        return True

    def apply_changes(self, changes: Mapping[str, float]) -> None:
        for pressure_id, delta in changes.items():
            self.apply_delta(pressure_id, delta)

    def tick_update(self, store: GraphStore, era: EraDef) -> None:
        for pressure_id, definition in self.definitions.items():
            value = self.values[pressure_id]
            value += sum(driver.weight * _driver_amount(store, driver) for driver in definition.drivers)
            value += (definition.equilibrium - value) * definition.decay
            value += era.pressure_modifiers.get(pressure_id, 0.0)
            self.values[pressure_id] = clamp(value, config.PRESSURE_MIN, config.PRESSURE_MAX)

    def snapshot(self) -> dict[str, float]:
        return {pressure_id: round(value, 4) for pressure_id, value in self.values.items()}

    def highest(self, pressure_ids: list[str]) -> str | None:
        known = [pressure_id for pressure_id in pressure_ids if pressure_id in self.values]
        if not known:
            return None
        return max(known, key=lambda pressure_id: self.level(pressure_id))
