"""Explorers chart new locations, paced by the discovery state."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState
from loreweave.domain.refs import Existing
from loreweave.domain.schema import DomainSchema, EmergentDiscoveryConfig
from loreweave.errors import ConfigError
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import GrowthTemplate, PendingEntity, TemplateResult

DEFAULT_DISCOVERY_CHANCE = 0.10
EXPLORER_STATUS = "alive"


def discovery_config(view: GraphView) -> EmergentDiscoveryConfig:
    config = view.domain.emergent_discovery
    if config is None:
        raise ConfigError("emergentDiscovery", "required by location discovery but not configured")
    return config


def nearby_locations(view: GraphView, explorer: HardState) -> list[HardState]:
    home = queries.location_of(view, explorer.id) or queries.location_of(view, explorer.id, "leader_of")
    if home is None:
        return []
    nearby = [home]
    for kind in ("adjacent_to", "contains"):
        nearby.extend(place for place in queries.related(view, home.id, kind, "any") if place.kind == "location")
    return list({place.id: place for place in nearby}.values())


class LocationDiscovery(GrowthTemplate):
    id = "location_discovery"
    name = "Location Discovery"

    def __init__(self, discovery_subtypes: tuple[str, ...] = ("geographic_feature", "anomaly")) -> None:
        self.produces = tuple(("location", subtype) for subtype in discovery_subtypes)

    @classmethod
    def from_domain(cls, domain: DomainSchema) -> "LocationDiscovery":
        if domain.emergent_discovery is None:
            return cls()
        return cls(tuple(domain.emergent_discovery.discovery_subtypes))

    def _explorers(self, view: GraphView, config: EmergentDiscoveryConfig) -> list[HardState]:
        return [
            npc
            for npc in view.find_entities(kind="npc", status=EXPLORER_STATUS)
            if npc.subtype in config.explorer_subtypes
        ]

    def _open_subtypes(self, view: GraphView, config: EmergentDiscoveryConfig) -> list[str]:
        return [subtype for subtype in config.discovery_subtypes if not view.is_saturated("location", subtype)]

    def can_apply(self, view: GraphView) -> bool:
        config = discovery_config(view)
        if view.get_entity_count("location") >= config.max_locations:
            return False
        if not self._open_subtypes(view, config):
            return False
        state = view.discovery_state()
        if not state.can_discover(view.tick, config.min_ticks_between_discoveries, config.max_discoveries_per_epoch):
            return False
        if not self._explorers(view, config):
            return False
        chance = config.era_discovery_modifiers.get(view.era.id, DEFAULT_DISCOVERY_CHANCE)
        return view.rng.random() < chance

    def find_targets(self, view: GraphView) -> list[HardState]:
        return self._explorers(view, discovery_config(view))

    @property
    def target_kind(self) -> str | None:
        return "npc"

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        config = discovery_config(view)
        explorer = target
        if explorer is None:
            explorers = self._explorers(view, config)
            if not explorers:
                return TemplateResult.empty("No eligible explorer found")
            explorer = view.rng.choice(explorers)

        options = self._open_subtypes(view, config)
        if not options:
            return TemplateResult.empty("Every discoverable location kind is saturated")

        pressures = {pressure.id: view.get_pressure(pressure.id) for pressure in view.domain.pressures}
        dominant = max(pressures, key=pressures.get) if pressures else None
        subtype = view.rng.choice(options)
        tags = ["discovered"]
        if dominant is not None:
            tags.append(f"{dominant}_driven")

        result = TemplateResult()
        place = result.add_entity(
            PendingEntity(
                kind="location",
                subtype=subtype,
                status="unspoiled",
                prominence=Prominence.RECOGNIZED,
                culture=explorer.culture,
                description=f"A {subtype.replace('_', ' ')} charted by {explorer.name}",
                tags=tags,
            )
        )
        result.relate("explorer_of", Existing(explorer.id), place)
        result.relate("discovered_by", place, Existing(explorer.id))
        for neighbor in nearby_locations(view, explorer)[:2]:
            result.relate("adjacent_to", place, Existing(neighbor.id), bidirectional=True)

        result.record_discovery = True
        result.description = f"{explorer.name} discovers a new {subtype.replace('_', ' ')}"
        return result
