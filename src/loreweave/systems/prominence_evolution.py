"""Prominence drifts with how connected an entity is."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.rules import adjust_prominence
from loreweave.graph.view import GraphView
from loreweave.systems.base import SimulationSystem, SystemResult
from loreweave.templates.base import EntityModification


class ProminenceEvolution(SimulationSystem):
    id = "prominence_evolution"
    name = "Rise and Fall"
    defaults = {
        "kinds": ["npc", "faction", "location"],
        "gain_chance": 0.1,
        "fade_chance": 0.05,
        "hub_links": 6,
        "isolated_links": 1,
    }

    def apply(self, view: GraphView, modifier: float = 1.0) -> SystemResult:
        params = self.parameters
        modified: list[EntityModification] = []
        for kind in params["kinds"]:
            for entity in view.get_entities_by_kind(kind):
                if view.domain.is_terminal(entity.kind, entity.status):
                    continue
                links = view.live_degree(entity.id)
                delta = 0
                if links >= params["hub_links"] and view.rng.roll(params["gain_chance"], modifier):
                    delta = 1
                elif links <= params["isolated_links"] and view.rng.roll(params["fade_chance"], modifier):
                    delta = -1
                if not delta:
                    continue
                updated = adjust_prominence(entity.prominence, delta)
                if updated != Prominence(entity.prominence):
                    modified.append(EntityModification(entity_id=entity.id, changes={"prominence": updated}))
        return SystemResult(
            entities_modified=modified,
            description=f"Reputations shift ({len(modified)} entities)",
        )
