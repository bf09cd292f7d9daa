"""Aging: old NPCs die and neglected entities fade from memory."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.graph.view import GraphView
from loreweave.systems.base import SimulationSystem, SystemResult
from loreweave.templates.base import EntityModification


class Lifecycle(SimulationSystem):
    id = "lifecycle"
    name = "Lifecycle"
    defaults = {
        "forget_age": 50,
        "forget_min_links": 2,
        "death_age": 80,
        "death_chance": 0.3,
        "npc_kind": "npc",
        "alive_status": "alive",
        "dead_status": "dead",
        "exempt_kinds": ["era"],
    }

    def apply(self, view: GraphView, modifier: float = 1.0) -> SystemResult:
        params = self.parameters
        modified: list[EntityModification] = []
        for entity in view.get_entities():
            if entity.kind in params["exempt_kinds"]:
                continue
            age = view.tick - entity.created_at
            changes: dict[str, object] = {}
            if (
                age > params["forget_age"]
                and entity.prominence != Prominence.FORGOTTEN
                and view.live_degree(entity.id) < params["forget_min_links"]
            ):
                changes["prominence"] = Prominence.FORGOTTEN
            if (
                entity.kind == params["npc_kind"]
                and entity.status == params["alive_status"]
                and age > params["death_age"]
                and view.rng.roll(params["death_chance"], modifier)
            ):
                changes["status"] = params["dead_status"]
            if changes:
                modified.append(EntityModification(entity_id=entity.id, changes=changes))
        deaths = sum(1 for mod in modified if "status" in mod.changes)
        return SystemResult(
            entities_modified=modified,
            description=f"Time passes ({deaths} deaths, {len(modified) - deaths} faded)",
        )
