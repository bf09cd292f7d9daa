"""Decay, reinforcement and culling of live relationships."""

from __future__ import annotations

from loreweave.domain.enums import DECAY_PER_TICK, DecayRate
from loreweave.domain.models import Relationship
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.systems.base import SimulationSystem, StrengthChange, SystemResult
from loreweave.templates.base import ArchiveRequest


class RelationshipMaintenance(SimulationSystem):
    id = "relationship_maintenance"
    name = "Relationship Maintenance"
    defaults = {
        "frequency": 5,
        "cull_threshold": 0.15,
        "grace_period": 20,
        "reinforcement": 0.02,
        "location_kind": "resident_of",
    }

    def apply(self, view: GraphView, modifier: float = 1.0) -> SystemResult:
        params = self.parameters
        frequency = max(1, int(params["frequency"]))
        if view.tick % frequency != 0 or modifier <= 0:
            return SystemResult.empty("Relationships hold steady")

        changes: list[StrengthChange] = []
        culled: list[ArchiveRequest] = []
        for rel in view.get_relationships(include_historical=False):
            definition = view.domain.relationship_kind(rel.kind)
            if definition is None or definition.decay_rate == DecayRate.NONE:
                continue
            strength = rel.strength if rel.strength is not None else definition.strength
            if self._near(view, rel):
                delta = params["reinforcement"] * frequency
            else:
                delta = -DECAY_PER_TICK[definition.decay_rate] * frequency * modifier
            new_strength = max(0.0, min(1.0, strength + delta))
            if new_strength != strength:
                changes.append(StrengthChange(kind=rel.kind, src=rel.src, dst=rel.dst, delta=new_strength - strength))
            age = view.tick - rel.created_at
            if definition.cullable and age >= params["grace_period"] and new_strength < params["cull_threshold"]:
                culled.append(ArchiveRequest(kind=rel.kind, src=rel.src, dst=rel.dst))

        return SystemResult(
            strength_changes=changes,
            relationships_archived=culled,
            description=f"Bonds shift ({len(changes)} adjusted, {len(culled)} faded away)",
        )

    def _near(self, view: GraphView, rel: Relationship) -> bool:
        here = queries.location_of(view, rel.src, self.parameters["location_kind"])
        there = queries.location_of(view, rel.dst, self.parameters["location_kind"])
        if here is not None and there is not None and here.id == there.id:
            return True
        src_factions = {f.id for f in queries.factions_of(view, rel.src, queries.MEMBERSHIP_KINDS)}
        dst_factions = {f.id for f in queries.factions_of(view, rel.dst, queries.MEMBERSHIP_KINDS)}
        return bool(src_factions & dst_factions)
