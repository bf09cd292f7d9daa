"""Social dynamics between co-located NPCs."""

from __future__ import annotations

from loreweave.domain.enums import FactionStance
from loreweave.domain.models import HardState, Relationship
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.systems.base import SimulationSystem, SystemResult


class RelationshipFormation(SimulationSystem):
    id = "relationship_formation"
    name = "Social Dynamics"
    produces = ("follower_of", "rival_of", "enemy_of", "lover_of")
    defaults = {
        "throttle_chance": 0.3,
        "friendship_base_chance": 0.2,
        "friendship_rival_ratio": 0.75,
        "conflict_base_chance": 0.2,
        "romance_base_chance": 0.05,
        "same_faction_friendship": 2.0,
        "allied_faction_friendship": 1.2,
        "enemy_faction_conflict": 3.0,
        "neutral_conflict": 0.3,
        "same_faction_romance": 3.0,
        "allied_faction_romance": 1.5,
        "neutral_romance": 0.7,
        "star_crossed_romance": 0.05,
        "cooldowns": {},
        "npc_kind": "npc",
        "alive_status": "alive",
        "location_kind": "resident_of",
        "membership_kind": "member_of",
    }

    def apply(self, view: GraphView, modifier: float = 1.0) -> SystemResult:
        params = self.parameters
        if not view.rng.roll(params["throttle_chance"], modifier):
            return SystemResult.empty("Social dynamics dormant")

        npcs = view.find_entities(kind=params["npc_kind"], status=params["alive_status"])
        added: list[Relationship] = []
        for index, npc in enumerate(npcs):
            location = queries.location_of(view, npc.id, params["location_kind"])
            if location is None:
                continue
            npc_weight = queries.connection_weight(view.live_degree(npc.id))
            npc_factions = queries.related(view, npc.id, params["membership_kind"], "src")
            for neighbor in npcs[index + 1 :]:
                neighbor_location = queries.location_of(view, neighbor.id, params["location_kind"])
                if neighbor_location is None or neighbor_location.id != location.id:
                    continue
                balancing = (npc_weight + queries.connection_weight(view.live_degree(neighbor.id))) / 2
                neighbor_factions = queries.related(view, neighbor.id, params["membership_kind"], "src")
                added.extend(self._pair(view, npc, neighbor, npc_factions, neighbor_factions, balancing, modifier))

        return SystemResult(
            relationships_added=added,
            description=f"Social bonds form and rivalries emerge ({len(added)} new relationships)",
        )

    def _pair(
        self,
        view: GraphView,
        npc: HardState,
        neighbor: HardState,
        npc_factions: list[HardState],
        neighbor_factions: list[HardState],
        balancing: float,
        modifier: float,
    ) -> list[Relationship]:
        params = self.parameters
        shared = bool({f.id for f in npc_factions} & {f.id for f in neighbor_factions})
        stance = FactionStance.SAME if shared else queries.faction_relationship(view, npc_factions, neighbor_factions)
        formed: list[Relationship] = []

        if stance in (FactionStance.SAME, FactionStance.ALLIED):
            multiplier = params["same_faction_friendship"] if shared else params["allied_faction_friendship"]
            chance = min(0.95, params["friendship_base_chance"] * multiplier * balancing)
            if view.rng.roll(chance, modifier):
                kind = "rival_of" if view.rng.random() > params["friendship_rival_ratio"] else "follower_of"
                formed.extend(self._try_form(view, npc, neighbor, kind))

        if not shared and npc_factions and neighbor_factions:
            if stance == FactionStance.ENEMY:
                multiplier = params["enemy_faction_conflict"]
            elif stance == FactionStance.ALLIED:
                multiplier = 0.0
            else:
                multiplier = params["neutral_conflict"]
            chance = min(0.95, params["conflict_base_chance"] * multiplier * balancing)
            if view.rng.roll(chance, modifier):
                formed.extend(self._try_form(view, npc, neighbor, "enemy_of"))

        romance = {
            FactionStance.SAME: params["same_faction_romance"],
            FactionStance.ALLIED: params["allied_faction_romance"],
            FactionStance.NEUTRAL: params["neutral_romance"],
            FactionStance.ENEMY: params["star_crossed_romance"],
        }[stance]
        chance = min(0.95, params["romance_base_chance"] * romance * balancing)
        if view.rng.roll(chance, modifier):
            formed.extend(self._try_form(view, npc, neighbor, "lover_of"))
        return formed

    def _try_form(self, view: GraphView, npc: HardState, neighbor: HardState, kind: str) -> list[Relationship]:
        # The domain's cooldown applies unless this system is configured with its own.
        cooldown = self.parameters["cooldowns"].get(kind)
        if view.has_relationship(npc.id, neighbor.id, kind):
            return []
        if not view.can_form_relationship(npc.id, kind, cooldown):
            return []
        if not view.can_form_relationship(neighbor.id, kind, cooldown):
            return []
        if not view.are_relationships_compatible(npc.id, neighbor.id, kind):
            return []
        return [Relationship(kind=kind, src=npc.id, dst=neighbor.id, created_at=view.tick)]
