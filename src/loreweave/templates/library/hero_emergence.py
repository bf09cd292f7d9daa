"""Heroes rise in colonies under conflict, until the hero population saturates."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState
from loreweave.domain.refs import Existing
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import GrowthTemplate, PendingEntity, TemplateResult
from loreweave.world.pressures import pressure_threshold

CONFLICT_MIN = 20.0
CONFLICT_MAX = 80.0
EXTREME_CHANCE = 0.3


class HeroEmergence(GrowthTemplate):
    id = "hero_emergence"
    name = "Hero Emergence"
    produces = (("npc", "hero"),)

    def can_apply(self, view: GraphView) -> bool:
        if self.saturated(view):
            return False
        if not view.find_entities(kind="location", subtype="colony"):
            return False
        return pressure_threshold(view.get_pressure("conflict"), CONFLICT_MIN, CONFLICT_MAX, EXTREME_CHANCE, view.rng)

    def find_targets(self, view: GraphView) -> list[HardState]:
        return [
            colony
            for colony in view.find_entities(kind="location", subtype="colony")
            if colony.status != "abandoned"
        ]

    @property
    def target_kind(self) -> str | None:
        return "location"

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        colony = target
        if colony is None or colony.subtype != "colony":
            colonies = self.find_targets(view)
            if not colonies:
                return TemplateResult.empty("No colony to raise a hero")
            colony = view.rng.choice(colonies)

        result = TemplateResult()
        hero = result.add_entity(
            PendingEntity(
                kind="npc",
                subtype="hero",
                status="alive",
                prominence=Prominence.RECOGNIZED,
                culture=colony.culture,
                description=f"A defender who rose to meet the troubles of {colony.name}",
                tags=["hero"],
            )
        )
        result.relate("resident_of", hero, Existing(colony.id))

        rivals = [
            npc
            for npc in queries.related(view, colony.id, "resident_of", "dst", status="alive")
            if npc.subtype == "outlaw"
        ]
        if rivals:
            result.relate("enemy_of", hero, Existing(view.rng.choice(rivals).id))

        result.pressure_changes["conflict"] = -2.0
        result.description = f"A hero emerges in {colony.name}"
        return result
