"""Families grow: residents raise children in their colony."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState
from loreweave.domain.refs import Existing
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import GrowthTemplate, PendingEntity, TemplateResult

CHILD_SUBTYPES = ("merchant", "hero", "mayor", "outlaw")


class FamilyExpansion(GrowthTemplate):
    id = "family_expansion"
    name = "Family Growth"
    produces = tuple(("npc", subtype) for subtype in CHILD_SUBTYPES)

    def __init__(
        self,
        children_min: int = 1,
        children_max: int = 3,
        inherit_subtype_chance: float = 0.7,
        join_faction_chance: float = 0.5,
    ) -> None:
        self.children_min = children_min
        self.children_max = max(children_min, children_max)
        self.inherit_subtype_chance = inherit_subtype_chance
        self.join_faction_chance = join_faction_chance

    def saturated(self, view: GraphView) -> bool:
        return all(view.is_saturated(kind, subtype) for kind, subtype in self.produces)

    def can_apply(self, view: GraphView) -> bool:
        return len(view.find_entities(kind="npc", status="alive")) >= 2 and not self.saturated(view)

    def find_targets(self, view: GraphView) -> list[HardState]:
        targets: list[HardState] = []
        for colony in view.find_entities(kind="location", subtype="colony"):
            residents = queries.related(view, colony.id, "resident_of", "dst", status="alive")
            residents = [npc for npc in residents if npc.kind == "npc"]
            if len(residents) >= 2:
                targets.append(residents[0])
        return targets

    @property
    def target_kind(self) -> str | None:
        return "npc"

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        if target is None:
            return TemplateResult.empty("No parent to raise children")
        colony = queries.location_of(view, target.id)
        if colony is None:
            return TemplateResult.empty(f"{target.name} is homeless, cannot raise children")

        factions = queries.related(view, target.id, "member_of", "src")
        result = TemplateResult()
        count = view.rng.randint(self.children_min, self.children_max)
        for _ in range(count):
            subtype = target.subtype
            if view.rng.random() > self.inherit_subtype_chance or subtype not in CHILD_SUBTYPES:
                subtype = view.rng.choice(list(CHILD_SUBTYPES))
            if view.is_saturated("npc", subtype):
                continue
            child = result.add_entity(
                PendingEntity(
                    kind="npc",
                    subtype=subtype,
                    status="alive",
                    prominence=Prominence.MARGINAL,
                    culture=target.culture,
                    description=f"Child of {target.name}, raised in {colony.name}",
                    tags=["second_generation"],
                )
            )
            result.relate("mentor_of", Existing(target.id), child)
            result.relate("resident_of", child, Existing(colony.id))
            if factions and view.rng.random() < self.join_faction_chance:
                result.relate("member_of", child, Existing(factions[0].id))

        if not result.entities:
            return TemplateResult.empty(f"{colony.name} has no room for more families")
        noun = "child" if len(result.entities) == 1 else "children"
        result.description = f"{target.name} raises {len(result.entities)} {noun} in {colony.name}"
        return result
