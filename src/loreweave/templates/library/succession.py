"""Leadership succession for colonies whose mayor died or grew old."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState
from loreweave.domain.refs import Existing
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import ArchiveRequest, GrowthTemplate, PendingEntity, TemplateResult

OPEN_SUCCESSION_TICK = 50
MAYOR_TENURE = 40


def governed_colony(view: GraphView, mayor: HardState) -> HardState | None:
    """The colony a mayor leads, or led last if death already archived the edge."""
    held = [
        rel
        for rel in view.get_entity_relationships(mayor.id, include_historical=True)
        if rel.kind == "leader_of" and rel.src == mayor.id
    ]
    held.sort(key=lambda rel: (rel.is_active, rel.archived_at or rel.created_at), reverse=True)
    for rel in held:
        place = view.get_entity(rel.dst)
        if place is not None and place.kind == "location":
            return place
    return None


def _has_other_leader(view: GraphView, colony: HardState, mayor: HardState) -> bool:
    return any(
        rel.kind == "leader_of" and rel.dst == colony.id and rel.src != mayor.id
        for rel in view.get_entity_relationships(colony.id)
    )


class Succession(GrowthTemplate):
    id = "succession"
    name = "Leadership Succession"
    produces = (("npc", "mayor"),)

    def _mayors(self, view: GraphView) -> list[HardState]:
        return view.find_entities(kind="npc", subtype="mayor")

    def can_apply(self, view: GraphView) -> bool:
        mayors = self._mayors(view)
        if not mayors or self.saturated(view):
            return False
        return any(mayor.status == "dead" for mayor in mayors) or view.tick > OPEN_SUCCESSION_TICK

    def find_targets(self, view: GraphView) -> list[HardState]:
        targets: list[HardState] = []
        for mayor in self._mayors(view):
            if mayor.status != "dead" and view.tick - mayor.created_at <= MAYOR_TENURE:
                continue
            colony = governed_colony(view, mayor)
            if colony is not None and _has_other_leader(view, colony, mayor):
                continue
            targets.append(mayor)
        return targets

    @property
    def target_kind(self) -> str | None:
        return "npc"

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        if self.saturated(view):
            return TemplateResult.empty("Mayors are saturated")
        if target is None:
            candidates = self.find_targets(view)
            if not candidates:
                return TemplateResult.empty("No mayor to succeed")
            target = view.rng.choice(candidates)

        colony = governed_colony(view, target)
        if colony is None:
            return TemplateResult.empty(f"{target.name or target.id} had no colony to succeed")

        result = TemplateResult()
        successor = result.add_entity(
            PendingEntity(
                kind="npc",
                subtype="mayor",
                status="alive",
                prominence=Prominence.MARGINAL,
                culture=target.culture,
                description=f"Successor to {target.name} as leader of {colony.name}",
                tags=["successor"],
            )
        )
        result.archive.append(ArchiveRequest(kind="leader_of", src=Existing(target.id), dst=Existing(colony.id)))
        result.relate("leader_of", successor, Existing(colony.id))
        result.relate("resident_of", successor, Existing(colony.id))

        for faction in queries.related(view, target.id, "leader_of", "src"):
            if faction.kind != "faction":
                continue
            result.archive.append(ArchiveRequest(kind="leader_of", src=Existing(target.id), dst=Existing(faction.id)))
            result.relate("leader_of", successor, Existing(faction.id))
            result.relate("member_of", successor, Existing(faction.id))

        result.pressure_changes["stability"] = -1.0
        result.description = f"A new mayor succeeds {target.name} in {colony.name}"
        return result
