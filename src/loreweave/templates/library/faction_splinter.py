"""Factions with members break apart into rival splinter groups."""

from __future__ import annotations

from loreweave.domain.enums import Prominence
from loreweave.domain.models import HardState
from loreweave.domain.refs import Existing
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import ArchiveRequest, GrowthTemplate, PendingEntity, TemplateResult

SPLINTER_TRANSITIONS = {
    "company": ("company", "criminal"),
    "political": ("political", "cult"),
    "criminal": ("criminal", "political"),
    "cult": ("cult", "political"),
}
RADICAL_DISTANCE = (0.6, 0.8)
INCREMENTAL_DISTANCE = (0.15, 0.35)


class FactionSplinter(GrowthTemplate):
    id = "faction_splinter"
    name = "Faction Schism"
    produces = tuple(("faction", subtype) for subtype in SPLINTER_TRANSITIONS)

    def __init__(self, leader_hero_chance: float = 0.5) -> None:
        self.leader_hero_chance = leader_hero_chance

    def saturated(self, view: GraphView) -> bool:
        return all(view.is_saturated(kind, subtype) for kind, subtype in self.produces)

    def _members(self, view: GraphView, faction: HardState) -> list[HardState]:
        return queries.related(view, faction.id, "member_of", "dst", status="alive")

    def can_apply(self, view: GraphView) -> bool:
        if self.saturated(view):
            return False
        return any(self._members(view, faction) for faction in view.find_entities(kind="faction"))

    def find_targets(self, view: GraphView) -> list[HardState]:
        return [faction for faction in view.find_entities(kind="faction") if self._members(view, faction)]

    @property
    def target_kind(self) -> str | None:
        return "faction"

    def _location(self, view: GraphView, faction: HardState) -> HardState | None:
        for kind in ("controls", "occupies"):
            places = queries.related(view, faction.id, kind, "src")
            if places:
                return places[0]
        colonies = view.find_entities(kind="location", subtype="colony")
        return view.rng.choice(colonies) if colonies else None

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        parent = target
        if parent is None:
            factions = view.find_entities(kind="faction")
            if not factions:
                return TemplateResult.empty("Cannot create splinter - no factions exist")
            parent = view.rng.choice(factions)

        location = self._location(view, parent)
        if location is None:
            return TemplateResult.empty(f"{parent.name} cannot splinter - no locations available")

        options = [
            subtype
            for subtype in SPLINTER_TRANSITIONS.get(parent.subtype, (parent.subtype,))
            if not view.is_saturated("faction", subtype)
        ]
        if not options:
            return TemplateResult.empty(f"{parent.name} cannot splinter - every splinter kind is saturated")
        subtype = view.rng.choice(options)

        members = self._members(view, parent)
        leaders = {rel.src for rel in view.find_relationships(kind="leader_of", status="active")}
        candidates = [member for member in members if member.id not in leaders] or members
        leader_subtype = None
        if not candidates:
            preferred = "hero" if view.rng.random() < self.leader_hero_chance else "outlaw"
            fallback = "outlaw" if preferred == "hero" else "hero"
            leader_subtype = next(
                (option for option in (preferred, fallback) if not view.is_saturated("npc", option)), None
            )
            if leader_subtype is None:
                return TemplateResult.empty(f"{parent.name} cannot splinter - no one is left to lead it")

        low, high = RADICAL_DISTANCE if subtype != parent.subtype else INCREMENTAL_DISTANCE

        result = TemplateResult()
        splinter = result.add_entity(
            PendingEntity(
                kind="faction",
                subtype=subtype,
                status="waning",
                prominence=Prominence.MARGINAL,
                culture=parent.culture,
                description=f"A splinter group that broke away from {parent.name}",
                tags=["splinter", *parent.tags[:2]],
            )
        )
        result.relate("split_from", splinter, Existing(parent.id), distance=round(view.rng.uniform(low, high), 3))
        result.relate("at_war_with", splinter, Existing(parent.id))
        result.relate("occupies", splinter, Existing(location.id))

        if candidates:
            leader_ref = Existing(view.rng.choice(candidates).id)
            leader_name = view.get_entity(leader_ref.id).name
            result.archive.append(ArchiveRequest(kind="member_of", src=leader_ref, dst=Existing(parent.id)))
        else:
            leader_ref = result.add_entity(
                PendingEntity(
                    kind="npc",
                    subtype=leader_subtype,
                    status="alive",
                    prominence=Prominence.RECOGNIZED,
                    culture=parent.culture,
                    description=f"Charismatic leader of a splinter faction that broke away from {parent.name}",
                    tags=["rebel", "charismatic"],
                )
            )
            leader_name = "a new leader"
        result.relate("leader_of", leader_ref, splinter)
        result.relate("member_of", leader_ref, splinter)
        result.relate("resident_of", leader_ref, Existing(location.id))

        result.pressure_changes["conflict"] = 3.0
        result.pressure_changes["cultural_tension"] = 2.0
        result.description = f"{leader_name} leads a splinter faction in breaking away from {parent.name}"
        return result
