"""Custom predicates, filters and actions the colonies templates refer to by id."""

from __future__ import annotations

from typing import Any, Mapping

from loreweave.domain.models import HardState
from loreweave.graph import queries
from loreweave.graph.view import GraphView
from loreweave.templates.base import TemplateResult
from loreweave.templates.registry import CustomRegistry

CROWDED_COLONY = 12
OUTLAW_UNREST = 0.5


def colonies_exist(view: GraphView) -> bool:
    return bool(view.find_entities(kind="location", subtype="colony"))


def under_populated(view: GraphView, entity: HardState, bindings: Mapping[str, Any]) -> bool:
    residents = queries.related(view, entity.id, "resident_of", "dst", status="alive")
    return len(residents) < CROWDED_COLONY


def stir_unrest(view: GraphView, bindings: Mapping[str, Any], result: TemplateResult) -> None:
    """Outlaws already living at the target raise conflict when the gang grows."""
    for colony in bindings.get("target", []):
        if not isinstance(colony, HardState):
            continue
        outlaws = [
            npc
            for npc in queries.related(view, colony.id, "resident_of", "dst", status="alive")
            if npc.subtype == "outlaw"
        ]
        if outlaws:
            result.pressure_changes["conflict"] = (
                result.pressure_changes.get("conflict", 0.0) + OUTLAW_UNREST * len(outlaws)
            )


def register_custom(registry: CustomRegistry) -> CustomRegistry:
    registry.predicate("colonies_exist")(colonies_exist)
    registry.filter("under_populated")(under_populated)
    registry.action("stir_unrest")(stir_unrest)
    return registry
