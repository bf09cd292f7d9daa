"""Tests for the declarative template interpreter."""

import asyncio

import pytest

from loreweave.domain.models import Coordinates
from loreweave.domain.refs import Existing, Pending
from loreweave.engine.commit import MutationGate
from loreweave.engine.view import EngineView
from loreweave.errors import ConfigError
from loreweave.templates.interpreter import TemplateInterpreter
from loreweave.templates.registry import CustomRegistry


FOUNDING = {
    "id": "colony_founding",
    "name": "Colony Founding",
    "description": "A colony rises on the ice",
    "creation": [
        {"entityRef": "$colony", "kind": "location", "subtype": "colony", "culture": {"fixed": "aurora"}},
        {"entityRef": "$founder", "kind": "npc", "subtype": "mayor", "tags": ["founder"]},
    ],
    "relationships": [
        {"kind": "leader_of", "src": "$founder", "dst": "$colony"},
        {"kind": "resident_of", "src": "$founder", "dst": "$colony"},
    ],
    "stateUpdates": [
        {"type": "modify_pressure", "pressureId": "stability", "delta": 2},
        {"type": "update_rate_limit"},
    ],
}

ARRIVAL = {
    "id": "merchant_arrival",
    "name": "Merchant Arrival",
    "description": "A merchant arrives in {$target.name}",
    "selection": {"kind": "location", "subtypes": ["colony"]},
    "variables": {
        "guild": {
            "select": {"kind": "faction", "subtypes": ["company"]},
            "required": False,
        }
    },
    "creation": [
        {
            "entityRef": "$merchant",
            "kind": "npc",
            "subtype": "merchant",
            "culture": {"inherit": "$target"},
            "description": "A trader who settled in {$target.name}",
        }
    ],
    "relationships": [
        {"kind": "resident_of", "src": "$merchant", "dst": "$target"},
        {"kind": "member_of", "src": "$merchant", "dst": "$guild", "condition": {"type": "entity_exists", "ref": "$guild"}},
    ],
}


@pytest.fixture
def interpreter():
    return TemplateInterpreter()


class TestLoading:
    """Tests for load-time validation."""

    def test_unregistered_custom_predicate(self, interpreter):
        payload = {"id": "odd", "name": "Odd", "applicability": [{"type": "custom", "filterId": "moon_is_full"}]}

        with pytest.raises(ConfigError) as excinfo:
            interpreter.build(payload)
        assert excinfo.value.field_path == "templates[odd].applicability[0].filterId"

    def test_unregistered_nested_custom_predicate(self, interpreter):
        payload = {
            "id": "odd",
            "name": "Odd",
            "applicability": [{"type": "or", "rules": [{"type": "custom", "filterId": "moon_is_full"}]}],
        }

        with pytest.raises(ConfigError) as excinfo:
            interpreter.build(payload)
        assert excinfo.value.field_path == "templates[odd].applicability[0].rules[0].filterId"

    def test_unregistered_custom_action(self, interpreter):
        payload = {"id": "odd", "name": "Odd", "stateUpdates": [{"type": "custom", "actionId": "summon"}]}

        with pytest.raises(ConfigError) as excinfo:
            interpreter.build(payload)
        assert excinfo.value.field_path == "templates[odd].stateUpdates[0].actionId"

    def test_malformed_rule_names_the_template_index(self, interpreter):
        payload = {"id": "odd", "name": "Odd", "applicability": [{"type": "random_chance", "chance": 2.0}]}

        with pytest.raises(ConfigError) as excinfo:
            interpreter.build(payload, index=3)
        assert excinfo.value.field_path.startswith("templates[3].applicability[0]")

    def test_duplicate_ids(self, interpreter):
        with pytest.raises(ConfigError) as excinfo:
            interpreter.build_all([FOUNDING, FOUNDING])
        assert excinfo.value.field_path == "templates[1].id"

    def test_registered_custom_ids_resolve(self):
        registry = CustomRegistry()

        @registry.predicate("always")
        def always(view):
            return True

        template = TemplateInterpreter(registry).build(
            {"id": "ok", "name": "Ok", "applicability": [{"type": "custom", "filterId": "always"}]}
        )
        assert template.id == "ok"

    def test_produces_from_creation(self, interpreter):
        template = interpreter.build(FOUNDING)
        assert template.produces == (("location", "colony"), ("npc", "mayor"))
        assert not template.needs_target


class TestApplicability:
    """Tests for applicability rules."""

    def _template(self, interpreter, *rules):
        return interpreter.build({"id": "sample", "name": "Sample", "applicability": list(rules)})

    def test_and_requires_every_rule(self, interpreter, view, spawn):
        template = self._template(
            interpreter,
            {
                "type": "and",
                "rules": [
                    {"type": "era_match", "eras": ["expansion"]},
                    {"type": "entity_count_min", "kind": "location", "subtype": "colony", "min": 1},
                ],
            },
        )
        assert not template.can_apply(view)
        spawn("location", "colony")
        assert template.can_apply(view)

    def test_or_needs_one_rule(self, interpreter, view):
        template = self._template(
            interpreter,
            {
                "type": "or",
                "rules": [
                    {"type": "era_match", "eras": ["conflict"]},
                    {"type": "pressure_any_above", "pressureIds": ["stability"], "threshold": 40},
                ],
            },
        )
        assert template.can_apply(view)

    def test_pressure_threshold_band(self, interpreter, state, view):
        template = self._template(
            interpreter, {"type": "pressure_threshold", "pressureId": "conflict", "min": 30, "max": 70}
        )
        assert not template.can_apply(view)
        state.pressures.apply_changes({"conflict": 15.0})
        assert template.can_apply(view)

    def test_entity_count_max_uses_saturation(self, interpreter, view, spawn):
        template = self._template(interpreter, {"type": "entity_count_max", "kind": "npc", "subtype": "mayor"})
        for _ in range(5):
            spawn("npc", "mayor")
        assert template.can_apply(view)
        spawn("npc", "mayor")
        assert not template.can_apply(view)

    def test_creations_per_epoch(self, interpreter, state, view):
        template = self._template(interpreter, {"type": "creations_per_epoch", "maxPerEpoch": 1})
        assert template.can_apply(view)
        state.rate_limit("sample").record_creation(state.tick)
        assert not template.can_apply(view)

    def test_custom_predicate_called(self, view):
        calls = []
        registry = CustomRegistry()
        registry.predicate("watched")(lambda v: calls.append(v) or False)
        template = TemplateInterpreter(registry).build(
            {"id": "sample", "name": "Sample", "applicability": [{"type": "custom", "filterId": "watched"}]}
        )

        assert not template.can_apply(view)
        assert calls == [view]


class TestExpansion:
    """Tests for creation, relationships and state updates."""

    def test_untargeted_creation_uses_pending_refs(self, interpreter, view):
        result = interpreter.build(FOUNDING).expand(view, None)

        assert [(e.kind, e.subtype) for e in result.entities] == [("location", "colony"), ("npc", "mayor")]
        assert result.entities[0].culture == "aurora"
        assert [(d.kind, d.src, d.dst) for d in result.relationships] == [
            ("leader_of", Pending(1), Pending(0)),
            ("resident_of", Pending(1), Pending(0)),
        ]
        assert result.pressure_changes == {"stability": 2}
        assert result.record_creation

    async def _commit(self, state, template_id, result):
        return await MutationGate(state).commit_template(template_id, result)

    def test_commit_resolves_placeholders(self, interpreter, state, view):
        result = interpreter.build(FOUNDING).expand(view, None)
        report = asyncio.run(self._commit(state, "colony_founding", result))

        colony_id, mayor_id = report.entities_created
        assert state.store.has_relationship(mayor_id, colony_id, "leader_of", directed=True)
        assert state.store.has_relationship(mayor_id, colony_id, "resident_of", directed=True)
        assert state.pressures.get("stability") == 52.0
        assert state.rate_limit("colony_founding").creations_this_epoch == 1
        assert state.history[-1].entities_created == [colony_id, mayor_id]

    def test_target_description_and_inherited_culture(self, interpreter, view, spawn):
        colony = spawn("location", "colony", "Frostmere", culture="aurora")
        template = interpreter.build(ARRIVAL)

        assert template.find_targets(view) == [colony]
        result = template.expand(view, colony)

        assert result.description == "A merchant arrives in Frostmere"
        assert result.entities[0].culture == "aurora"
        assert result.entities[0].description == "A trader who settled in Frostmere"
        assert [d.kind for d in result.relationships] == ["resident_of"]
        assert result.relationships[0].dst == Existing(colony.id)

    def test_optional_variable_adds_membership(self, interpreter, view, spawn):
        colony = spawn("location", "colony", "Frostmere")
        guild = spawn("faction", "company", "Krill Traders")

        result = interpreter.build(ARRIVAL).expand(view, colony)
        membership = [d for d in result.relationships if d.kind == "member_of"]
        assert [(d.src, d.dst) for d in membership] == [(Pending(0), Existing(guild.id))]

    def test_selection_without_target_is_empty(self, interpreter, view):
        result = interpreter.build(ARRIVAL).expand(view, None)
        assert result.is_empty

    def test_required_variable_missing(self, interpreter, view, spawn):
        colony = spawn("location", "colony")
        payload = dict(ARRIVAL, variables={"guild": {"select": {"kind": "faction"}}})

        result = interpreter.build(payload).expand(view, colony)
        assert result.is_empty
        assert "$guild" in result.description

    def test_lacks_relationship_filter(self, interpreter, view, spawn, relate):
        colony = spawn("location", "colony")
        led = spawn("npc", "merchant")
        free = spawn("npc", "merchant")
        relate("leader_of", led, colony)
        template = interpreter.build(
            {
                "id": "sample",
                "name": "Sample",
                "selection": {
                    "kind": "npc",
                    "pickStrategy": "all",
                    "filters": [{"type": "lacks_relationship", "kind": "leader_of", "direction": "src"}],
                },
            }
        )
        assert template.find_targets(view) == [free]

    def test_tag_and_status_updates(self, interpreter, view, spawn):
        outlaw = spawn("npc", "outlaw", tags=["wanted"])
        template = interpreter.build(
            {
                "id": "pardon",
                "name": "Pardon",
                "selection": {"kind": "npc", "subtypes": ["outlaw"]},
                "stateUpdates": [
                    {"type": "remove_tag", "entity": "$target", "tag": "wanted"},
                    {"type": "set_tag", "entity": "$target", "tag": "pardoned"},
                    {"type": "update_entity_status", "entity": "$target", "status": "dead"},
                ],
            }
        )
        result = template.expand(view, outlaw)

        assert len(result.modifications) == 1
        assert result.modifications[0].changes == {"tags": ["pardoned"], "status": "dead"}

    def test_archive_update(self, interpreter, view, spawn, relate):
        colony = spawn("location", "colony")
        mayor = spawn("npc", "mayor")
        relate("leader_of", mayor, colony)
        template = interpreter.build(
            {
                "id": "abdication",
                "name": "Abdication",
                "selection": {"kind": "npc", "subtypes": ["mayor"]},
                "stateUpdates": [{"type": "archive_relationship", "entity": "$target", "kind": "leader_of"}],
            }
        )
        result = template.expand(view, mayor)

        assert [(a.kind, a.src, a.dst) for a in result.archive] == [
            ("leader_of", Existing(mayor.id), Existing(colony.id))
        ]

    def test_subtype_from_strongest_pressure(self, interpreter, state, view):
        state.pressures.apply_changes({"conflict": 60.0})
        template = interpreter.build(
            {
                "id": "drifters",
                "name": "Drifters",
                "creation": [
                    {
                        "entityRef": "$drifter",
                        "kind": "npc",
                        "subtype": {"fromPressure": {"conflict": "outlaw", "stability": "merchant"}},
                    }
                ],
            }
        )
        assert template.expand(view, None).entities[0].subtype == "outlaw"

    def test_count_range(self, interpreter, view):
        template = interpreter.build(
            {
                "id": "crowd",
                "name": "Crowd",
                "creation": [{"entityRef": "$crowd", "kind": "npc", "subtype": "merchant", "count": {"min": 3, "max": 3}}],
            }
        )
        assert len(template.expand(view, None).entities) == 3

    class MappedView(EngineView):
        """Engine view that places entities one step east of their anchor."""

        def __init__(self, state, grid):
            super().__init__(state)
            self.grid = grid
            self.anchors = []

        def place_near(self, entity_id):
            self.anchors.append(entity_id)
            x, y = self.grid[entity_id]
            return Coordinates(x=x + 1.0, y=y)

    def _placed(self, interpreter, placement_type):
        return interpreter.build(
            {
                "id": "settler",
                "name": "Settler",
                "selection": {"kind": "npc"},
                "creation": [
                    {
                        "entityRef": "$settler",
                        "kind": "npc",
                        "subtype": "merchant",
                        "placement": {"type": placement_type},
                    }
                ],
            }
        )

    def test_at_location_places_beside_the_anchor_home(self, interpreter, state, spawn, relate):
        colony = spawn("location", "colony", "Frostmere")
        scout = spawn("npc", "hero", "Tamsin")
        relate("resident_of", scout, colony)
        view = self.MappedView(state, {colony.id: (4.0, 2.0), scout.id: (9.0, 9.0)})

        result = self._placed(interpreter, "at_location").expand(view, scout)

        assert result.entities[0].coordinates == Coordinates(x=5.0, y=2.0)
        assert view.anchors == [colony.id]

    def test_near_entity_places_beside_the_anchor(self, interpreter, state, spawn, relate):
        colony = spawn("location", "colony", "Frostmere")
        scout = spawn("npc", "hero", "Tamsin")
        relate("resident_of", scout, colony)
        view = self.MappedView(state, {colony.id: (4.0, 2.0), scout.id: (9.0, 9.0)})

        result = self._placed(interpreter, "near_entity").expand(view, scout)

        assert result.entities[0].coordinates == Coordinates(x=10.0, y=9.0)
        assert view.anchors == [scout.id]

    def test_homeless_anchor_left_unplaced(self, interpreter, state, spawn):
        scout = spawn("npc", "hero", "Tamsin")
        view = self.MappedView(state, {scout.id: (9.0, 9.0)})

        result = self._placed(interpreter, "at_location").expand(view, scout)

        assert result.entities[0].coordinates is None
        assert view.anchors == []

    def test_views_without_placement_skip_coordinates(self, interpreter, view, spawn):
        scout = spawn("npc", "hero", "Tamsin")

        result = self._placed(interpreter, "near_entity").expand(view, scout)
        assert result.entities[0].coordinates is None

    def test_custom_action_sees_bindings(self, view, spawn):
        colony = spawn("location", "colony", "Frostmere")
        registry = CustomRegistry()

        @registry.action("unrest")
        def unrest(v, bindings, result):
            result.pressure_changes["conflict"] = float(len(bindings["target"]))

        template = TemplateInterpreter(registry).build(
            {
                "id": "riot",
                "name": "Riot",
                "selection": {"kind": "location"},
                "stateUpdates": [{"type": "custom", "actionId": "unrest"}],
            }
        )
        assert template.expand(view, colony).pressure_changes == {"conflict": 1.0}
