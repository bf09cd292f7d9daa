"""Tests for world export, re-import and text dumps."""

import json

import pytest

from loreweave.domain.enums import HistoryEventType, RelationshipStatus
from loreweave.export import build_export, dump_world, export_state, import_state
from loreweave.statistics.validation import validate_world


@pytest.fixture
def populated(state, spawn, relate):
    colony = spawn("location", "colony", "Frostmere", tags=["capital"])
    mayor = spawn("npc", "mayor", "Quillan")
    heir = spawn("npc", "mayor", "Brisa")
    relate("leader_of", mayor, colony)
    relate("resident_of", heir, colony)
    state.tick = 7
    state.store.archive_relationship(mayor.id, colony.id, "leader_of", 7)
    relate("leader_of", heir, colony)
    state.record_history(HistoryEventType.SPECIAL, "Brisa takes office")
    return state


class TestExport:
    """Tests for the export document."""

    def test_top_level_keys(self, populated):
        exported = export_state(populated)
        assert set(exported) == {"metadata", "hardState", "relationships", "pressures", "history"}

    def test_metadata(self, populated):
        metadata = export_state(populated)["metadata"]
        assert metadata == {
            "tick": 7,
            "epoch": 0,
            "entityCount": 3,
            "relationshipCount": 3,
            "currentEra": "expansion",
        }

    def test_camel_case_fields(self, populated):
        exported = export_state(populated)
        entity = exported["hardState"][0]
        rel = next(rel for rel in exported["relationships"] if rel["status"] == "historical")

        assert "createdAt" in entity and "updatedAt" in entity
        assert rel["archivedAt"] == 7
        assert exported["pressures"] == {"conflict": 20.0, "stability": 50.0}

    def test_json_serializable(self, populated):
        assert json.loads(json.dumps(export_state(populated)))["metadata"]["tick"] == 7

    def test_build_export_model(self, populated):
        export = build_export(populated)
        assert len(export.relationships) == 3
        assert export.history[-1].description == "Brisa takes office"


class TestImport:
    """Tests for rebuilding a store from an export."""

    def test_round_trip_preserves_graph(self, populated, domain):
        store = import_state(export_state(populated), domain=domain)

        assert store.get_entity_count() == 3
        assert store.get_relationship_count() == 3
        assert store.get_relationship_count(include_historical=False) == 2
        historical = store.find_relationships(status=RelationshipStatus.HISTORICAL)
        assert len(historical) == 1
        assert historical[0].archived_at == 7
        assert validate_world(store).failed == 0

    def test_ids_continue_after_import(self, populated, domain):
        store = import_state(export_state(populated), domain=domain)
        assert store.create_entity({"kind": "npc", "subtype": "hero"}) == "npc_3"

    def test_entity_fields_survive(self, populated, domain):
        store = import_state(export_state(populated), domain=domain)
        colony = store.find_entities(kind="location")[0]

        assert colony.name == "Frostmere"
        assert colony.tags == ["capital"]


class TestDumpWorld:
    """Tests for the debugging text dump."""

    def test_lists_entities_and_history(self, populated):
        text = dump_world(populated)

        assert text.startswith("World: test-colonies tick 7 epoch 0 era expansion")
        assert "Quillan" in text
        assert "Relationships (2 live, 1 historical):" in text
        assert "Brisa takes office" in text
