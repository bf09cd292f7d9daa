"""Tests for the bundled simulation systems."""

import pytest

from loreweave.domain.enums import Prominence, RelationshipStatus
from loreweave.engine.commit import MutationGate
from loreweave.engine.state import SimulationState
from loreweave.engine.view import EngineView
from loreweave.systems import Lifecycle, ProminenceEvolution, RelationshipFormation, RelationshipMaintenance

from conftest import ScriptedRng


@pytest.fixture
def colony(spawn):
    return spawn("location", "colony", "Frostmere")


@pytest.fixture
def company(spawn):
    return spawn("faction", "company", "Krill Traders")


@pytest.fixture
def neighbors(spawn, relate, colony, company):
    """Two merchants living in the same colony and working for the same company."""
    first = spawn("npc", "merchant", "Pip")
    second = spawn("npc", "merchant", "Wren")
    for npc in (first, second):
        relate("resident_of", npc, colony)
        relate("member_of", npc, company)
    return first, second


class TestRelationshipFormation:
    """Tests for social dynamics between co-located NPCs."""

    @pytest.fixture
    def system(self):
        return RelationshipFormation({"romance_base_chance": 0.0})

    def test_empty_graph(self, view, system):
        result = system.apply(view, 1.0)

        assert result.relationships_added == []
        assert result.entities_modified == []
        assert result.pressure_changes == {}
        assert result.description

    def test_same_faction_neighbors_bond(self, state, view, system, neighbors):
        first, second = neighbors
        result = system.apply(view, 1.0)

        social = [rel for rel in result.relationships_added if rel.kind in ("follower_of", "rival_of")]
        assert len(social) == 1
        assert {social[0].src, social[0].dst} == {first.id, second.id}
        assert state.cooldowns.last_formation(first.id, social[0].kind) is None

    def test_friendship_can_sour_into_rivalry(self, state, neighbors):
        state.rng.values = [0.0, 0.0, 0.9]
        result = RelationshipFormation({"romance_base_chance": 0.0}).apply(EngineView(state), 1.0)

        assert [rel.kind for rel in result.relationships_added] == ["rival_of"]

    def test_existing_enmity_blocks_following(self, view, system, relate, neighbors):
        first, second = neighbors
        relate("enemy_of", second, first)

        result = system.apply(view, 1.0)
        assert not any(rel.kind == "follower_of" for rel in result.relationships_added)

    def test_incompatible_pair_gets_nothing(self, view, system, neighbors):
        view.are_relationships_compatible = lambda src, dst, kind: False

        result = system.apply(view, 1.0)
        assert result.relationships_added == []

    def test_cooldown_blocks_second_bond(self, state, view, system, neighbors):
        first, _ = neighbors
        state.cooldowns.record(first.id, "follower_of", state.tick)

        result = system.apply(view, 1.0)
        assert not any(rel.kind == "follower_of" for rel in result.relationships_added)

    def test_zero_modifier_disables(self, view, system, neighbors):
        result = system.apply(view, 0.0)
        assert result.relationships_added == []

    def test_committed_bond_lands_in_graph(self, state, view, system, neighbors):
        first, second = neighbors
        result = system.apply(view, 1.0)
        report = MutationGate(state).commit_system(system.id, result)

        assert len(report.relationships_added) == 1
        kind = report.relationships_added[0].kind
        assert state.store.has_relationship(first.id, second.id, kind)
        assert state.cooldowns.last_formation(first.id, kind) == state.tick
        assert state.cooldowns.last_formation(second.id, kind) == state.tick

    def test_domain_cooldown_applies_without_override(self, document, make_domain):
        document["relationshipKinds"][3]["cooldown"] = 20
        state = SimulationState.create(make_domain(), ScriptedRng())
        colony = state.store.create_entity({"kind": "location", "subtype": "colony"})
        company = state.store.create_entity({"kind": "faction", "subtype": "company"})
        merchants = [state.store.create_entity({"kind": "npc", "subtype": "merchant"}) for _ in range(3)]
        for merchant in merchants[:2]:
            state.store.add_relationship({"kind": "resident_of", "src": merchant, "dst": colony})
            state.store.add_relationship({"kind": "member_of", "src": merchant, "dst": company})
        system = RelationshipFormation({"romance_base_chance": 0.0})
        gate = MutationGate(state)

        report = gate.commit_system(system.id, system.apply(EngineView(state), 1.0))
        assert [rel.kind for rel in report.relationships_added] == ["follower_of"]

        state.store.add_relationship({"kind": "resident_of", "src": merchants[2], "dst": colony})
        state.store.add_relationship({"kind": "member_of", "src": merchants[2], "dst": company})
        state.tick = 6
        result = system.apply(EngineView(state), 1.0)
        assert not any(rel.kind == "follower_of" for rel in result.relationships_added)

    def test_explicit_cooldown_overrides_domain(self, state, neighbors):
        first, _ = neighbors
        state.cooldowns.record(first.id, "follower_of", state.tick)
        state.tick = 1
        system = RelationshipFormation({"romance_base_chance": 0.0, "cooldowns": {"follower_of": 1}})

        result = system.apply(EngineView(state), 1.0)
        assert [rel.kind for rel in result.relationships_added] == ["follower_of"]

    def test_unknown_parameter(self):
        with pytest.raises(KeyError):
            RelationshipFormation({"gossip_chance": 0.4})


class TestLifecycle:
    """Tests for aging and death."""

    def test_old_npc_dies_and_loses_live_edges(self, state, view, spawn, relate, colony):
        mayor = spawn("npc", "mayor", "Quillan")
        relate("leader_of", mayor, colony)
        state.tick = 100

        result = Lifecycle().apply(view, 1.0)
        MutationGate(state).commit_system("lifecycle", result)

        assert state.store.get_entity(mayor.id).status == "dead"
        rel = state.store.find_relationships(kind="leader_of", src=mayor.id)[0]
        assert rel.status == RelationshipStatus.HISTORICAL
        assert rel.archived_at == 100

    def test_isolated_entities_are_forgotten(self, state, view, colony):
        state.tick = 60
        result = Lifecycle().apply(view, 1.0)

        changes = {mod.entity_id: mod.changes for mod in result.entities_modified}
        assert changes[colony.id] == {"prominence": Prominence.FORGOTTEN}

    def test_era_entities_exempt(self, state, view, spawn):
        spawn("era", "expansion", "Great Thaw")
        state.tick = 200

        assert Lifecycle().apply(view, 1.0).entities_modified == []


class TestRelationshipMaintenance:
    """Tests for decay and culling."""

    @pytest.fixture
    def decaying_state(self, document, make_domain):
        rival = next(kind for kind in document["relationshipKinds"] if kind["kind"] == "rival_of")
        rival.update({"decayRate": "fast", "cullable": True})
        return SimulationState.create(make_domain(), ScriptedRng())

    def _rivals(self, state, tick):
        store = state.store
        left = store.create_entity({"kind": "npc", "subtype": "outlaw"})
        right = store.create_entity({"kind": "npc", "subtype": "hero"})
        store.add_relationship({"kind": "rival_of", "src": left, "dst": right}, tick)
        return left, right

    def test_distant_bonds_decay(self, decaying_state):
        self._rivals(decaying_state, 0)
        decaying_state.tick = 5

        result = RelationshipMaintenance().apply(EngineView(decaying_state), 1.0)
        assert len(result.strength_changes) == 1
        assert result.strength_changes[0].delta == pytest.approx(-0.3)
        assert result.relationships_archived == []

    def test_weak_old_bonds_are_culled(self, decaying_state):
        left, right = self._rivals(decaying_state, 0)
        decaying_state.store.modify_relationship_strength(left, right, "rival_of", -0.4)
        decaying_state.tick = 25

        result = RelationshipMaintenance().apply(EngineView(decaying_state), 1.0)
        MutationGate(decaying_state).commit_system("relationship_maintenance", result)
        assert decaying_state.store.get_live_relationship(left, right, "rival_of") is None

    def test_off_frequency_ticks_skip(self, decaying_state):
        self._rivals(decaying_state, 0)
        decaying_state.tick = 3

        assert RelationshipMaintenance().apply(EngineView(decaying_state), 1.0).strength_changes == []


class TestProminenceEvolution:
    """Tests for prominence drift."""

    def test_isolated_entity_fades(self, view, colony):
        result = ProminenceEvolution().apply(view, 1.0)

        changes = {mod.entity_id: mod.changes for mod in result.entities_modified}
        assert changes[colony.id] == {"prominence": Prominence.FORGOTTEN}

    def test_forgotten_stays_forgotten(self, state, view, colony):
        state.store.update_entity(colony.id, {"prominence": Prominence.FORGOTTEN})
        assert ProminenceEvolution().apply(view, 1.0).entities_modified == []
