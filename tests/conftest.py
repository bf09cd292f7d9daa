"""Shared fixtures: a small colonies domain and scripted randomness."""

import copy

import pytest

from loreweave.domain.loader import parse_domain
from loreweave.engine.state import SimulationState
from loreweave.engine.view import EngineView
from loreweave.util.rng import Rng


class ScriptedRng(Rng):
    """Rng whose random() replays queued values, then a fixed default."""

    def __init__(self, values=None, default=0.0, seed=7):
        super().__init__(seed)
        self.values = list(values or [])
        self.default = default

    def random(self):
        if self.values:
            return self.values.pop(0)
        return self.default


SMALL_DOMAIN = {
    "name": "test-colonies",
    "entityKinds": [
        {
            "kind": "npc",
            "subtypes": ["merchant", "hero", "mayor", "outlaw"],
            "statuses": ["alive", "dead"],
            "defaultStatus": "alive",
            "terminalStatuses": ["dead"],
        },
        {
            "kind": "location",
            "subtypes": ["colony", "iceberg"],
            "statuses": ["thriving", "abandoned"],
            "defaultStatus": "thriving",
        },
        {
            "kind": "faction",
            "subtypes": ["company", "criminal"],
            "statuses": ["active", "disbanded"],
            "defaultStatus": "active",
            "terminalStatuses": ["disbanded"],
        },
        {
            "kind": "era",
            "subtypes": ["expansion", "conflict"],
            "statuses": ["future", "current", "historical"],
            "defaultStatus": "future",
        },
    ],
    "relationshipKinds": [
        {"kind": "resident_of", "srcKinds": ["npc"], "dstKinds": ["location"], "category": "immutable_fact"},
        {"kind": "member_of", "srcKinds": ["npc"], "dstKinds": ["faction"], "category": "political"},
        {"kind": "leader_of", "srcKinds": ["npc"], "dstKinds": ["location", "faction"], "category": "political"},
        {
            "kind": "follower_of",
            "srcKinds": ["npc"],
            "dstKinds": ["npc"],
            "cooldown": 5,
            "contradicts": ["enemy_of"],
        },
        {"kind": "rival_of", "srcKinds": ["npc"], "dstKinds": ["npc"], "cooldown": 5},
        {"kind": "enemy_of", "srcKinds": ["npc"], "dstKinds": ["npc"], "cooldown": 8},
        {"kind": "lover_of", "srcKinds": ["npc"], "dstKinds": ["npc"], "cooldown": 15, "contradicts": ["enemy_of"]},
        {"kind": "allied_with", "srcKinds": ["faction"], "dstKinds": ["faction"], "category": "political"},
        {
            "kind": "at_war_with",
            "srcKinds": ["faction"],
            "dstKinds": ["faction"],
            "category": "political",
            "contradicts": ["allied_with"],
        },
        {"kind": "active_during", "dstKinds": ["era"], "category": "immutable_fact"},
    ],
    "pressures": [
        {"id": "conflict", "name": "Conflict", "initial": 20.0, "equilibrium": 20.0, "decay": 0.1},
        {"id": "stability", "name": "Stability", "initial": 50.0, "equilibrium": 50.0},
    ],
    "eras": [
        {
            "id": "expansion",
            "name": "Great Thaw",
            "transitionConditions": [{"type": "time", "minTicks": 5}],
            "transitionEffects": {"pressureChanges": {"conflict": 10.0}},
        },
        {"id": "conflict", "name": "Faction Wars"},
    ],
    "distributionTargets": {
        "entities": {
            "npc": {"hero": {"target": 10}, "merchant": {"target": 10}, "mayor": {"target": 4}},
            "location": {"colony": {"target": 4}},
        },
    },
    "engine": {
        "epochLength": 5,
        "maxTicks": 20,
        "templatesPerGrowth": 2,
        "minEraLength": 5,
        "transitionCooldown": 0,
        "targetEntitiesPerKind": 10,
    },
}


@pytest.fixture
def document():
    """A fresh copy of the small domain document."""
    return copy.deepcopy(SMALL_DOMAIN)


@pytest.fixture
def make_domain(document):
    def build(overrides=None):
        return parse_domain(document, overrides)

    return build


@pytest.fixture
def domain(make_domain):
    return make_domain()


@pytest.fixture
def rng():
    """Every probability roll succeeds."""
    return ScriptedRng(default=0.0)


@pytest.fixture
def state(domain, rng):
    return SimulationState.create(domain, rng)


@pytest.fixture
def view(state):
    return EngineView(state)


@pytest.fixture
def spawn(state):
    """Create an entity in the state's store and return it."""

    def create(kind, subtype, name="", **fields):
        entity_id = state.store.create_entity({"kind": kind, "subtype": subtype, "name": name, **fields}, state.tick)
        return state.store.get_entity(entity_id)

    return create


@pytest.fixture
def relate(state):
    def add(kind, src, dst):
        state.store.add_relationship({"kind": kind, "src": src.id, "dst": dst.id}, state.tick)

    return add
