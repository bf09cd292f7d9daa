"""Tests for naming, narrative events and enrichment batching."""

import asyncio

import pytest

from loreweave.domain.models import HardState, StateChange
from loreweave.naming import Naming, SyllableNameGenerator, fallback_name
from loreweave.narrative.enrichment import EnrichmentQueue
from loreweave.narrative.events import NarrativeEventBuilder
from loreweave.templates.base import PendingEntity
from loreweave.util.rng import Rng


def name_for(naming, entity):
    return asyncio.run(naming.name_for(entity))


class TestNaming:
    """Tests for the name collaborator wrapper."""

    def test_fallback_label(self):
        assert fallback_name("npc", "trade_captain", 4) == "Trade Captain 4"
        assert fallback_name("location", "", 2) == "Location 2"

    def test_no_generator(self):
        naming = Naming()
        assert name_for(naming, PendingEntity(kind="npc", subtype="hero")) == "Hero 1"
        assert name_for(naming, PendingEntity(kind="npc", subtype="hero")) == "Hero 2"

    def test_preset_name_kept(self):
        naming = Naming(SyllableNameGenerator(Rng(1)))
        assert name_for(naming, PendingEntity(kind="npc", subtype="hero", name="Tamsin")) == "Tamsin"

    def test_async_generator(self):
        class Remote:
            async def generate_one(self, culture, context):
                return f"  {context['subtype'].title()}ward  "

        naming = Naming(Remote())
        assert name_for(naming, PendingEntity(kind="npc", subtype="mayor")) == "Mayorward"
        assert naming.failures == 0

    def test_blank_name_falls_back(self):
        class Blank:
            def generate_one(self, culture, context):
                return "   "

        naming = Naming(Blank())
        assert name_for(naming, PendingEntity(kind="faction", subtype="company")) == "Company 1"
        assert naming.failures == 1


class TestSyllableNames:
    """Tests for the bundled syllable generator."""

    @pytest.fixture
    def generator(self):
        return SyllableNameGenerator(Rng(5))

    def test_names_are_unique_and_readable(self, generator):
        names = [generator.generate_one("", {"kind": "npc"}) for _ in range(20)]

        assert len(set(names)) == 20
        assert all(name.isalpha() and name[0].isupper() for name in names)

    def test_location_suffix(self, generator):
        name = generator.generate_one("", {"kind": "location"})
        assert name.endswith(("hold", "reach", "fen", "mere", "crag"))

    def test_culture_syllables(self):
        generator = SyllableNameGenerator(Rng(2), syllables={"ice": ["fro", "sta"]})
        name = generator.generate_one("ice", {"kind": "npc"})
        assert set(name.lower()) <= set("frosta")

    def test_same_seed_same_names(self):
        first = SyllableNameGenerator(Rng(9))
        second = SyllableNameGenerator(Rng(9))
        assert [first.generate_one("", {}) for _ in range(5)] == [second.generate_one("", {}) for _ in range(5)]


class TestNarrativeEvents:
    """Tests for narrative event construction."""

    @pytest.fixture
    def hero(self):
        return HardState(id="npc_1", kind="npc", subtype="hero", name="Tamsin", status="alive", prominence="renowned")

    def test_entity_created(self, hero):
        builder = NarrativeEventBuilder()
        event = builder.entity_created(3, "expansion", hero, "hero_emergence", "A hero rises")

        assert event.id == "event_1"
        assert event.tick == 3
        assert event.era == "expansion"
        assert event.event_kind == "entity_created"
        assert event.significance == 0.75
        assert event.action == "emerged"
        assert event.headline == "Tamsin appears"
        assert event.description == "A hero rises"
        assert event.narrative_tags == ["npc", "hero"]

    def test_status_change_raises_significance(self, hero):
        builder = NarrativeEventBuilder()
        change = StateChange(entity_id=hero.id, field="status", previous_value="alive", new_value="dead")
        event = builder.state_changed(9, "expansion", hero, [change], "lifecycle")

        assert event.significance == pytest.approx(0.95)
        assert event.description == "status -> dead"

    def test_era_transition(self):
        builder = NarrativeEventBuilder()
        ending = HardState(id="era_1", kind="era", subtype="expansion", status="historical")
        beginning = HardState(id="era_2", kind="era", subtype="conflict", status="current")
        event = builder.era_transition(10, "conflict", ending, beginning, "The thaw ends.")

        assert event.subject == "era_1"
        assert event.object == "era_2"
        assert event.participants == ["era_1", "era_2"]
        assert event.significance == 1.0

    def test_since(self, hero):
        builder = NarrativeEventBuilder()
        builder.entity_created(1, "expansion", hero, "a", "first")
        builder.entity_created(5, "expansion", hero, "b", "second")

        assert [event.description for event in builder.since(5)] == ["second"]


class TestEnrichmentQueue:
    """Tests for batched enrichment."""

    @pytest.fixture
    def events(self):
        builder = NarrativeEventBuilder()
        for index in range(5):
            entity = HardState(id=f"npc_{index}", kind="npc", subtype="hero", status="alive")
            builder.entity_created(index, "expansion", entity, "sample", f"event {index}")
        return builder.events

    class Service:
        def __init__(self, abort_after=None):
            self.batches = []
            self.abort_after = abort_after

        def enrich(self, events):
            self.batches.append([event.id for event in events])
            return {event.subject: f"lore {event.id}" for event in events}

        def is_aborted(self):
            return self.abort_after is not None and len(self.batches) >= self.abort_after

    def test_batches(self, events):
        service = self.Service()
        outcomes = asyncio.run(EnrichmentQueue(service, batch_size=2).run(events))

        assert [outcome.event_ids for outcome in outcomes] == [
            ["event_1", "event_2"],
            ["event_3", "event_4"],
            ["event_5"],
        ]
        assert outcomes[2].patches == {"npc_4": "lore event_5"}
        assert not any(outcome.failed for outcome in outcomes)

    def test_async_service(self, events):
        class Remote:
            async def enrich(self, batch):
                return {batch[0].subject: "remote lore"}

        outcomes = asyncio.run(EnrichmentQueue(Remote(), batch_size=5).run(events))
        assert outcomes[0].patches == {"npc_0": "remote lore"}

    def test_failing_batch_does_not_stop_the_rest(self, events):
        class Flaky(self.Service):
            def enrich(self, batch):
                if not self.batches:
                    self.batches.append([])
                    raise RuntimeError("timeout")
                return super().enrich(batch)

        outcomes = asyncio.run(EnrichmentQueue(Flaky(), batch_size=2).run(events))

        assert [outcome.failed for outcome in outcomes] == [True, False, False]
        assert outcomes[0].reason == "no enrichment applied"

    def test_unparseable_patches(self, events):
        class Garbled:
            def enrich(self, batch):
                return ["not", "a", "mapping"]

        outcomes = asyncio.run(EnrichmentQueue(Garbled(), batch_size=5).run(events))
        assert outcomes[0].failed
        assert outcomes[0].patches == {}

    def test_abort_stops_the_loop(self, events):
        service = self.Service(abort_after=2)
        outcomes = asyncio.run(EnrichmentQueue(service, batch_size=2).run(events))

        assert len(outcomes) == 2
        assert not outcomes[0].failed
        assert outcomes[1].failed
        assert outcomes[1].reason == "aborted while awaiting enrichment"
        assert len(service.batches) == 2
