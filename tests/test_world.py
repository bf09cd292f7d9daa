"""Tests for pressures and era scheduling."""

import pytest

from loreweave.world.eras import EraClock, EraSchedule
from loreweave.world.pressures import PressureModel, pressure_threshold

from conftest import ScriptedRng


class TestPressureThreshold:
    """Tests for the pressure band gate."""

    def test_at_minimum_passes(self):
        assert pressure_threshold(20.0, 20.0, 80.0, 0.3, ScriptedRng(default=0.99))

    def test_below_minimum_fails(self):
        assert not pressure_threshold(19.9, 20.0, 80.0, 0.3, ScriptedRng(default=0.0))

    def test_within_band_passes(self):
        assert pressure_threshold(50.0, 20.0, 80.0, 0.3, ScriptedRng(default=0.99))

    def test_above_band_uses_extreme_chance(self):
        assert pressure_threshold(95.0, 20.0, 80.0, 0.3, ScriptedRng(default=0.1))
        assert not pressure_threshold(95.0, 20.0, 80.0, 0.3, ScriptedRng(default=0.5))


class TestPressureModel:
    """Tests for pressure drift."""

    @pytest.fixture
    def pressures(self, domain):
        return PressureModel.from_domain(domain)

    def test_initial_values(self, pressures):
        assert pressures.snapshot() == {"conflict": 20.0, "stability": 50.0}

    def test_level_clamps_raw_value(self, pressures):
        pressures.apply_changes({"conflict": 500.0})

        assert pressures.get("conflict") == 520.0
        assert pressures.level("conflict") == 100.0

    def test_unknown_pressure_ignored(self, pressures):
        assert not pressures.apply_delta("famine", 5.0)
        assert "famine" not in pressures.snapshot()

    def test_tick_update_decays_toward_equilibrium(self, pressures, state):
        pressures.apply_changes({"conflict": 40.0})
        pressures.tick_update(state.store, state.era)

        assert pressures.get("conflict") == pytest.approx(56.0)

    def test_drivers_push_pressure(self, make_domain, state, spawn):
        domain = make_domain(
            {
                "pressures": [
                    {
                        "id": "conflict",
                        "name": "Conflict",
                        "initial": 10.0,
                        "drivers": [{"entityKind": "npc", "subtype": "outlaw", "weight": 2.0}],
                    }
                ]
            }
        )
        pressures = PressureModel.from_domain(domain)
        spawn("npc", "outlaw")
        spawn("npc", "outlaw")
        pressures.tick_update(state.store, domain.eras[0])

        assert pressures.get("conflict") == 14.0

    def test_highest(self, pressures):
        assert pressures.highest(["conflict", "stability", "famine"]) == "stability"
        assert pressures.highest(["famine"]) is None


class TestEraSchedule:
    """Tests for era ordering and transitions."""

    @pytest.fixture
    def schedule(self, domain):
        return EraSchedule.from_domain(domain)

    def test_next_era(self, schedule):
        assert schedule.next_era("expansion").id == "conflict"
        assert schedule.next_era("conflict") is None

    def test_default_weights(self, schedule):
        assert schedule.template_weight("expansion", "anything") == 1.0
        assert schedule.system_modifier("expansion", "anything") == 1.0

    def test_unknown_era(self, schedule):
        with pytest.raises(KeyError):
            schedule.get("golden_age")

    def test_waits_for_minimum_length(self, schedule, state):
        clock = EraClock(tick=5, era_started_tick=0, last_transition_tick=None)
        assert not schedule.should_transition("expansion", clock, {}, state.store)

    def test_time_condition(self, schedule, state):
        clock = EraClock(tick=10, era_started_tick=0, last_transition_tick=None)
        assert schedule.should_transition("expansion", clock, {}, state.store)

    def test_last_era_never_transitions(self, schedule, state):
        clock = EraClock(tick=500, era_started_tick=0, last_transition_tick=None)
        assert not schedule.should_transition("conflict", clock, {}, state.store)

    def test_pressure_condition(self, make_domain, state):
        domain = make_domain(
            {
                "eras": [
                    {
                        "id": "expansion",
                        "name": "Great Thaw",
                        "transitionConditions": [{"type": "pressure", "pressureId": "conflict", "threshold": 60}],
                    },
                    {"id": "conflict", "name": "Faction Wars"},
                ]
            }
        )
        schedule = EraSchedule.from_domain(domain)
        clock = EraClock(tick=10, era_started_tick=0, last_transition_tick=None)

        assert not schedule.should_transition("expansion", clock, {"conflict": 40.0}, state.store)
        assert schedule.should_transition("expansion", clock, {"conflict": 70.0}, state.store)

    def test_no_conditions_waits_double_length(self, make_domain, state):
        domain = make_domain({"eras": [{"id": "expansion", "name": "Great Thaw"}, {"id": "conflict", "name": "Wars"}]})
        schedule = EraSchedule.from_domain(domain)

        assert not schedule.should_transition("expansion", EraClock(10, 0, None), {}, state.store)
        assert schedule.should_transition("expansion", EraClock(11, 0, None), {}, state.store)
