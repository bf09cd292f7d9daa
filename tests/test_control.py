"""Tests for budgets, cooldowns, compatibility and saturation."""

import pytest

from loreweave.control.budget import BudgetScope, RelationshipBudget
from loreweave.control.compatibility import CompatibilityMatrix
from loreweave.control.cooldowns import CooldownTracker
from loreweave.control.rate import DiscoveryState, GrowthMetrics, RateLimitState
from loreweave.control.saturation import SaturationMonitor
from loreweave.errors import ConfigError


class TestRelationshipBudget:
    """Tests for per-window relationship budgets."""

    @pytest.fixture
    def budget(self):
        return RelationshipBudget(max_per_simulation_tick=3, max_per_growth_phase=5)

    def test_consumes_until_limit(self, budget):
        budget.open(BudgetScope.SIMULATION_TICK, 1)
        results = [budget.try_consume() for _ in range(5)]
        window = budget.close()

        assert results == [True, True, True, False, False]
        assert window.used == 3
        assert window.dropped == 2
        assert budget.total_dropped[BudgetScope.SIMULATION_TICK] == 2

    def test_growth_window_uses_its_own_limit(self, budget):
        window = budget.open(BudgetScope.GROWTH_PHASE, 1)
        assert window.limit == 5

    def test_reopening_resets_usage(self, budget):
        budget.open(BudgetScope.SIMULATION_TICK, 1)
        for _ in range(3):
            budget.try_consume()
        budget.close()

        budget.open(BudgetScope.SIMULATION_TICK, 2)
        assert budget.try_consume()

    def test_unbounded_without_window(self, budget):
        assert all(budget.try_consume() for _ in range(10))

    def test_zero_limit_rejects_everything(self):
        budget = RelationshipBudget(max_per_simulation_tick=0, max_per_growth_phase=0)
        budget.open(BudgetScope.SIMULATION_TICK, 1)
        assert not budget.try_consume()

    def test_scaled_from_domain(self, make_domain):
        domain = make_domain(
            {"engine": {"scaleFactor": 2.0, "relationshipBudget": {"maxPerSimulationTick": 10, "maxPerGrowthPhase": 4}}}
        )
        budget = RelationshipBudget.from_domain(domain)

        assert budget.max_per_simulation_tick == 20
        assert budget.max_per_growth_phase == 8


class TestCooldownTracker:
    """Tests for per-entity formation cooldowns."""

    def test_blocks_until_elapsed(self):
        tracker = CooldownTracker()
        tracker.record("npc_1", "follower_of", 10)

        assert not tracker.can_form("npc_1", "follower_of", 5, 14)
        assert tracker.can_form("npc_1", "follower_of", 5, 15)

    def test_independent_per_kind_and_entity(self):
        tracker = CooldownTracker()
        tracker.record("npc_1", "follower_of", 10)

        assert tracker.can_form("npc_1", "rival_of", 5, 11)
        assert tracker.can_form("npc_2", "follower_of", 5, 11)

    def test_zero_cooldown_always_allows(self):
        tracker = CooldownTracker()
        tracker.record("npc_1", "follower_of", 10)
        assert tracker.can_form("npc_1", "follower_of", 0, 10)

    def test_dict_round_trip(self):
        tracker = CooldownTracker()
        tracker.record("npc_1", "enemy_of", 4)

        restored = CooldownTracker.from_dict(tracker.to_dict())
        assert restored.last_formation("npc_1", "enemy_of") == 4

    def test_view_uses_domain_cooldown_by_default(self, state, view):
        view.record_relationship_formation("npc_1", "enemy_of")
        state.tick = 7

        assert not view.can_form_relationship("npc_1", "enemy_of")
        assert view.can_form_relationship("npc_1", "enemy_of", cooldown=7)
        state.tick = 8
        assert view.can_form_relationship("npc_1", "enemy_of")


class TestCompatibilityMatrix:
    """Tests for contradicting relationship kinds."""

    def test_contradictions_are_symmetric(self, domain):
        matrix = CompatibilityMatrix.from_domain(domain)

        assert matrix.contradicts("follower_of", "enemy_of")
        assert matrix.contradicts("enemy_of", "follower_of")
        assert not matrix.contradicts("follower_of", "rival_of")

    def test_pair_with_contradicting_edge_is_incompatible(self, state, spawn, relate):
        left = spawn("npc", "merchant")
        right = spawn("npc", "merchant")
        relate("enemy_of", right, left)

        assert not state.compatibility.compatible(state.store, left.id, right.id, "follower_of")
        assert state.compatibility.compatible(state.store, left.id, right.id, "rival_of")


class TestSaturationMonitor:
    """Tests for distribution-target saturation."""

    def test_heroes_at_overshoot(self, state, spawn):
        for _ in range(15):
            spawn("npc", "hero")

        assert state.saturation.is_saturated("npc", "hero")
        assert state.saturation.saturation_ratio("npc", "hero") == 1.5

    def test_below_overshoot_not_saturated(self, state, spawn):
        for _ in range(14):
            spawn("npc", "hero")

        assert not state.saturation.is_saturated("npc", "hero")
        assert state.saturation.deficit("npc", "hero") == 0

    def test_untargeted_subtype_uses_default(self, state):
        assert state.saturation.target("npc", "outlaw") == 20

    def test_missing_targets_is_config_error(self, make_domain):
        domain = make_domain()
        domain.distribution_targets = None
        monitor = SaturationMonitor(domain=domain, count=lambda kind, subtype: 0)

        with pytest.raises(ConfigError) as excinfo:
            monitor.is_saturated("npc", "hero")
        assert excinfo.value.field_path == "distributionTargets"


class TestRatePacing:
    """Tests for creation and discovery pacing."""

    def test_rate_limit_counts_epoch_creations(self):
        limit = RateLimitState()
        limit.record_creation(3)
        limit.record_creation(5)

        assert limit.creations_this_epoch == 2
        assert limit.ticks_since_creation(9) == 4
        limit.reset_epoch()
        assert limit.creations_this_epoch == 0

    def test_discovery_spacing_and_epoch_cap(self):
        discovery = DiscoveryState()
        assert discovery.can_discover(1, 5, 2)
        discovery.record_discovery(1)

        assert not discovery.can_discover(3, 5, 2)
        assert discovery.can_discover(6, 5, 2)
        discovery.record_discovery(6)
        assert not discovery.can_discover(20, 5, 2)

    def test_growth_metrics_window(self):
        metrics = GrowthMetrics(window=3)
        for tick, added in enumerate([3, 6, 9, 12], start=1):
            metrics.record(tick, added)

        assert list(metrics.relationships_per_tick) == [6, 9, 12]
        assert metrics.average == 9.0
