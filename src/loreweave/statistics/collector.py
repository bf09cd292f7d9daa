"""Run statistics and fitness metrics consumed by parameter tuning."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import time
from typing import TYPE_CHECKING

from loreweave.domain.schema import DomainSchema
from loreweave.statistics.distribution import DistributionStats, measure
from loreweave.statistics.validation import validate_world
from loreweave.util.numbers import mean, std_dev

if TYPE_CHECKING:
    from loreweave.engine.state import SimulationState

AGGRESSIVE_SYSTEM_THRESHOLD = 500
AGGRESSIVE_WARNING_INTERVAL = 20


@dataclass
class FitnessMetrics:
    entity_distribution_fitness: float
    prominence_distribution_fitness: float
    relationship_diversity_fitness: float
    connectivity_fitness: float
    overall_fitness: float
    constraint_violations: int
    convergence_rate: float
    stability_score: float

    def to_dict(self) -> dict:
        return {
            "entityDistributionFitness": self.entity_distribution_fitness,
            "prominenceDistributionFitness": self.prominence_distribution_fitness,
            "relationshipDiversityFitness": self.relationship_diversity_fitness,
            "connectivityFitness": self.connectivity_fitness,
            "overallFitness": self.overall_fitness,
            "constraintViolations": self.constraint_violations,
            "convergenceRate": self.convergence_rate,
            "stabilityScore": self.stability_score,
        }


def _inverted(deviation: float) -> float:
    return 1 - min(1.0, deviation)


def stability_score(growth_history: list[float]) -> float:
    """1 minus the coefficient of variation of per-epoch relationship growth."""
    if len(growth_history) <= 5:
        return 1.0
    average = mean(growth_history)
    if average <= 0:
        return 1.0
    return max(0.0, 1 - std_dev(growth_history) / average)


def fitness_metrics(
    stats: DistributionStats,
    domain: DomainSchema,
    epochs: int,
    growth_history: list[float],
) -> FitnessMetrics:
    entity = _inverted(stats.entity_deviation)
    prominence = _inverted(stats.prominence_deviation)
    diversity = _inverted(stats.relationship_deviation)
    connectivity = _inverted(stats.connectivity_deviation)

    violations = 0
    targets = domain.distribution_targets
    if targets is not None:
        if stats.graph.isolated_node_ratio > targets.max_isolated_ratio:
            violations += 1
        if stats.entity_deviation > 0.5:
            violations += 1
        if max(stats.relationship_ratios.values(), default=0.0) > targets.max_single_relationship_ratio:
            violations += 1

    return FitnessMetrics(
        entity_distribution_fitness=entity,
        prominence_distribution_fitness=prominence,
        relationship_diversity_fitness=diversity,
        connectivity_fitness=connectivity,
        overall_fitness=entity * 0.3 + prominence * 0.2 + diversity * 0.2 + connectivity * 0.3,
        constraint_violations=violations,
        convergence_rate=1 - stats.overall_deviation if epochs > 0 else 0.0,
        stability_score=stability_score(growth_history),
    )


@dataclass
class StatisticsCollector:
    template_applications: Counter = field(default_factory=Counter)
    system_executions: Counter = field(default_factory=Counter)
    system_relationships: Counter = field(default_factory=Counter)
    aggressive_warnings: Counter = field(default_factory=Counter)
    last_aggressive_check: dict[str, int] = field(default_factory=dict)
    warnings: int = 0
    budget_hits: int = 0
    faults: int = 0
    growth_history: list[float] = field(default_factory=list)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    def record_template_application(self, template_id: str) -> None:
        self.template_applications[template_id] += 1

    def record_system_execution(self, system_id: str, relationships_added: int, tick: int) -> bool:
        """Count an execution; True when the system should be flagged as aggressive."""
        self.system_executions[system_id] += 1
        self.system_relationships[system_id] += relationships_added
        last = self.last_aggressive_check.get(system_id, 0)
        if self.system_relationships[system_id] > AGGRESSIVE_SYSTEM_THRESHOLD and tick - last > AGGRESSIVE_WARNING_INTERVAL:
            self.last_aggressive_check[system_id] = tick
            self.aggressive_warnings[system_id] += 1
            self.warnings += 1
            return True
        return False

    def record_budget_hit(self) -> None:
        self.warnings += 1
        self.budget_hits += 1

    def record_fault(self) -> None:
        self.faults += 1

    def record_epoch(self, state: "SimulationState") -> dict:
        """Snapshot the state at an epoch boundary and remember its growth rate."""
        entities = state.store.get_entities()
        rate = state.growth_metrics.average
        self.growth_history.append(rate)
        snapshot = {
            "epoch": state.epoch,
            "tick": state.tick,
            "era": state.current_era,
            "totalEntities": len(entities),
            "entitiesByKind": dict(Counter(entity.kind for entity in entities)),
            "totalRelationships": state.store.get_relationship_count(),
            "liveRelationships": state.store.get_relationship_count(include_historical=False),
            "pressures": state.pressures.snapshot(),
            "relationshipGrowthRate": rate,
        }
        state.epoch_stats.append(snapshot)
        return snapshot

    def finish(self) -> None:
        self.finished = time.perf_counter()

    @property
    def generation_time_ms(self) -> int:
        end = self.finished if self.finished is not None else time.perf_counter()
        return int((end - self.started) * 1000)

    def performance_stats(self, state: "SimulationState") -> dict:
        return {
            "templatesApplied": dict(self.template_applications),
            "totalTemplateApplications": sum(self.template_applications.values()),
            "systemsExecuted": dict(self.system_executions),
            "totalSystemExecutions": sum(self.system_executions.values()),
            "warnings": self.warnings,
            "faults": self.faults,
            "relationshipBudgetHits": self.budget_hits,
            "droppedRelationships": {str(scope): count for scope, count in state.budget.total_dropped.items()},
            "aggressiveSystemWarnings": dict(self.aggressive_warnings),
            "averageRelationshipGrowthRate": state.growth_metrics.average,
            "maxRelationshipGrowthRate": max(self.growth_history, default=0.0),
            "relationshipGrowthHistory": list(self.growth_history),
        }

    def build(self, state: "SimulationState") -> dict:
        stats = measure(state.store, state.domain)
        fitness = fitness_metrics(stats, state.domain, len(state.epoch_stats), self.growth_history)
        return {
            "fitnessMetrics": fitness.to_dict(),
            "distributionStats": stats.to_dict(),
            "validationStats": validate_world(state.store).to_dict(),
            "performanceStats": self.performance_stats(state),
            "epochStats": list(state.epoch_stats),
            "totalTicks": state.tick,
            "totalEpochs": state.epoch,
            "finalEntityCount": state.store.get_entity_count(),
            "finalRelationshipCount": state.store.get_relationship_count(),
            "generationTimeMs": self.generation_time_ms,
        }
