"""Hard relationship budgets per simulation tick and growth phase."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from enum import StrEnum

from loreweave.domain.schema import DomainSchema

logger = logging.getLogger(__name__)


class BudgetScope(StrEnum):
    SIMULATION_TICK = "simulation_tick"
    GROWTH_PHASE = "growth_phase"


@dataclass
class BudgetWindow:
    scope: BudgetScope
    tick: int
    limit: int
    used: int = 0
    dropped: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def try_consume(self, amount: int = 1) -> bool:
        if self.used + amount > self.limit:
            self.dropped += amount
            return False
        self.used += amount
        return True


@dataclass
class RelationshipBudget:
    max_per_simulation_tick: int
    max_per_growth_phase: int
    current: BudgetWindow | None = None
    total_dropped: dict[BudgetScope, int] = field(
        default_factory=lambda: {scope: 0 for scope in BudgetScope}
    )

    @classmethod
    def from_domain(cls, domain: DomainSchema) -> "RelationshipBudget":
        budget = domain.engine.relationship_budget
        return cls(
            max_per_simulation_tick=domain.scaled(budget.max_per_simulation_tick),
            max_per_growth_phase=domain.scaled(budget.max_per_growth_phase),
        )

    def open(self, scope: BudgetScope, tick: int) -> BudgetWindow:
        limit = self.max_per_simulation_tick if scope == BudgetScope.SIMULATION_TICK else self.max_per_growth_phase
        self.current = BudgetWindow(scope=scope, tick=tick, limit=limit)
        return self.current

    def close(self) -> BudgetWindow | None:
        window = self.current
        self.current = None
        if window is not None and window.dropped:
            self.total_dropped[window.scope] += window.dropped
            logger.warning(
                "Relationship budget exhausted at tick %s (%s): %s dropped",
                window.tick,
                window.scope,
                window.dropped,
            )
        return window

    def try_consume(self, amount: int = 1) -> bool:
        """Consume from the open window; without one the budget is unbounded."""
        if self.current is None:
            return True
        return self.current.try_consume(amount)
