"""Rate limiting, discovery pacing and growth metrics."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging

from loreweave import config
from loreweave.util.numbers import mean

logger = logging.getLogger(__name__)


@dataclass
class RateLimitState:
    current_threshold: float = 0.0
    last_creation_tick: int | None = None
    creations_this_epoch: int = 0

    def record_creation(self, tick: int) -> None:
        self.last_creation_tick = tick
        self.creations_this_epoch += 1

    def ticks_since_creation(self, tick: int) -> int | None:
        if self.last_creation_tick is None:
            return None
        return tick - self.last_creation_tick

    def reset_epoch(self) -> None:
        self.creations_this_epoch = 0

    def to_dict(self) -> dict:
        return {
            "currentThreshold": self.current_threshold,
            "lastCreationTick": self.last_creation_tick,
            "creationsThisEpoch": self.creations_this_epoch,
        }


@dataclass
class DiscoveryState:
    current_threshold: float = 0.0
    last_discovery_tick: int | None = None
    discoveries_this_epoch: int = 0

    def can_discover(self, tick: int, min_ticks_between: int, max_per_epoch: int) -> bool:
        if self.discoveries_this_epoch >= max_per_epoch:
            return False
        if self.last_discovery_tick is None:
            return True
        return tick - self.last_discovery_tick >= min_ticks_between

    def record_discovery(self, tick: int) -> None:
        self.last_discovery_tick = tick
        self.discoveries_this_epoch += 1

    def reset_epoch(self) -> None:
        self.discoveries_this_epoch = 0

    def to_dict(self) -> dict:
        return {
            "currentThreshold": self.current_threshold,
            "lastDiscoveryTick": self.last_discovery_tick,
            "discoveriesThisEpoch": self.discoveries_this_epoch,
        }


@dataclass
class GrowthMetrics:
    window: int = config.GROWTH_WINDOW
    relationships_per_tick: deque[int] = field(default_factory=deque)

    def record(self, tick: int, added: int) -> None:
        self.relationships_per_tick.append(added)
        while len(self.relationships_per_tick) > self.window:
            self.relationships_per_tick.popleft()
        if len(self.relationships_per_tick) >= self.window // 2 and self.average > config.GROWTH_WARNING_RATE:
            logger.warning(
                "High relationship growth at tick %s: %.1f per tick over %s ticks",
                tick,
                self.average,
                len(self.relationships_per_tick),
            )

    @property
    def average(self) -> float:
        return mean(list(self.relationships_per_tick))

    def to_dict(self) -> dict:
        return {
            "relationshipsPerTick": list(self.relationships_per_tick),
            "averageGrowthRate": self.average,
        }
