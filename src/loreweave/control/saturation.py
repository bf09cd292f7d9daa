"""Saturation of entity populations against distribution targets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from loreweave import config
from loreweave.domain.schema import DistributionTargets, DomainSchema
from loreweave.errors import ConfigError

EntityCounter = Callable[[str, str], int]


@dataclass
class SaturationMonitor:
    domain: DomainSchema
    count: EntityCounter

    def _targets(self) -> DistributionTargets:
        targets = self.domain.distribution_targets
        if targets is None:
            raise ConfigError("distributionTargets", "required for saturation checks but not configured")
        return targets

    def target(self, kind: str, subtype: str) -> int:
        entry = self._targets().entities.get(kind, {}).get(subtype)
        base = entry.target if entry is not None else config.DEFAULT_SATURATION_TARGET
        return self.domain.scaled(base)

    def is_saturated(self, kind: str, subtype: str, overshoot: float | None = None) -> bool:
        factor = config.DEFAULT_OVERSHOOT_FACTOR if overshoot is None else overshoot
        return self.count(kind, subtype) >= self.target(kind, subtype) * factor

    def saturation_ratio(self, kind: str, subtype: str) -> float:
        target = self.target(kind, subtype)
        if target <= 0:
            return float("inf") if self.count(kind, subtype) else 0.0
        return self.count(kind, subtype) / target

    def deficit(self, kind: str, subtype: str) -> int:
        return max(0, self.target(kind, subtype) - self.count(kind, subtype))
