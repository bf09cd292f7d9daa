"""Global defaults for simulation runs."""

from __future__ import annotations

SEED = 1337

PRESSURE_MIN = 0.0
PRESSURE_MAX = 100.0

DEFAULT_OVERSHOOT_FACTOR = 1.5
DEFAULT_SATURATION_TARGET = 20
DEFAULT_RELATIONSHIP_STRENGTH = 0.5

GROWTH_WINDOW = 20
GROWTH_WARNING_RATE = 30.0
GROWTH_TARGET_MIN = 1
GROWTH_TARGET_MAX = 25

PROMINENT_ERA_LINKS = 10
ENRICHMENT_BATCH_SIZE = 10

DEFAULT_DOMAIN = "colonies.yml"
