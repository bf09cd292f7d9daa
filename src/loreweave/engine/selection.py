"""Growth-phase sizing and weighted template selection."""

from __future__ import annotations

import math
from typing import Sequence

from loreweave import config
from loreweave.engine.state import SimulationState
from loreweave.templates.base import GrowthTemplate
from loreweave.util.numbers import clamp, mean


def kind_deficits(state: SimulationState) -> dict[str, float]:
    """Fraction of the per-kind entity target still missing, per entity kind."""
    target = state.domain.scaled(state.domain.engine.target_entities_per_kind)
    deficits: dict[str, float] = {}
    for definition in state.domain.entity_kinds:
        if target <= 0:
            deficits[definition.kind] = 0.0
            continue
        remaining = max(0, target - state.store.get_entity_count(definition.kind))
        deficits[definition.kind] = remaining / target
    return deficits


def growth_target(state: SimulationState) -> int:
    """Entities the growth phase aims to create this tick.

    The remaining deficit is spread over the ticks left in the expected run
    (two epochs per era) and jittered by +/-30%.
    """
    settings = state.domain.engine
    target = state.domain.scaled(settings.target_entities_per_kind)
    remaining = sum(
        max(0, target - state.store.get_entity_count(definition.kind)) for definition in state.domain.entity_kinds
    )
    if remaining == 0:
        return config.GROWTH_TARGET_MIN
    epochs_remaining = max(1, len(state.domain.eras) * 2 - state.epoch)
    base = math.ceil(remaining / epochs_remaining / settings.epoch_length)
    varied = math.floor(base * (0.7 + state.rng.random() * 0.6))
    return int(clamp(varied, config.GROWTH_TARGET_MIN, config.GROWTH_TARGET_MAX))


def template_weight(state: SimulationState, template: GrowthTemplate, deficits: dict[str, float]) -> float:
    era_weight = state.eras.template_weight(state.current_era, template.id)
    if era_weight <= 0:
        return 0.0
    kinds = list(dict.fromkeys(kind for kind, _ in template.produces))
    deficit_weight = 1.0
    if kinds:
        deficit_weight = 0.5 + mean([deficits.get(kind, 0.0) for kind in kinds]) * 2.5
    return era_weight * deficit_weight * state.feedback.template(template.id)


def select_templates(state: SimulationState, templates: Sequence[GrowthTemplate], count: int) -> list[GrowthTemplate]:
    """Weighted sample without replacement; zero-weight templates are never picked."""
    deficits = kind_deficits(state)
    weighted = [(template, template_weight(state, template, deficits)) for template in templates]
    weighted = [(template, weight) for template, weight in weighted if weight > 0]
    return state.rng.weighted_sample(weighted, min(len(weighted), count))
