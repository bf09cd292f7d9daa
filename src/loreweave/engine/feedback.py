"""Epoch-level homeostatic feedback from distribution targets."""

from __future__ import annotations

from collections import Counter
import logging
from typing import Sequence

from loreweave.engine.state import FeedbackMultipliers, SimulationState
from loreweave.systems.base import SimulationSystem
from loreweave.templates.base import GrowthTemplate
from loreweave.util.numbers import clamp, mean

logger = logging.getLogger(__name__)

MIN_MULTIPLIER = 0.2
MAX_MULTIPLIER = 3.0


def _nudge(ratio: float, strength: float) -> float:
    return clamp(1.0 + strength * (1.0 - ratio), MIN_MULTIPLIER, MAX_MULTIPLIER)


def compute_feedback(
    state: SimulationState,
    templates: Sequence[GrowthTemplate],
    systems: Sequence[SimulationSystem],
) -> FeedbackMultipliers:
    """Multipliers for the next epoch: under-target producers speed up, over-target ones slow down."""
    targets = state.domain.distribution_targets
    feedback = FeedbackMultipliers()
    if targets is None:
        return feedback
    strength = targets.correction_strength

    for template in templates:
        ratios = [
            state.saturation.saturation_ratio(kind, subtype)
            for kind, subtype in template.produces
            if subtype in targets.entities.get(kind, {})
        ]
        if ratios:
            feedback.templates[template.id] = round(_nudge(mean(ratios), strength), 4)

    live = state.store.get_relationships(include_historical=False)
    counts = Counter(rel.kind for rel in live)
    for system in systems:
        ratios = []
        for kind in system.produces:
            target = targets.relationships.get(kind)
            if target is not None and target.target > 0:
                ratios.append(counts.get(kind, 0) / state.domain.scaled(target.target))
        if ratios:
            feedback.systems[system.id] = round(_nudge(mean(ratios), strength), 4)

    if live:
        kind, count = counts.most_common(1)[0]
        share = count / len(live)
        if share > targets.max_single_relationship_ratio:
            logger.warning(
                "Relationship kind %s dominates the graph at epoch %s (%.0f%% of live edges)",
                kind,
                state.epoch,
                share * 100,
            )
    return feedback
