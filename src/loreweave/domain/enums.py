"""Closed vocabularies used by the engine itself."""

from __future__ import annotations

from enum import StrEnum


class Prominence(StrEnum):
    FORGOTTEN = "forgotten"
    MARGINAL = "marginal"
    RECOGNIZED = "recognized"
    RENOWNED = "renowned"
    MYTHIC = "mythic"


PROMINENCE_ORDER = [
    Prominence.FORGOTTEN,
    Prominence.MARGINAL,
    Prominence.RECOGNIZED,
    Prominence.RENOWNED,
    Prominence.MYTHIC,
]


class RelationshipStatus(StrEnum):
    ACTIVE = "active"
    HISTORICAL = "historical"


class RelationshipCategory(StrEnum):
    IMMUTABLE_FACT = "immutable_fact"
    POLITICAL = "political"
    SOCIAL = "social"
    INSTITUTIONAL = "institutional"


class DecayRate(StrEnum):
    NONE = "none"
    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"


DECAY_PER_TICK = {
    DecayRate.NONE: 0.0,
    DecayRate.SLOW: 0.01,
    DecayRate.MEDIUM: 0.03,
    DecayRate.FAST: 0.06,
}


class HistoryEventType(StrEnum):
    GROWTH = "growth"
    SIMULATION = "simulation"
    SPECIAL = "special"
    FAULT = "fault"


class EraStatus(StrEnum):
    FUTURE = "future"
    CURRENT = "current"
    HISTORICAL = "historical"


class EnginePhase(StrEnum):
    INITIALIZING = "initializing"
    GROWTH = "growth"
    SIMULATION = "simulation"
    EPOCH_BOUNDARY = "epoch_boundary"
    FINALIZING = "finalizing"
    DONE = "done"


class FactionStance(StrEnum):
    SAME = "same"
    ALLIED = "allied"
    NEUTRAL = "neutral"
    ENEMY = "enemy"
