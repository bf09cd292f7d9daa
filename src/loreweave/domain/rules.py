"""Invariant checks and ordered-scale helpers for world state."""

from __future__ import annotations

from typing import Mapping

from loreweave.domain.enums import PROMINENCE_ORDER, Prominence


def ensure_entity_exists(entity_id: str, entity_map: Mapping[str, object], label: str = "entity") -> None:
    if entity_id not in entity_map:
        raise KeyError(f"Unknown {label} id: {entity_id}")


def validate_temporal(start: int, end: int | None) -> None:
    if end is not None and end < start:
        raise ValueError("end tick must be >= start tick")


def validate_unit_interval(value: float | None, label: str) -> None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ValueError(f"{label} must be within [0, 1], got {value}")


def prominence_rank(prominence: Prominence | str) -> int:
    return PROMINENCE_ORDER.index(Prominence(prominence))


def adjust_prominence(current: Prominence | str, delta: int) -> Prominence:
    """Move along the prominence scale, stopping at either end."""
    rank = prominence_rank(current) + delta
    rank = max(0, min(len(PROMINENCE_ORDER) - 1, rank))
    return PROMINENCE_ORDER[rank]
