"""Entity references used in template output before ids are assigned."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Mapping, Union

PLACEHOLDER_PREFIX = "will-be-assigned-"
_PLACEHOLDER_RE = re.compile(rf"^{PLACEHOLDER_PREFIX}(\d+)$")


@dataclass(frozen=True)
class Existing:
    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class Pending:
    index: int

    def __str__(self) -> str:
        return f"{PLACEHOLDER_PREFIX}{self.index}"


EntityRef = Union[Existing, Pending]


def as_ref(value: str | EntityRef) -> EntityRef:
    """Coerce an id or a legacy placeholder string into a typed reference."""
    if isinstance(value, (Existing, Pending)):
        return value
    match = _PLACEHOLDER_RE.match(value)
    if match:
        return Pending(int(match.group(1)))
    return Existing(value)


def resolve_ref(ref: EntityRef, assigned: Mapping[int, str]) -> str:
    if isinstance(ref, Existing):
        return ref.id
    if ref.index not in assigned:
        raise KeyError(f"Unknown pending entity index: {ref.index}")
    return assigned[ref.index]
