"""Name generation with readability checks and a deterministic fallback."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import inspect
import logging
import re
from typing import Any, Awaitable, Mapping, Protocol, Union

from loreweave.errors import CollaboratorError
from loreweave.templates.base import PendingEntity
from loreweave.util.rng import Rng

logger = logging.getLogger(__name__)

DEFAULT_SYLLABLES = ["ka", "lo", "ri", "va", "mor", "sel", "tun", "esh", "bri", "dal", "qui", "ny"]
LOCATION_SUFFIXES = ["hold", "reach", "fen", "mere", "crag"]

RECENT_WINDOW = 60
MAX_ATTEMPTS = 12

NameResult = Union[str, Awaitable[str]]


class NameGenerator(Protocol):
    def generate_one(self, culture: str, context: Mapping[str, Any]) -> NameResult: ...


def _name_key(name: str) -> str:
    cleaned = re.sub(r"[^a-z]", "", name.lower())
    return re.sub(r"(.)\1+", r"\1", cleaned)


def _is_readable(name: str) -> bool:
    if not name or len(name) > 24:
        return False
    try:
        name.encode("ascii")
    except UnicodeEncodeError:
        return False
    return bool(re.match(r"^[A-Za-z][A-Za-z' -]*$", name))


def fallback_name(kind: str, subtype: str, serial: int) -> str:
    label = subtype.replace("_", " ").strip().title() or kind.title()
    return f"{label} {serial}"


@dataclass
class SyllableNameGenerator:
    rng: Rng
    syllables: dict[str, list[str]] = field(default_factory=dict)
    recent: deque[str] = field(default_factory=lambda: deque(maxlen=RECENT_WINDOW))

    def generate_one(self, culture: str, context: Mapping[str, Any]) -> str:
        pool = self.syllables.get(culture) or DEFAULT_SYLLABLES
        for _ in range(MAX_ATTEMPTS):
            parts = [self.rng.choice(pool) for _ in range(self.rng.randint(2, 3))]
            name = "".join(parts).capitalize()
            if context.get("kind") == "location":
                name = f"{name}{self.rng.choice(LOCATION_SUFFIXES)}"
            key = _name_key(name)
            if _is_readable(name) and key not in self.recent:
                self.recent.append(key)
                return name
        raise CollaboratorError(f"No unused name found for culture {culture!r}")


class Naming:
    """Calls the name collaborator, substituting a fallback when it fails."""

    def __init__(self, generator: NameGenerator | None = None) -> None:
        self.generator = generator
        self.serial = 0
        self.failures = 0

    async def name_for(self, entity: PendingEntity) -> str:
        self.serial += 1
        if entity.name:
            return entity.name
        fallback = fallback_name(entity.kind, entity.subtype, self.serial)
        if self.generator is None:
            return fallback
        context = {
            "kind": entity.kind,
            "subtype": entity.subtype,
            "prominence": str(entity.prominence),
            "tags": list(entity.tags),
        }
        try:
            value = self.generator.generate_one(entity.culture, context)
            if inspect.isawaitable(value):
                value = await value
            if not isinstance(value, str) or not value.strip():
                raise CollaboratorError(f"Name generator returned {value!r}")
        except Exception:
            self.failures += 1
            logger.warning("Name generation failed for %s/%s, using %r", entity.kind, entity.subtype, fallback, exc_info=True)
            return fallback
        return value.strip()
