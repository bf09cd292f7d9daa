"""ID helpers for deterministic entity creation."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class IdAllocator:
    counters: dict[str, int] = field(default_factory=dict)

    def next_id(self, kind: str) -> str:
        serial = self.counters.get(kind, 0) + 1
        self.counters[kind] = serial
        return f"{kind}_{serial}"

    def observe(self, entity_id: str) -> None:
        """Advance the counter past an id loaded from an export."""
        kind, _, serial = entity_id.rpartition("_")
        if kind and serial.isdigit():
            self.counters[kind] = max(self.counters.get(kind, 0), int(serial))
