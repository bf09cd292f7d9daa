"""Per-entity relationship formation cooldowns."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CooldownTracker:
    last_formed: dict[str, dict[str, int]] = field(default_factory=dict)

    def can_form(self, entity_id: str, kind: str, cooldown: int, tick: int) -> bool:
        last = self.last_formed.get(entity_id, {}).get(kind)
        if last is None:
            return True
        return tick - last >= cooldown

    def record(self, entity_id: str, kind: str, tick: int) -> None:
        self.last_formed.setdefault(entity_id, {})[kind] = tick

    def last_formation(self, entity_id: str, kind: str) -> int | None:
        return self.last_formed.get(entity_id, {}).get(kind)

    def forget(self, entity_id: str) -> None:
        self.last_formed.pop(entity_id, None)

    def to_dict(self) -> dict:
        return {entity_id: dict(kinds) for entity_id, kinds in self.last_formed.items()}

    @classmethod
    def from_dict(cls, payload: dict) -> "CooldownTracker":
        return cls(
            last_formed={
                entity_id: {kind: int(tick) for kind, tick in kinds.items()}
                for entity_id, kinds in (payload or {}).items()
            }
        )
