"""Capability interfaces handed to templates and systems."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Protocol, runtime_checkable

from loreweave.domain.models import Coordinates, HardState, Relationship

if TYPE_CHECKING:
    from loreweave.control.rate import DiscoveryState, RateLimitState
    from loreweave.domain.schema import DomainSchema, EraDef
    from loreweave.util.rng import Rng


@runtime_checkable
class GraphView(Protocol):
    """Read access to the world plus the engine-enforced control hooks."""

    rng: "Rng"

    @property
    def tick(self) -> int: ...

    @property
    def epoch(self) -> int: ...

    @property
    def era(self) -> "EraDef": ...

    @property
    def domain(self) -> "DomainSchema": ...

    def get_entity(self, entity_id: str) -> HardState | None: ...

    def has_entity(self, entity_id: str) -> bool: ...

    def get_entities(self) -> list[HardState]: ...

    def get_entities_by_kind(self, kind: str) -> list[HardState]: ...

    def get_entity_count(self, kind: str | None = None, subtype: str | None = None) -> int: ...

    def find_entities(
        self,
        kind: str | None = None,
        subtype: str | None = None,
        status: str | None = None,
        tags: Iterable[str] | None = None,
        **criteria: object,
    ) -> list[HardState]: ...

    def get_connected_entities(self, entity_id: str, relation_kind: str | None = None) -> list[HardState]: ...

    def get_relationships(self, include_historical: bool = True) -> list[Relationship]: ...

    def find_relationships(
        self,
        kind: str | None = None,
        src: str | None = None,
        dst: str | None = None,
        status: str | None = None,
    ) -> list[Relationship]: ...

    def get_entity_relationships(self, entity_id: str, include_historical: bool = False) -> list[Relationship]: ...

    def has_relationship(self, src: str, dst: str, kind: str | None = None, directed: bool = False) -> bool: ...

    def live_degree(self, entity_id: str) -> int: ...

    def get_pressure(self, pressure_id: str) -> float: ...

    def is_saturated(self, kind: str, subtype: str, overshoot: float | None = None) -> bool: ...

    def saturation_ratio(self, kind: str, subtype: str) -> float: ...

    def can_form_relationship(self, entity_id: str, kind: str, cooldown: int | None = None) -> bool: ...

    def record_relationship_formation(self, entity_id: str, kind: str) -> None: ...

    def are_relationships_compatible(self, src: str, dst: str, kind: str) -> bool: ...

    def rate_limit(self, template_id: str) -> "RateLimitState": ...

    def discovery_state(self) -> "DiscoveryState": ...


@runtime_checkable
class PlacementCapability(Protocol):
    """Optional spatial placement offered by some domains."""

    def place_near(self, entity_id: str) -> Coordinates | None: ...
