"""Growth template contract and the result it hands to the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Optional, Union

from loreweave.domain.enums import Prominence
from loreweave.domain.models import Catalyst, Coordinates, HardState
from loreweave.domain.refs import EntityRef, Pending, as_ref
from loreweave.graph.view import GraphView

if TYPE_CHECKING:
    from loreweave.domain.schema import DomainSchema


@dataclass
class PendingEntity:
    kind: str
    subtype: str
    status: Optional[str] = None
    prominence: Prominence = Prominence.MARGINAL
    name: str = ""
    description: str = ""
    culture: str = ""
    tags: list[str] = field(default_factory=list)
    catalyst: Optional[Catalyst] = None
    coordinates: Optional[Coordinates] = None

    def to_partial(self) -> dict[str, Any]:
        partial: dict[str, Any] = {
            "kind": self.kind,
            "subtype": self.subtype,
            "prominence": self.prominence,
            "name": self.name,
            "description": self.description,
            "culture": self.culture,
            "tags": list(self.tags),
        }
        if self.status:
            partial["status"] = self.status
        if self.catalyst is not None:
            partial["catalyst"] = self.catalyst
        if self.coordinates is not None:
            partial["coordinates"] = self.coordinates
        return partial


@dataclass
class RelationshipDraft:
    kind: str
    src: EntityRef
    dst: EntityRef
    strength: Optional[float] = None
    distance: Optional[float] = None
    catalyzed_by: Optional[EntityRef] = None
    bidirectional: bool = False

    def __post_init__(self) -> None:
        self.src = as_ref(self.src)
        self.dst = as_ref(self.dst)
        if self.catalyzed_by is not None:
            self.catalyzed_by = as_ref(self.catalyzed_by)


@dataclass
class ArchiveRequest:
    kind: str
    src: EntityRef
    dst: EntityRef

    def __post_init__(self) -> None:
        self.src = as_ref(self.src)
        self.dst = as_ref(self.dst)


@dataclass
class EntityModification:
    entity_id: str
    changes: dict[str, Any]

    def to_dict(self) -> dict:
        return {"id": self.entity_id, "changes": dict(self.changes)}


@dataclass
class TemplateResult:
    entities: list[PendingEntity] = field(default_factory=list)
    relationships: list[RelationshipDraft] = field(default_factory=list)
    description: str = ""
    archive: list[ArchiveRequest] = field(default_factory=list)
    modifications: list[EntityModification] = field(default_factory=list)
    pressure_changes: dict[str, float] = field(default_factory=dict)
    record_creation: bool = False
    record_discovery: bool = False

    @classmethod
    def empty(cls, description: str) -> "TemplateResult":
        return cls(description=description)

    @property
    def is_empty(self) -> bool:
        return not (self.entities or self.relationships or self.archive or self.modifications)

    def add_entity(self, entity: PendingEntity) -> Pending:
        self.entities.append(entity)
        return Pending(len(self.entities) - 1)

    def relate(self, kind: str, src: EntityRef | str, dst: EntityRef | str, **extra: Any) -> None:
        self.relationships.append(RelationshipDraft(kind=kind, src=src, dst=dst, **extra))


ExpandOutcome = Union[TemplateResult, Awaitable[TemplateResult]]


class GrowthTemplate(ABC):
    """A rule that grows the world when its conditions hold.

    `expand` may return the result directly or an awaitable of it; the
    engine awaits it before committing anything.
    """

    id: str = ""
    name: str = ""
    produces: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_domain(cls, domain: "DomainSchema") -> "GrowthTemplate":
        return cls()

    @abstractmethod
    def can_apply(self, view: GraphView) -> bool:
        raise NotImplementedError

    @abstractmethod
    def find_targets(self, view: GraphView) -> list[HardState]:
        raise NotImplementedError

    @abstractmethod
    def expand(self, view: GraphView, target: HardState | None = None) -> ExpandOutcome:
        raise NotImplementedError

    @property
    def target_kind(self) -> str | None:
        """Kind the engine may fall back to when no targets are found."""
        return None

    @property
    def needs_target(self) -> bool:
        return True

    def saturated(self, view: GraphView) -> bool:
        return any(view.is_saturated(kind, subtype) for kind, subtype in self.produces)
