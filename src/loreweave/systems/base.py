"""Simulation system contract and result type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping

from loreweave.domain.models import Relationship
from loreweave.graph.view import GraphView
from loreweave.templates.base import ArchiveRequest, EntityModification


@dataclass(frozen=True)
class StrengthChange:
    kind: str
    src: str
    dst: str
    delta: float


@dataclass
class SystemResult:
    relationships_added: list[Relationship] = field(default_factory=list)
    entities_modified: list[EntityModification] = field(default_factory=list)
    pressure_changes: dict[str, float] = field(default_factory=dict)
    description: str = ""
    relationships_archived: list[ArchiveRequest] = field(default_factory=list)
    strength_changes: list[StrengthChange] = field(default_factory=list)

    @classmethod
    def empty(cls, description: str) -> "SystemResult":
        return cls(description=description)

    def to_dict(self) -> dict:
        return {
            "relationshipsAdded": [rel.to_dict() for rel in self.relationships_added],
            "entitiesModified": [mod.to_dict() for mod in self.entities_modified],
            "pressureChanges": dict(self.pressure_changes),
            "description": self.description,
        }


class SimulationSystem(ABC):
    """A per-tick rule that scans the graph without target selection.

    `modifier` scales every probability roll the system makes; 0 disables it.
    """

    id: ClassVar[str] = ""
    name: ClassVar[str] = ""
    defaults: ClassVar[dict[str, Any]] = {}
    produces: ClassVar[tuple[str, ...]] = ()

    def __init__(self, parameters: Mapping[str, Any] | None = None) -> None:
        unknown = set(parameters or {}) - set(self.defaults)
        if unknown:
            raise KeyError(f"Unknown parameters for {self.id}: {sorted(unknown)}")
        self.parameters = {**self.defaults, **(parameters or {})}

    @abstractmethod
    def apply(self, view: GraphView, modifier: float = 1.0) -> SystemResult:
        raise NotImplementedError
