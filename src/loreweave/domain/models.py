"""Domain models for the world graph."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from loreweave.domain.enums import HistoryEventType, Prominence, RelationshipStatus


class WorldModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CatalyzedEvent(WorldModel):
    tick: int
    action: str
    target: Optional[str] = None


class Catalyst(WorldModel):
    can_act: bool = False
    action_domains: List[str] = Field(default_factory=list)
    influence: float = 0.5
    catalyzed_events: List[CatalyzedEvent] = Field(default_factory=list)


class Temporal(WorldModel):
    start_tick: int
    end_tick: Optional[int] = None


class Coordinates(WorldModel):
    x: float
    y: float
    z: float = 0.0


class Relationship(WorldModel):
    kind: str
    src: str
    dst: str
    strength: Optional[float] = None
    distance: Optional[float] = None
    catalyzed_by: Optional[str] = None
    category: Optional[str] = None
    created_at: int = 0
    status: RelationshipStatus = RelationshipStatus.ACTIVE
    archived_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == RelationshipStatus.ACTIVE

    def touches(self, entity_id: str) -> bool:
        return self.src == entity_id or self.dst == entity_id

    def other(self, entity_id: str) -> str:
        return self.dst if self.src == entity_id else self.src


class HardState(WorldModel):
    id: str
    kind: str
    subtype: str
    name: str = ""
    description: str = ""
    status: str
    prominence: Prominence = Prominence.MARGINAL
    culture: str = ""
    tags: List[str] = Field(default_factory=list)
    links: List[Relationship] = Field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0
    catalyst: Optional[Catalyst] = None
    temporal: Optional[Temporal] = None
    coordinates: Optional[Coordinates] = None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def live_links(self) -> list[Relationship]:
        return [link for link in self.links if link.is_active]


class HistoryEvent(WorldModel):
    tick: int
    era: str
    type: HistoryEventType
    description: str
    entities_created: List[str] = Field(default_factory=list)
    relationships_created: List[Relationship] = Field(default_factory=list)
    entities_modified: List[str] = Field(default_factory=list)
    component: Optional[str] = None


class StateChange(WorldModel):
    entity_id: str
    field: str
    previous_value: Optional[str] = None
    new_value: Optional[str] = None


class NarrativeEvent(WorldModel):
    id: str
    tick: int
    era: str
    event_kind: str
    significance: float
    subject: Optional[str] = None
    object: Optional[str] = None
    action: str
    headline: str
    description: str
    state_changes: List[StateChange] = Field(default_factory=list)
    caused_by: Optional[str] = None
    narrative_tags: List[str] = Field(default_factory=list)
    participants: Optional[List[str]] = None


class Metadata(WorldModel):
    tick: int
    epoch: int
    entity_count: int
    relationship_count: int
    current_era: str


class WorldExport(WorldModel):
    metadata: Metadata
    hard_state: List[HardState] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    pressures: Dict[str, float] = Field(default_factory=dict)
    history: List[HistoryEvent] = Field(default_factory=list)
