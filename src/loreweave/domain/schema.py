"""Domain configuration schema validated at load time."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from loreweave.domain.enums import DecayRate, Prominence, RelationshipCategory


class SchemaModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class EntityKindDef(SchemaModel):
    kind: str
    subtypes: List[str] = Field(min_length=1)
    statuses: List[str] = Field(min_length=1)
    default_status: str
    terminal_statuses: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _statuses_known(self) -> "EntityKindDef":
        if self.default_status not in self.statuses:
            raise ValueError(f"defaultStatus {self.default_status!r} is not a declared status")
        unknown = [status for status in self.terminal_statuses if status not in self.statuses]
        if unknown:
            raise ValueError(f"terminalStatuses not declared as statuses: {unknown}")
        return self


class RelationshipKindDef(SchemaModel):
    kind: str
    src_kinds: List[str] = Field(default_factory=list)
    dst_kinds: List[str] = Field(default_factory=list)
    bidirectional: bool = False
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    category: RelationshipCategory = RelationshipCategory.SOCIAL
    cooldown: int = Field(default=0, ge=0)
    decay_rate: DecayRate = DecayRate.NONE
    cullable: bool = False
    contradicts: List[str] = Field(default_factory=list)
    distance_range: Optional[Tuple[float, float]] = None

    def allows(self, src_kind: str, dst_kind: str) -> bool:
        if self.src_kinds and src_kind not in self.src_kinds:
            return False
        if self.dst_kinds and dst_kind not in self.dst_kinds:
            return False
        return True


class TransitionCondition(SchemaModel):
    type: Literal["pressure", "entity_count", "time"]
    pressure_id: Optional[str] = None
    operator: Literal["above", "below"] = "above"
    threshold: float = 0.0
    entity_kind: Optional[str] = None
    subtype: Optional[str] = None
    status: Optional[str] = None
    min_ticks: int = 0

    @model_validator(mode="after")
    def _required_by_type(self) -> "TransitionCondition":
        if self.type == "pressure" and not self.pressure_id:
            raise ValueError("pressure conditions require pressureId")
        if self.type == "entity_count" and not self.entity_kind:
            raise ValueError("entity_count conditions require entityKind")
        return self


class TransitionEffects(SchemaModel):
    pressure_changes: Dict[str, float] = Field(default_factory=dict)


class EraDef(SchemaModel):
    id: str
    name: str
    description: str = ""
    template_weights: Dict[str, float] = Field(default_factory=dict)
    system_modifiers: Dict[str, float] = Field(default_factory=dict)
    pressure_modifiers: Dict[str, float] = Field(default_factory=dict)
    transition_conditions: Optional[List[TransitionCondition]] = None
    transition_effects: TransitionEffects = Field(default_factory=TransitionEffects)


class PressureDriver(SchemaModel):
    entity_kind: Optional[str] = None
    subtype: Optional[str] = None
    status: Optional[str] = None
    relationship_kind: Optional[str] = None
    weight: float

    @model_validator(mode="after")
    def _has_source(self) -> "PressureDriver":
        if not self.entity_kind and not self.relationship_kind:
            raise ValueError("drivers need entityKind or relationshipKind")
        return self


class PressureDef(SchemaModel):
    id: str
    name: str
    initial: float = 50.0
    equilibrium: float = 50.0
    decay: float = Field(default=0.0, ge=0.0, le=1.0)
    drivers: List[PressureDriver] = Field(default_factory=list)


class TargetDef(SchemaModel):
    target: int = Field(ge=0)
    tolerance: float = Field(default=0.2, ge=0.0)


class DistributionTargets(SchemaModel):
    entities: Dict[str, Dict[str, TargetDef]]
    relationships: Dict[str, TargetDef] = Field(default_factory=dict)
    prominence: Dict[Prominence, float] = Field(default_factory=dict)
    max_single_relationship_ratio: float = 0.25
    min_relationship_types: int = 5
    target_clusters: int = 5
    max_isolated_ratio: float = 0.1
    correction_strength: float = Field(default=0.3, ge=0.0, le=1.0)


class RelationshipBudgetDef(SchemaModel):
    max_per_simulation_tick: int = Field(default=50, ge=0)
    max_per_growth_phase: int = Field(default=150, ge=0)


class EngineSettings(SchemaModel):
    epoch_length: int = Field(default=20, ge=1)
    max_ticks: int = Field(default=500, ge=0)
    max_epochs: Optional[int] = Field(default=None, ge=1)
    templates_per_growth: Optional[int] = Field(default=None, ge=1)
    relationship_budget: RelationshipBudgetDef = Field(default_factory=RelationshipBudgetDef)
    scale_factor: float = Field(default=1.0, gt=0.0)
    target_entities_per_kind: int = Field(default=30, ge=0)
    min_era_length: int = Field(default=50, ge=0)
    transition_cooldown: int = Field(default=10, ge=0)


class EmergentDiscoveryConfig(SchemaModel):
    settlement_subtypes: List[str] = Field(min_length=1)
    explorer_subtypes: List[str] = Field(min_length=1)
    discovery_subtypes: List[str] = Field(min_length=1)
    max_locations: int = 40
    max_discoveries_per_epoch: int = 3
    min_ticks_between_discoveries: int = 5
    era_discovery_modifiers: Dict[str, float] = Field(default_factory=dict)


class SystemEntry(SchemaModel):
    id: str
    enabled: bool = True
    parameters: Dict[str, Any] = Field(default_factory=dict)


class SeedEntity(SchemaModel):
    ref: str
    kind: str
    subtype: str
    name: str
    status: Optional[str] = None
    prominence: Prominence = Prominence.MARGINAL
    culture: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)


class SeedRelationship(SchemaModel):
    kind: str
    src: str
    dst: str
    strength: Optional[float] = None


class InitialState(SchemaModel):
    entities: List[SeedEntity] = Field(default_factory=list)
    relationships: List[SeedRelationship] = Field(default_factory=list)


class DomainSchema(SchemaModel):
    name: str
    entity_kinds: List[EntityKindDef] = Field(min_length=1)
    relationship_kinds: List[RelationshipKindDef] = Field(min_length=1)
    eras: List[EraDef] = Field(min_length=1)
    pressures: List[PressureDef] = Field(default_factory=list)
    distribution_targets: Optional[DistributionTargets] = None
    engine: EngineSettings = Field(default_factory=EngineSettings)
    templates: List[Dict[str, Any]] = Field(default_factory=list)
    systems: List[SystemEntry] = Field(default_factory=list)
    emergent_discovery: Optional[EmergentDiscoveryConfig] = None
    initial_state: InitialState = Field(default_factory=InitialState)

    def entity_kind(self, kind: str) -> EntityKindDef | None:
        for definition in self.entity_kinds:
            if definition.kind == kind:
                return definition
        return None

    def relationship_kind(self, kind: str) -> RelationshipKindDef | None:
        for definition in self.relationship_kinds:
            if definition.kind == kind:
                return definition
        return None

    def era(self, era_id: str) -> EraDef | None:
        for era in self.eras:
            if era.id == era_id:
                return era
        return None

    def default_status(self, kind: str) -> str:
        definition = self.entity_kind(kind)
        if definition is None:
            raise KeyError(f"Unknown entity kind: {kind}")
        return definition.default_status

    def is_terminal(self, kind: str, status: str) -> bool:
        definition = self.entity_kind(kind)
        return definition is not None and status in definition.terminal_statuses

    def cooldown_for(self, kind: str) -> int:
        definition = self.relationship_kind(kind)
        return definition.cooldown if definition else 0

    def scaled(self, count: float) -> int:
        if count <= 0:
            return 0
        return max(1, round(count * self.engine.scale_factor))
