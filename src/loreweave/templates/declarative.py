"""Data model for templates authored as configuration."""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from loreweave import config
from loreweave.domain.enums import Prominence


class RuleModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


# Applicability


class PressureThresholdRule(RuleModel):
    type: Literal["pressure_threshold"]
    pressure_id: str
    min: float = 0.0
    max: float = 100.0
    extreme_chance: float = Field(default=0.3, ge=0.0, le=1.0)


class PressureAnyAboveRule(RuleModel):
    type: Literal["pressure_any_above"]
    pressure_ids: List[str] = Field(min_length=1)
    threshold: float


class EntityCountMinRule(RuleModel):
    type: Literal["entity_count_min"]
    kind: str
    subtype: Optional[str] = None
    status: Optional[str] = None
    min: int = 1


class EntityCountMaxRule(RuleModel):
    type: Literal["entity_count_max"]
    kind: str
    subtype: Optional[str] = None
    max: Optional[int] = None
    overshoot_factor: float = config.DEFAULT_OVERSHOOT_FACTOR


class EraMatchRule(RuleModel):
    type: Literal["era_match"]
    eras: List[str] = Field(min_length=1)


class RandomChanceRule(RuleModel):
    type: Literal["random_chance"]
    chance: float = Field(ge=0.0, le=1.0)


class CooldownElapsedRule(RuleModel):
    type: Literal["cooldown_elapsed"]
    cooldown_ticks: int = Field(ge=0)


class CreationsPerEpochRule(RuleModel):
    type: Literal["creations_per_epoch"]
    max_per_epoch: int = Field(ge=0)


class TagExistsRule(RuleModel):
    type: Literal["tag_exists"]
    tag: str
    kind: Optional[str] = None


class TagAbsentRule(RuleModel):
    type: Literal["tag_absent"]
    tag: str
    kind: Optional[str] = None


class CustomRule(RuleModel):
    type: Literal["custom"]
    filter_id: str


class AndRule(RuleModel):
    type: Literal["and"]
    rules: List["ApplicabilityRule"] = Field(min_length=1)


class OrRule(RuleModel):
    type: Literal["or"]
    rules: List["ApplicabilityRule"] = Field(min_length=1)


ApplicabilityRule = Annotated[
    Union[
        PressureThresholdRule,
        PressureAnyAboveRule,
        EntityCountMinRule,
        EntityCountMaxRule,
        EraMatchRule,
        RandomChanceRule,
        CooldownElapsedRule,
        CreationsPerEpochRule,
        TagExistsRule,
        TagAbsentRule,
        CustomRule,
        AndRule,
        OrRule,
    ],
    Field(discriminator="type"),
]


# Selection


class ExcludeFilter(RuleModel):
    type: Literal["exclude"]
    refs: List[str]


class HasRelationshipFilter(RuleModel):
    type: Literal["has_relationship"]
    kind: str
    with_ref: Optional[str] = None
    direction: Literal["src", "dst", "any"] = "any"


class LacksRelationshipFilter(RuleModel):
    type: Literal["lacks_relationship"]
    kind: str
    with_ref: Optional[str] = None
    direction: Literal["src", "dst", "any"] = "any"


class HasTagFilter(RuleModel):
    type: Literal["has_tag"]
    tag: str


class HasAnyTagFilter(RuleModel):
    type: Literal["has_any_tag"]
    tags: List[str] = Field(min_length=1)


class SameLocationFilter(RuleModel):
    type: Literal["same_location"]
    as_ref: str
    location_kind: str = "resident_of"


class NotAtWarFilter(RuleModel):
    type: Literal["not_at_war"]
    with_ref: str


class CustomFilter(RuleModel):
    type: Literal["custom"]
    filter_id: str


SelectionFilter = Annotated[
    Union[
        ExcludeFilter,
        HasRelationshipFilter,
        LacksRelationshipFilter,
        HasTagFilter,
        HasAnyTagFilter,
        SameLocationFilter,
        NotAtWarFilter,
        CustomFilter,
    ],
    Field(discriminator="type"),
]

PickStrategy = Literal["random", "first", "all", "weighted"]


class SelectionRule(RuleModel):
    strategy: Literal["by_kind", "by_preference_order", "by_relationship", "by_prominence"] = "by_kind"
    kind: str
    subtypes: List[str] = Field(default_factory=list)
    subtype_preferences: List[str] = Field(default_factory=list)
    status_filter: Optional[str] = None
    relationship_kind: Optional[str] = None
    related_to: Optional[str] = None
    direction: Literal["src", "dst", "any"] = "any"
    min_prominence: Prominence = Prominence.MARGINAL
    filters: List[SelectionFilter] = Field(default_factory=list)
    pick_strategy: PickStrategy = "random"
    max_results: Optional[int] = Field(default=None, ge=1)


class VariableRule(RuleModel):
    select: SelectionRule
    required: bool = True


# Creation


class SubtypeSpec(RuleModel):
    inherit: Optional[str] = None
    from_pressure: Dict[str, str] = Field(default_factory=dict)
    random: List[str] = Field(default_factory=list)
    fallback: Optional[str] = None


class CultureSpec(RuleModel):
    inherit: Optional[str] = None
    fixed: Optional[str] = None


class CountRange(RuleModel):
    min: int = Field(ge=0)
    max: int = Field(ge=0)


class PlacementSpec(RuleModel):
    type: Literal["at_location", "near_entity", "none"] = "none"
    ref: Optional[str] = None


class LineageSpec(RuleModel):
    relationship_kind: str
    ancestor_ref: str
    distance_range: Optional[Tuple[float, float]] = None


class CreationRule(RuleModel):
    entity_ref: str
    kind: str
    subtype: Union[str, SubtypeSpec]
    status: Optional[str] = None
    prominence: Prominence = Prominence.MARGINAL
    culture: Optional[Union[str, CultureSpec]] = None
    name: Optional[str] = None
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    count: Union[int, CountRange] = 1
    placement: PlacementSpec = Field(default_factory=PlacementSpec)
    lineage: Optional[LineageSpec] = None


# Relationships


class ConditionRandomChance(RuleModel):
    type: Literal["random_chance"]
    chance: float = Field(ge=0.0, le=1.0)


class ConditionEntityExists(RuleModel):
    type: Literal["entity_exists"]
    ref: str


class ConditionEntityHasRelationship(RuleModel):
    type: Literal["entity_has_relationship"]
    ref: str
    kind: str


class ConditionCustom(RuleModel):
    type: Literal["custom"]
    filter_id: str


RelationshipCondition = Annotated[
    Union[ConditionRandomChance, ConditionEntityExists, ConditionEntityHasRelationship, ConditionCustom],
    Field(discriminator="type"),
]


class RelationshipRule(RuleModel):
    kind: str
    src: str
    dst: str
    strength: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    distance: Optional[Union[float, Tuple[float, float]]] = None
    bidirectional: bool = False
    catalyzed_by: Optional[str] = None
    condition: Optional[RelationshipCondition] = None


# State updates


class ArchiveRelationshipUpdate(RuleModel):
    type: Literal["archive_relationship"]
    entity: str
    kind: str
    with_ref: Optional[str] = None
    direction: Literal["src", "dst", "any"] = "src"


class ModifyPressureUpdate(RuleModel):
    type: Literal["modify_pressure"]
    pressure_id: str
    delta: float


class UpdateEntityStatusUpdate(RuleModel):
    type: Literal["update_entity_status"]
    entity: str
    status: str


class SetTagUpdate(RuleModel):
    type: Literal["set_tag"]
    entity: str
    tag: str


class RemoveTagUpdate(RuleModel):
    type: Literal["remove_tag"]
    entity: str
    tag: str


class UpdateRateLimitUpdate(RuleModel):
    type: Literal["update_rate_limit"]


class CustomActionUpdate(RuleModel):
    type: Literal["custom"]
    action_id: str


StateUpdate = Annotated[
    Union[
        ArchiveRelationshipUpdate,
        ModifyPressureUpdate,
        UpdateEntityStatusUpdate,
        SetTagUpdate,
        RemoveTagUpdate,
        UpdateRateLimitUpdate,
        CustomActionUpdate,
    ],
    Field(discriminator="type"),
]


class DeclarativeTemplateDef(RuleModel):
    id: str
    name: str
    applicability: List[ApplicabilityRule] = Field(default_factory=list)
    selection: Optional[SelectionRule] = None
    variables: Dict[str, VariableRule] = Field(default_factory=dict)
    creation: List[CreationRule] = Field(default_factory=list)
    relationships: List[RelationshipRule] = Field(default_factory=list)
    state_updates: List[StateUpdate] = Field(default_factory=list)
    description: str = ""
    saturation_check: bool = True


AndRule.model_rebuild()
OrRule.model_rebuild()
DeclarativeTemplateDef.model_rebuild()
