"""Interpreter that runs declarative template definitions."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, Union

from pydantic import ValidationError

from loreweave.domain.enums import FactionStance
from loreweave.domain.models import HardState
from loreweave.domain.refs import EntityRef, Existing, Pending
from loreweave.domain.rules import prominence_rank
from loreweave.errors import ConfigError
from loreweave.graph import queries
from loreweave.graph.view import GraphView, PlacementCapability
from loreweave.templates import declarative as rules
from loreweave.templates.base import (
    ArchiveRequest,
    EntityModification,
    GrowthTemplate,
    PendingEntity,
    RelationshipDraft,
    TemplateResult,
)
from loreweave.templates.registry import CustomRegistry
from loreweave.world.pressures import pressure_threshold

logger = logging.getLogger(__name__)

Bound = Union[HardState, Pending]
Bindings = dict[str, list[Bound]]

_PLACEHOLDER_RE = re.compile(r"\{\$(\w+)(?:\.(\w+))?\}")


def _ref_name(ref: str) -> str:
    return ref[1:] if ref.startswith("$") else ref


def format_validation_path(prefix: str, error: ValidationError) -> str:
    """Render the location of the first validation error as a field path."""
    loc = error.errors()[0].get("loc", ())
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


class DeclarativeTemplate(GrowthTemplate):
    def __init__(self, definition: rules.DeclarativeTemplateDef, registry: CustomRegistry, field_path: str) -> None:
        self.definition = definition
        self.registry = registry
        self.field_path = field_path
        self.id = definition.id
        self.name = definition.name
        self.produces = tuple(self._produced_pairs())
        self._check_custom_ids()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], registry: CustomRegistry, field_path: str) -> "DeclarativeTemplate":
        try:
            definition = rules.DeclarativeTemplateDef.model_validate(dict(payload))
        except ValidationError as exc:
            raise ConfigError(format_validation_path(field_path, exc), exc.errors()[0]["msg"]) from exc
        return cls(definition, registry, f"templates[{definition.id}]")

    # Load-time checks

    def _produced_pairs(self) -> Iterable[tuple[str, str]]:
        for index, creation in enumerate(self.definition.creation):
            if isinstance(creation.subtype, str):
                yield creation.kind, creation.subtype
                continue
            choice = creation.subtype
            options = list(choice.random) + list(choice.from_pressure.values())
            if choice.fallback:
                options.append(choice.fallback)
            if not options and not choice.inherit:
                raise ConfigError(
                    f"templates[{self.definition.id}].creation[{index}].subtype",
                    "needs inherit, fromPressure, random or fallback",
                )
            for subtype in dict.fromkeys(options):
                yield creation.kind, subtype

    def _check_custom_ids(self) -> None:
        base = f"templates[{self.definition.id}]"
        for index, rule in enumerate(self.definition.applicability):
            self._check_applicability(rule, f"{base}.applicability[{index}]")
        selections: list[tuple[str, rules.SelectionRule]] = []
        if self.definition.selection is not None:
            selections.append((f"{base}.selection", self.definition.selection))
        for name, variable in self.definition.variables.items():
            selections.append((f"{base}.variables.{name}.select", variable.select))
        for path, selection in selections:
            for index, selection_filter in enumerate(selection.filters):
                if isinstance(selection_filter, rules.CustomFilter):
                    self.registry.resolve_filter(selection_filter.filter_id, f"{path}.filters[{index}].filterId")
        for index, relationship in enumerate(self.definition.relationships):
            if isinstance(relationship.condition, rules.ConditionCustom):
                self.registry.resolve_predicate(
                    relationship.condition.filter_id, f"{base}.relationships[{index}].condition.filterId"
                )
        for index, update in enumerate(self.definition.state_updates):
            if isinstance(update, rules.CustomActionUpdate):
                self.registry.resolve_action(update.action_id, f"{base}.stateUpdates[{index}].actionId")

    def _check_applicability(self, rule: Any, path: str) -> None:
        if isinstance(rule, rules.CustomRule):
            self.registry.resolve_predicate(rule.filter_id, f"{path}.filterId")
        elif isinstance(rule, (rules.AndRule, rules.OrRule)):
            for index, child in enumerate(rule.rules):
                self._check_applicability(child, f"{path}.rules[{index}]")
        elif isinstance(rule, rules.EntityCountMaxRule) and rule.max is None and rule.subtype is None:
            raise ConfigError(f"{path}.subtype", "required when max is omitted")

    # Template contract

    @property
    def target_kind(self) -> str | None:
        selection = self.definition.selection
        return selection.kind if selection else None

    @property
    def needs_target(self) -> bool:
        return self.definition.selection is not None

    def can_apply(self, view: GraphView) -> bool:
        if self.definition.saturation_check and self.saturated(view):
            return False
        return all(self._applicable(rule, view) for rule in self.definition.applicability)

    def find_targets(self, view: GraphView) -> list[HardState]:
        if self.definition.selection is None:
            return []
        return self._select(view, self.definition.selection, {})

    def expand(self, view: GraphView, target: HardState | None = None) -> TemplateResult:
        if self.definition.selection is not None and target is None:
            return TemplateResult.empty(f"{self.name}: no target")
        bindings: Bindings = {"target": [target]} if target is not None else {}
        for name, variable in self.definition.variables.items():
            picked = self._select(view, variable.select, bindings)
            if not picked and variable.required:
                return TemplateResult.empty(f"{self.name}: nothing bound to ${name}")
            bindings[name] = list(picked)

        result = TemplateResult()
        for creation in self.definition.creation:
            self._create(view, creation, bindings, result)
        for relationship in self.definition.relationships:
            self._relate(view, relationship, bindings, result)
        self._apply_updates(view, bindings, result)
        result.description = self._render(self.definition.description or self.name, bindings, result)
        return result

    # Applicability

    def _applicable(self, rule: Any, view: GraphView) -> bool:
        if isinstance(rule, rules.PressureThresholdRule):
            return pressure_threshold(view.get_pressure(rule.pressure_id), rule.min, rule.max, rule.extreme_chance, view.rng)
        if isinstance(rule, rules.PressureAnyAboveRule):
            return any(view.get_pressure(pressure_id) > rule.threshold for pressure_id in rule.pressure_ids)
        if isinstance(rule, rules.EntityCountMinRule):
            return len(view.find_entities(kind=rule.kind, subtype=rule.subtype, status=rule.status)) >= rule.min
        if isinstance(rule, rules.EntityCountMaxRule):
            if rule.max is None:
                return not view.is_saturated(rule.kind, rule.subtype or "", rule.overshoot_factor)
            return view.get_entity_count(rule.kind, rule.subtype) < rule.max * rule.overshoot_factor
        if isinstance(rule, rules.EraMatchRule):
            return view.era.id in rule.eras
        if isinstance(rule, rules.RandomChanceRule):
            return view.rng.random() < rule.chance
        if isinstance(rule, rules.CooldownElapsedRule):
            since = view.rate_limit(self.id).ticks_since_creation(view.tick)
            return since is None or since >= rule.cooldown_ticks
        if isinstance(rule, rules.CreationsPerEpochRule):
            return view.rate_limit(self.id).creations_this_epoch < rule.max_per_epoch
        if isinstance(rule, rules.TagExistsRule):
            return bool(view.find_entities(kind=rule.kind, tags=[rule.tag]))
        if isinstance(rule, rules.TagAbsentRule):
            return not view.find_entities(kind=rule.kind, tags=[rule.tag])
        if isinstance(rule, rules.CustomRule):
            return self.registry.predicates[rule.filter_id](view)
        if isinstance(rule, rules.AndRule):
            return all(self._applicable(child, view) for child in rule.rules)
        if isinstance(rule, rules.OrRule):
            return any(self._applicable(child, view) for child in rule.rules)
        raise TypeError(f"Unsupported applicability rule: {rule!r}")

    # Selection

    def _existing(self, bindings: Bindings, ref: str | None) -> HardState | None:
        if ref is None:
            return None
        for item in bindings.get(_ref_name(ref), []):
            if isinstance(item, HardState):
                return item
        return None

    def _candidates(self, view: GraphView, selection: rules.SelectionRule, bindings: Bindings) -> list[HardState]:
        status = selection.status_filter
        if selection.strategy == "by_relationship":
            anchor = self._existing(bindings, selection.related_to or "$target")
            if anchor is None or selection.relationship_kind is None:
                return []
            found = queries.related(view, anchor.id, selection.relationship_kind, selection.direction, status)
            found = [entity for entity in found if entity.kind == selection.kind]
        elif selection.strategy == "by_preference_order":
            for subtype in selection.subtype_preferences:
                pool = view.find_entities(kind=selection.kind, subtype=subtype, status=status)
                found = self._filtered(view, pool, selection, bindings)
                if found:
                    return found
            return []
        else:
            found = view.find_entities(kind=selection.kind, status=status)
        if selection.subtypes:
            found = [entity for entity in found if entity.subtype in selection.subtypes]
        if selection.strategy == "by_prominence":
            found = queries.at_least_prominence(found, selection.min_prominence)
            found.sort(key=lambda entity: prominence_rank(entity.prominence), reverse=True)
        return self._filtered(view, found, selection, bindings)

    def _filtered(
        self,
        view: GraphView,
        entities: list[HardState],
        selection: rules.SelectionRule,
        bindings: Bindings,
    ) -> list[HardState]:
        return [
            entity
            for entity in entities
            if all(self._passes(view, entity, selection_filter, bindings) for selection_filter in selection.filters)
        ]

    def _passes(self, view: GraphView, entity: HardState, selection_filter: Any, bindings: Bindings) -> bool:
        if isinstance(selection_filter, rules.ExcludeFilter):
            excluded = {
                item.id
                for ref in selection_filter.refs
                for item in bindings.get(_ref_name(ref), [])
                if isinstance(item, HardState)
            }
            return entity.id not in excluded
        if isinstance(selection_filter, (rules.HasRelationshipFilter, rules.LacksRelationshipFilter)):
            partner = self._existing(bindings, selection_filter.with_ref)
            found = False
            for rel in view.get_entity_relationships(entity.id):
                if rel.kind != selection_filter.kind:
                    continue
                if selection_filter.direction == "src" and rel.src != entity.id:
                    continue
                if selection_filter.direction == "dst" and rel.dst != entity.id:
                    continue
                if partner is not None and rel.other(entity.id) != partner.id:
                    continue
                found = True
                break
            return found if isinstance(selection_filter, rules.HasRelationshipFilter) else not found
        if isinstance(selection_filter, rules.HasTagFilter):
            return entity.has_tag(selection_filter.tag)
        if isinstance(selection_filter, rules.HasAnyTagFilter):
            return queries.has_any_tag(entity, selection_filter.tags)
        if isinstance(selection_filter, rules.SameLocationFilter):
            anchor = self._existing(bindings, selection_filter.as_ref)
            if anchor is None:
                return False
            here = queries.location_of(view, entity.id, selection_filter.location_kind)
            there = queries.location_of(view, anchor.id, selection_filter.location_kind)
            return here is not None and there is not None and here.id == there.id
        if isinstance(selection_filter, rules.NotAtWarFilter):
            anchor = self._existing(bindings, selection_filter.with_ref)
            if anchor is None:
                return True
            stance = queries.faction_relationship(view, _factions_for(view, entity), _factions_for(view, anchor))
            return stance != FactionStance.ENEMY
        if isinstance(selection_filter, rules.CustomFilter):
            return self.registry.filters[selection_filter.filter_id](view, entity, bindings)
        raise TypeError(f"Unsupported selection filter: {selection_filter!r}")

    def _select(self, view: GraphView, selection: rules.SelectionRule, bindings: Bindings) -> list[HardState]:
        candidates = self._candidates(view, selection, bindings)
        if not candidates:
            return []
        if selection.pick_strategy == "first":
            return candidates[:1]
        if selection.pick_strategy == "random":
            return [view.rng.choice(candidates)]
        if selection.pick_strategy == "weighted":
            weighted = [(entity, prominence_rank(entity.prominence) + 1.0) for entity in candidates]
            return [view.rng.weighted_choice(weighted)]
        if selection.max_results is not None:
            return candidates[: selection.max_results]
        return candidates

    # Creation

    def _create(self, view: GraphView, creation: rules.CreationRule, bindings: Bindings, result: TemplateResult) -> None:
        count = creation.count
        if isinstance(count, rules.CountRange):
            count = view.rng.randint(count.min, max(count.min, count.max))
        created: list[Bound] = []
        for _ in range(count):
            subtype = self._subtype(view, creation.subtype, bindings)
            if subtype is None:
                continue
            entity = PendingEntity(
                kind=creation.kind,
                subtype=subtype,
                status=creation.status,
                prominence=creation.prominence,
                name=creation.name or "",
                culture=self._culture(creation.culture, bindings),
                tags=list(creation.tags),
            )
            entity.coordinates = self._place(view, creation.placement, bindings)
            ref = result.add_entity(entity)
            created.append(ref)
            if creation.lineage is not None:
                self._add_lineage(view, creation.lineage, ref, bindings, result)
        bindings[_ref_name(creation.entity_ref)] = created
        for ref in created:
            if isinstance(ref, Pending):
                pending = result.entities[ref.index]
                pending.description = self._render(creation.description, bindings, result)

    def _subtype(self, view: GraphView, choice: Union[str, rules.SubtypeSpec], bindings: Bindings) -> str | None:
        if isinstance(choice, str):
            return choice
        if choice.inherit:
            parent = self._existing(bindings, choice.inherit)
            if parent is not None:
                return parent.subtype
        if choice.from_pressure:
            strongest = max(choice.from_pressure, key=view.get_pressure)
            return choice.from_pressure[strongest]
        if choice.random:
            return view.rng.choice(choice.random)
        return choice.fallback

    def _culture(self, choice: Union[str, rules.CultureSpec, None], bindings: Bindings) -> str:
        if isinstance(choice, str):
            return choice
        if choice is None:
            target = self._existing(bindings, "$target")
            return target.culture if target else ""
        if choice.inherit:
            parent = self._existing(bindings, choice.inherit)
            if parent is not None:
                return parent.culture
        return choice.fixed or ""

    def _place(self, view: GraphView, placement: rules.PlacementSpec, bindings: Bindings):
        if placement.type == "none" or not isinstance(view, PlacementCapability):
            return None
        anchor = self._existing(bindings, placement.ref or "$target")
        if anchor is not None and placement.type == "at_location" and anchor.kind != "location":
            anchor = queries.location_of(view, anchor.id)
        if anchor is None:
            return None
        return view.place_near(anchor.id)

    def _add_lineage(
        self,
        view: GraphView,
        lineage: rules.LineageSpec,
        child: Pending,
        bindings: Bindings,
        result: TemplateResult,
    ) -> None:
        ancestor = self._existing(bindings, lineage.ancestor_ref)
        if ancestor is None:
            return
        distance = None
        if lineage.distance_range is not None:
            distance = round(view.rng.uniform(*lineage.distance_range), 3)
        result.relate(lineage.relationship_kind, child, Existing(ancestor.id), distance=distance)

    # Relationships

    def _refs(self, bindings: Bindings, ref: str) -> list[EntityRef]:
        refs: list[EntityRef] = []
        for item in bindings.get(_ref_name(ref), []):
            refs.append(Existing(item.id) if isinstance(item, HardState) else item)
        return refs

    def _condition_holds(self, view: GraphView, condition: Any, bindings: Bindings) -> bool:
        if condition is None:
            return True
        if isinstance(condition, rules.ConditionRandomChance):
            return view.rng.random() < condition.chance
        if isinstance(condition, rules.ConditionEntityExists):
            return bool(bindings.get(_ref_name(condition.ref)))
        if isinstance(condition, rules.ConditionEntityHasRelationship):
            entity = self._existing(bindings, condition.ref)
            return entity is not None and any(
                rel.kind == condition.kind for rel in view.get_entity_relationships(entity.id)
            )
        if isinstance(condition, rules.ConditionCustom):
            return self.registry.predicates[condition.filter_id](view)
        raise TypeError(f"Unsupported relationship condition: {condition!r}")

    def _relate(self, view: GraphView, rule: rules.RelationshipRule, bindings: Bindings, result: TemplateResult) -> None:
        if not self._condition_holds(view, rule.condition, bindings):
            return
        catalyst = self._refs(bindings, rule.catalyzed_by)[:1] if rule.catalyzed_by else []
        for src in self._refs(bindings, rule.src):
            for dst in self._refs(bindings, rule.dst):
                if src == dst:
                    continue
                distance = rule.distance
                if isinstance(distance, tuple):
                    distance = round(view.rng.uniform(*distance), 3)
                result.relationships.append(
                    RelationshipDraft(
                        kind=rule.kind,
                        src=src,
                        dst=dst,
                        strength=rule.strength,
                        distance=distance,
                        catalyzed_by=catalyst[0] if catalyst else None,
                        bidirectional=rule.bidirectional,
                    )
                )

    # State updates

    def _apply_updates(self, view: GraphView, bindings: Bindings, result: TemplateResult) -> None:
        changes: dict[str, dict[str, Any]] = {}

        def tags_for(entity: HardState) -> list[str]:
            return changes.setdefault(entity.id, {}).setdefault("tags", list(entity.tags))

        for update in self.definition.state_updates:
            if isinstance(update, rules.ModifyPressureUpdate):
                result.pressure_changes[update.pressure_id] = (
                    result.pressure_changes.get(update.pressure_id, 0.0) + update.delta
                )
            elif isinstance(update, rules.UpdateRateLimitUpdate):
                result.record_creation = True
            elif isinstance(update, rules.CustomActionUpdate):
                self.registry.actions[update.action_id](view, bindings, result)
            elif isinstance(update, rules.ArchiveRelationshipUpdate):
                self._archive(view, update, bindings, result)
            else:
                for item in bindings.get(_ref_name(update.entity), []):
                    if isinstance(item, Pending):
                        _update_pending(result.entities[item.index], update)
                    elif isinstance(update, rules.UpdateEntityStatusUpdate):
                        changes.setdefault(item.id, {})["status"] = update.status
                    elif isinstance(update, rules.SetTagUpdate):
                        tags = tags_for(item)
                        if update.tag not in tags:
                            tags.append(update.tag)
                    elif isinstance(update, rules.RemoveTagUpdate):
                        tags = tags_for(item)
                        if update.tag in tags:
                            tags.remove(update.tag)
        for entity_id, entity_changes in changes.items():
            result.modifications.append(EntityModification(entity_id=entity_id, changes=entity_changes))

    def _archive(
        self,
        view: GraphView,
        update: rules.ArchiveRelationshipUpdate,
        bindings: Bindings,
        result: TemplateResult,
    ) -> None:
        partner = self._existing(bindings, update.with_ref)
        for item in bindings.get(_ref_name(update.entity), []):
            if not isinstance(item, HardState):
                continue
            for rel in view.get_entity_relationships(item.id):
                if rel.kind != update.kind:
                    continue
                if update.direction == "src" and rel.src != item.id:
                    continue
                if update.direction == "dst" and rel.dst != item.id:
                    continue
                if partner is not None and rel.other(item.id) != partner.id:
                    continue
                result.archive.append(ArchiveRequest(kind=rel.kind, src=rel.src, dst=rel.dst))

    # Text

    def _render(self, text: str, bindings: Bindings, result: TemplateResult) -> str:
        def replace(match: re.Match[str]) -> str:
            items = bindings.get(match.group(1), [])
            if not items:
                return match.group(0)
            item = items[0]
            source: Any = result.entities[item.index] if isinstance(item, Pending) else item
            value = getattr(source, match.group(2) or "name", "")
            return str(value) if value else source.subtype

        return _PLACEHOLDER_RE.sub(replace, text)


def _factions_for(view: GraphView, entity: HardState) -> list[HardState]:
    if entity.kind == "faction":
        return [entity]
    return queries.factions_of(view, entity.id, queries.MEMBERSHIP_KINDS)


def _update_pending(entity: PendingEntity, update: Any) -> None:
    if isinstance(update, rules.UpdateEntityStatusUpdate):
        entity.status = update.status
    elif isinstance(update, rules.SetTagUpdate) and update.tag not in entity.tags:
        entity.tags.append(update.tag)
    elif isinstance(update, rules.RemoveTagUpdate) and update.tag in entity.tags:
        entity.tags.remove(update.tag)


class TemplateInterpreter:
    """Builds declarative templates against a registry of custom functions."""

    def __init__(self, registry: CustomRegistry | None = None) -> None:
        self.registry = registry or CustomRegistry()

    def build(self, payload: Mapping[str, Any], index: int = 0) -> DeclarativeTemplate:
        return DeclarativeTemplate.from_dict(payload, self.registry, f"templates[{index}]")

    def build_all(self, payloads: Iterable[Mapping[str, Any]]) -> list[DeclarativeTemplate]:
        templates = [self.build(payload, index) for index, payload in enumerate(payloads)]
        seen: set[str] = set()
        for index, template in enumerate(templates):
            if template.id in seen:
                raise ConfigError(f"templates[{index}].id", f"duplicate template id {template.id!r}")
            seen.add(template.id)
        logger.debug("Loaded %s declarative templates", len(templates))
        return templates
