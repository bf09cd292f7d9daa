"""Load domain configuration documents from YAML or JSON."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from loreweave import config
from loreweave.domain.schema import DomainSchema
from loreweave.errors import ConfigError
from loreweave.templates.interpreter import format_validation_path

_BUNDLED_CACHE: dict[str, Any] | None = None


def _read_document(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(str(path), f"cannot read configuration: {exc.strerror}") from exc
    try:
        # JSON is a subset of YAML, so one parser covers both formats.
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"not valid YAML or JSON: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge nested mappings; lists and scalars in `overrides` replace the base value."""
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def bundled_path() -> Path:
    return Path(__file__).resolve().parents[1] / "data" / config.DEFAULT_DOMAIN


def bundled_document() -> dict[str, Any]:
    """The packaged reference domain, read once and cached."""
    global _BUNDLED_CACHE
    if _BUNDLED_CACHE is not None:
        return copy.deepcopy(_BUNDLED_CACHE)
    _BUNDLED_CACHE = _read_document(bundled_path())
    return copy.deepcopy(_BUNDLED_CACHE)


def load_overrides(path: Path | str | None) -> dict[str, Any]:
    if path is None:
        return {}
    return _read_document(Path(path))


def parse_domain(document: Mapping[str, Any], overrides: Mapping[str, Any] | None = None) -> DomainSchema:
    merged = deep_merge(document, overrides or {})
    try:
        domain = DomainSchema.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(format_validation_path("", exc), exc.errors()[0]["msg"]) from exc
    check_references(domain)
    return domain


def load_domain(path: Path | str | None = None, overrides: Mapping[str, Any] | None = None) -> DomainSchema:
    """Load and validate a domain; the bundled colonies domain when no path is given."""
    document = bundled_document() if path is None else _read_document(Path(path))
    return parse_domain(document, overrides)


def check_references(domain: DomainSchema) -> None:
    """Cross-reference checks pydantic cannot express on a single model."""
    kinds = {definition.kind: definition for definition in domain.entity_kinds}
    relationship_kinds = {definition.kind for definition in domain.relationship_kinds}
    pressures = {pressure.id for pressure in domain.pressures}

    for index, definition in enumerate(domain.relationship_kinds):
        for side, declared in (("srcKinds", definition.src_kinds), ("dstKinds", definition.dst_kinds)):
            for position, kind in enumerate(declared):
                if kind not in kinds:
                    raise ConfigError(f"relationshipKinds[{index}].{side}[{position}]", f"unknown entity kind {kind!r}")
        for position, other in enumerate(definition.contradicts):
            if other not in relationship_kinds:
                raise ConfigError(
                    f"relationshipKinds[{index}].contradicts[{position}]", f"unknown relationship kind {other!r}"
                )

    for index, pressure in enumerate(domain.pressures):
        for position, driver in enumerate(pressure.drivers):
            if driver.entity_kind is not None and driver.entity_kind not in kinds:
                raise ConfigError(
                    f"pressures[{index}].drivers[{position}].entityKind", f"unknown entity kind {driver.entity_kind!r}"
                )
            if driver.relationship_kind is not None and driver.relationship_kind not in relationship_kinds:
                raise ConfigError(
                    f"pressures[{index}].drivers[{position}].relationshipKind",
                    f"unknown relationship kind {driver.relationship_kind!r}",
                )

    era_ids: set[str] = set()
    for index, era in enumerate(domain.eras):
        if era.id in era_ids:
            raise ConfigError(f"eras[{index}].id", f"duplicate era id {era.id!r}")
        era_ids.add(era.id)
        for pressure_id in era.pressure_modifiers:
            if pressure_id not in pressures:
                raise ConfigError(f"eras[{index}].pressureModifiers.{pressure_id}", "unknown pressure")
        for pressure_id in era.transition_effects.pressure_changes:
            if pressure_id not in pressures:
                raise ConfigError(f"eras[{index}].transitionEffects.pressureChanges.{pressure_id}", "unknown pressure")
        for position, condition in enumerate(era.transition_conditions or []):
            path = f"eras[{index}].transitionConditions[{position}]"
            if condition.type == "pressure" and condition.pressure_id not in pressures:
                raise ConfigError(f"{path}.pressureId", f"unknown pressure {condition.pressure_id!r}")
            if condition.type == "entity_count" and condition.entity_kind not in kinds:
                raise ConfigError(f"{path}.entityKind", f"unknown entity kind {condition.entity_kind!r}")

    targets = domain.distribution_targets
    if targets is not None:
        for kind, subtypes in targets.entities.items():
            definition = kinds.get(kind)
            if definition is None:
                raise ConfigError(f"distributionTargets.entities.{kind}", "unknown entity kind")
            for subtype in subtypes:
                if subtype not in definition.subtypes:
                    raise ConfigError(f"distributionTargets.entities.{kind}.{subtype}", "unknown subtype")
        for kind in targets.relationships:
            if kind not in relationship_kinds:
                raise ConfigError(f"distributionTargets.relationships.{kind}", "unknown relationship kind")

    refs: set[str] = set()
    for index, seed in enumerate(domain.initial_state.entities):
        path = f"initialState.entities[{index}]"
        if seed.ref in refs:
            raise ConfigError(f"{path}.ref", f"duplicate ref {seed.ref!r}")
        refs.add(seed.ref)
        definition = kinds.get(seed.kind)
        if definition is None:
            raise ConfigError(f"{path}.kind", f"unknown entity kind {seed.kind!r}")
        if seed.subtype not in definition.subtypes:
            raise ConfigError(f"{path}.subtype", f"{seed.subtype!r} is not a {seed.kind} subtype")
        if seed.status is not None and seed.status not in definition.statuses:
            raise ConfigError(f"{path}.status", f"{seed.status!r} is not a {seed.kind} status")
    for index, seed in enumerate(domain.initial_state.relationships):
        path = f"initialState.relationships[{index}]"
        if seed.kind not in relationship_kinds:
            raise ConfigError(f"{path}.kind", f"unknown relationship kind {seed.kind!r}")
        for side in ("src", "dst"):
            if getattr(seed, side) not in refs:
                raise ConfigError(f"{path}.{side}", f"unknown entity ref {getattr(seed, side)!r}")

    seen: set[str] = set()
    for index, entry in enumerate(domain.systems):
        if entry.id in seen:
            raise ConfigError(f"systems[{index}].id", f"duplicate system {entry.id!r}")
        seen.add(entry.id)
