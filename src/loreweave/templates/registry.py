"""Named custom functions that declarative templates can call into."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from loreweave.domain.models import HardState
from loreweave.errors import ConfigError
from loreweave.graph.view import GraphView

if TYPE_CHECKING:
    from loreweave.templates.base import TemplateResult

Predicate = Callable[[GraphView], bool]
EntityFilter = Callable[[GraphView, HardState, Mapping[str, Any]], bool]
Action = Callable[[GraphView, Mapping[str, Any], "TemplateResult"], None]


@dataclass
class CustomRegistry:
    predicates: dict[str, Predicate] = field(default_factory=dict)
    filters: dict[str, EntityFilter] = field(default_factory=dict)
    actions: dict[str, Action] = field(default_factory=dict)

    def predicate(self, name: str) -> Callable[[Predicate], Predicate]:
        def decorator(func: Predicate) -> Predicate:
            self.predicates[name] = func
            return func

        return decorator

    def filter(self, name: str) -> Callable[[EntityFilter], EntityFilter]:
        def decorator(func: EntityFilter) -> EntityFilter:
            self.filters[name] = func
            return func

        return decorator

    def action(self, name: str) -> Callable[[Action], Action]:
        def decorator(func: Action) -> Action:
            self.actions[name] = func
            return func

        return decorator

    def resolve_predicate(self, name: str, field_path: str) -> Predicate:
        if name not in self.predicates:
            raise ConfigError(field_path, f"custom predicate {name!r} is not registered")
        return self.predicates[name]

    def resolve_filter(self, name: str, field_path: str) -> EntityFilter:
        if name not in self.filters:
            raise ConfigError(field_path, f"custom filter {name!r} is not registered")
        return self.filters[name]

    def resolve_action(self, name: str, field_path: str) -> Action:
        if name not in self.actions:
            raise ConfigError(field_path, f"custom action {name!r} is not registered")
        return self.actions[name]
