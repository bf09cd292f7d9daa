"""Registered templates and systems, resolved against a domain at engine start."""

from __future__ import annotations

from dataclasses import dataclass, field

from loreweave.domain.schema import DomainSchema
from loreweave.errors import ConfigError
from loreweave.systems import BUILTIN_SYSTEMS
from loreweave.systems.base import SimulationSystem
from loreweave.templates.base import GrowthTemplate
from loreweave.templates.interpreter import TemplateInterpreter
from loreweave.templates.library import LIBRARY, register_custom
from loreweave.templates.registry import CustomRegistry


@dataclass
class ComponentRegistry:
    templates: dict[str, type[GrowthTemplate]] = field(default_factory=dict)
    systems: dict[str, type[SimulationSystem]] = field(default_factory=dict)
    custom: CustomRegistry = field(default_factory=CustomRegistry)

    def add_template(self, template_cls: type[GrowthTemplate]) -> type[GrowthTemplate]:
        self.templates[template_cls.id] = template_cls
        return template_cls

    def add_system(self, system_cls: type[SimulationSystem]) -> type[SimulationSystem]:
        self.systems[system_cls.id] = system_cls
        return system_cls

    def build_templates(self, domain: DomainSchema) -> list[GrowthTemplate]:
        """Imperative templates first, then the domain's declarative ones."""
        built = [template_cls.from_domain(domain) for template_cls in self.templates.values()]
        declarative = TemplateInterpreter(self.custom).build_all(domain.templates)
        for index, template in enumerate(declarative):
            if template.id in self.templates:
                raise ConfigError(f"templates[{index}].id", f"{template.id!r} is already a registered template")
        return [*built, *declarative]

    def build_systems(self, domain: DomainSchema) -> list[SimulationSystem]:
        """Systems in the domain's declared order; every registered one when none are declared."""
        if not domain.systems:
            return [system_cls() for system_cls in self.systems.values()]
        systems: list[SimulationSystem] = []
        for index, entry in enumerate(domain.systems):
            system_cls = self.systems.get(entry.id)
            if system_cls is None:
                raise ConfigError(f"systems[{index}].id", f"unknown system {entry.id!r}")
            if not entry.enabled:
                continue
            try:
                systems.append(system_cls(entry.parameters))
            except KeyError as exc:
                raise ConfigError(f"systems[{index}].parameters", str(exc.args[0])) from exc
        return systems


def default_registry() -> ComponentRegistry:
    """The bundled templates, systems and custom functions."""
    registry = ComponentRegistry()
    for template_cls in LIBRARY:
        registry.add_template(template_cls)
    for system_cls in BUILTIN_SYSTEMS:
        registry.add_system(system_cls)
    register_custom(registry.custom)
    return registry
