"""Bundled simulation systems."""

from loreweave.systems.base import SimulationSystem, StrengthChange, SystemResult
from loreweave.systems.lifecycle import Lifecycle
from loreweave.systems.prominence_evolution import ProminenceEvolution
from loreweave.systems.relationship_formation import RelationshipFormation
from loreweave.systems.relationship_maintenance import RelationshipMaintenance

BUILTIN_SYSTEMS = (RelationshipFormation, RelationshipMaintenance, ProminenceEvolution, Lifecycle)

__all__ = [
    "BUILTIN_SYSTEMS",
    "Lifecycle",
    "ProminenceEvolution",
    "RelationshipFormation",
    "RelationshipMaintenance",
    "SimulationSystem",
    "StrengthChange",
    "SystemResult",
]
