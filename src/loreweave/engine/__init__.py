"""The world engine and the pieces it schedules."""

from loreweave.engine.commit import CommitReport, MutationGate
from loreweave.engine.registry import ComponentRegistry, default_registry
from loreweave.engine.state import FeedbackMultipliers, SimulationState
from loreweave.engine.view import EngineView
from loreweave.engine.world_engine import WorldEngine

__all__ = [
    "CommitReport",
    "ComponentRegistry",
    "EngineView",
    "FeedbackMultipliers",
    "MutationGate",
    "SimulationState",
    "WorldEngine",
    "default_registry",
]
