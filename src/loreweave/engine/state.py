"""Per-run simulation state owned by a single WorldEngine."""

from __future__ import annotations

from dataclasses import dataclass, field

from loreweave.control.budget import RelationshipBudget
from loreweave.control.compatibility import CompatibilityMatrix
from loreweave.control.cooldowns import CooldownTracker
from loreweave.control.rate import DiscoveryState, GrowthMetrics, RateLimitState
from loreweave.control.saturation import SaturationMonitor
from loreweave.domain.enums import HistoryEventType
from loreweave.domain.models import HistoryEvent, Relationship
from loreweave.domain.schema import DomainSchema, EraDef
from loreweave.graph.store import GraphStore
from loreweave.narrative.events import NarrativeEventBuilder
from loreweave.util.rng import Rng
from loreweave.world.eras import EraClock, EraSchedule
from loreweave.world.pressures import PressureModel


@dataclass
class FeedbackMultipliers:
    templates: dict[str, float] = field(default_factory=dict)
    systems: dict[str, float] = field(default_factory=dict)

    def template(self, template_id: str) -> float:
        return self.templates.get(template_id, 1.0)

    def system(self, system_id: str) -> float:
        return self.systems.get(system_id, 1.0)


@dataclass
class SimulationState:
    domain: DomainSchema
    rng: Rng
    store: GraphStore
    pressures: PressureModel
    eras: EraSchedule
    cooldowns: CooldownTracker
    budget: RelationshipBudget
    saturation: SaturationMonitor
    compatibility: CompatibilityMatrix
    current_era: str
    tick: int = 0
    epoch: int = 0
    era_started_tick: int = 0
    last_transition_tick: int | None = None
    era_entities: dict[str, str] = field(default_factory=dict)
    rate_limits: dict[str, RateLimitState] = field(default_factory=dict)
    discovery: DiscoveryState = field(default_factory=DiscoveryState)
    growth_metrics: GrowthMetrics = field(default_factory=GrowthMetrics)
    feedback: FeedbackMultipliers = field(default_factory=FeedbackMultipliers)
    history: list[HistoryEvent] = field(default_factory=list)
    narrative: NarrativeEventBuilder = field(default_factory=NarrativeEventBuilder)
    epoch_stats: list[dict] = field(default_factory=list)

    @classmethod
    def create(cls, domain: DomainSchema, rng: Rng) -> "SimulationState":
        store = GraphStore(domain=domain, rng=rng.fork("graph"))
        return cls(
            domain=domain,
            rng=rng,
            store=store,
            pressures=PressureModel.from_domain(domain),
            eras=EraSchedule.from_domain(domain),
            cooldowns=CooldownTracker(),
            budget=RelationshipBudget.from_domain(domain),
            saturation=SaturationMonitor(domain=domain, count=store.get_entity_count),
            compatibility=CompatibilityMatrix.from_domain(domain),
            current_era=domain.eras[0].id,
        )

    @property
    def era(self) -> EraDef:
        return self.eras.get(self.current_era)

    @property
    def clock(self) -> EraClock:
        return EraClock(
            tick=self.tick,
            era_started_tick=self.era_started_tick,
            last_transition_tick=self.last_transition_tick,
        )

    def rate_limit(self, template_id: str) -> RateLimitState:
        return self.rate_limits.setdefault(template_id, RateLimitState())

    def record_history(
        self,
        event_type: HistoryEventType,
        description: str,
        entities_created: list[str] | None = None,
        relationships_created: list[Relationship] | None = None,
        entities_modified: list[str] | None = None,
        component: str | None = None,
    ) -> HistoryEvent:
        event = HistoryEvent(
            tick=self.tick,
            era=self.current_era,
            type=event_type,
            description=description,
            entities_created=list(entities_created or []),
            relationships_created=[rel.model_copy() for rel in relationships_created or []],
            entities_modified=list(entities_modified or []),
            component=component,
        )
        self.history.append(event)
        return event
