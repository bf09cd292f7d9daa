"""Tick/epoch scheduler that owns a single world run."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Callable

from loreweave import config
from loreweave.control.budget import BudgetScope
from loreweave.domain.enums import PROMINENCE_ORDER, EnginePhase, EraStatus, HistoryEventType, Prominence
from loreweave.domain.models import HardState, Relationship, Temporal
from loreweave.domain.schema import DomainSchema, EraDef
from loreweave.engine.commit import CommitReport, MutationGate
from loreweave.engine.feedback import compute_feedback
from loreweave.engine.registry import ComponentRegistry, default_registry
from loreweave.engine.selection import growth_target, select_templates
from loreweave.engine.state import SimulationState
from loreweave.engine.view import EngineView
from loreweave.errors import ConfigError
from loreweave.export import export_state
from loreweave.narrative.enrichment import BatchOutcome, EnrichmentQueue, EnrichmentService
from loreweave.naming import NameGenerator, Naming
from loreweave.statistics.collector import StatisticsCollector
from loreweave.templates.base import GrowthTemplate
from loreweave.util.rng import Rng

logger = logging.getLogger(__name__)

ERA_KIND = "era"
ACTIVE_DURING = "active_during"


def _never_aborted() -> bool:
    return False


class WorldEngine:
    """Runs growth and simulation phases until the tick or epoch limit.

    Growth always precedes simulation within a tick, and systems run in
    their configured order. Every mutation goes through the MutationGate.
    """

    def __init__(
        self,
        domain: DomainSchema,
        registry: ComponentRegistry | None = None,
        rng: Rng | None = None,
        name_generator: NameGenerator | None = None,
        enrichment: EnrichmentService | None = None,
        abort_check: Callable[[], bool] | None = None,
    ) -> None:
        if domain.distribution_targets is None:
            raise ConfigError("distributionTargets", "required for feedback and fitness statistics but not configured")
        self.domain = domain
        self.registry = registry or default_registry()
        self.rng = rng or Rng(config.SEED)
        self.templates = self.registry.build_templates(domain)
        self.systems = self.registry.build_systems(domain)
        self.state = SimulationState.create(domain, self.rng)
        self.naming = Naming(name_generator)
        self.gate = MutationGate(self.state, self.naming)
        self.statistics = StatisticsCollector()
        self.enrichment = enrichment
        self.abort_check = abort_check or _never_aborted
        self.enrichment_outcomes: list[BatchOutcome] = []
        self.phase = EnginePhase.INITIALIZING
        self._seed_world()

    def run(self) -> dict:
        return asyncio.run(self.run_async())

    async def run_async(self) -> dict:
        if self.phase != EnginePhase.INITIALIZING:
            raise RuntimeError("A WorldEngine runs once; create a new engine for another run")
        state = self.state
        epoch_length = self.domain.engine.epoch_length
        logger.info(
            "Starting %s: %s templates, %s systems, era %s",
            self.domain.name,
            len(self.templates),
            len(self.systems),
            state.current_era,
        )
        while not self._finished():
            state.tick += 1
            self.phase = EnginePhase.GROWTH
            added = await self._growth_phase()
            self.phase = EnginePhase.SIMULATION
            added += self._simulation_phase()
            state.pressures.tick_update(state.store, state.era)
            state.growth_metrics.record(state.tick, added)
            if state.tick % epoch_length == 0:
                self.phase = EnginePhase.EPOCH_BOUNDARY
                self._epoch_boundary()

        self.phase = EnginePhase.FINALIZING
        await self._enrich()
        self.statistics.finish()
        self.phase = EnginePhase.DONE
        logger.info(
            "Finished at tick %s: %s entities, %s relationships",
            state.tick,
            state.store.get_entity_count(),
            state.store.get_relationship_count(),
        )
        return self.export_state()

    def export_state(self) -> dict:
        return export_state(self.state)

    def export_statistics(self) -> dict:
        stats = self.statistics.build(self.state)
        stats["enrichmentStats"] = [outcome.to_dict() for outcome in self.enrichment_outcomes]
        stats["namingFailures"] = self.naming.failures
        return stats

    # Initial state

    def _seed_world(self) -> None:
        state = self.state
        refs: dict[str, str] = {}
        for seed in self.domain.initial_state.entities:
            partial = seed.model_dump(exclude={"ref"}, exclude_none=True)
            refs[seed.ref] = state.store.create_entity(partial, 0)

        for index, seed in enumerate(self.domain.initial_state.relationships):
            endpoints = {}
            for side in ("src", "dst"):
                ref = getattr(seed, side)
                entity_id = refs.get(ref, ref)
                if not state.store.has_entity(entity_id):
                    raise ConfigError(f"initialState.relationships[{index}].{side}", f"unknown entity ref {ref!r}")
                endpoints[side] = entity_id
            rel = Relationship(kind=seed.kind, src=endpoints["src"], dst=endpoints["dst"], strength=seed.strength)
            if not self.gate.accepts(rel, check_cooldown=False):
                raise ConfigError(f"initialState.relationships[{index}].kind", f"{seed.kind!r} rejected by the vocabulary")
            state.store.add_relationship(rel, 0)

        if self.domain.entity_kind(ERA_KIND) is not None:
            for index, era in enumerate(self.domain.eras):
                entity_id = state.store.create_entity(
                    {
                        "kind": ERA_KIND,
                        "subtype": era.id,
                        "name": era.name,
                        "description": era.description,
                        "status": (EraStatus.CURRENT if index == 0 else EraStatus.FUTURE).value,
                        "prominence": Prominence.MYTHIC if index == 0 else Prominence.RENOWNED,
                        "temporal": Temporal(start_tick=0) if index == 0 else None,
                    },
                    0,
                )
                state.era_entities[era.id] = entity_id
        state.record_history(HistoryEventType.SPECIAL, f"The world begins in the {state.era.name}.")

    # Phases

    def _finished(self) -> bool:
        settings = self.domain.engine
        if self.state.tick >= settings.max_ticks:
            return True
        return settings.max_epochs is not None and self.state.epoch >= settings.max_epochs

    async def _growth_phase(self) -> int:
        state = self.state
        state.budget.open(BudgetScope.GROWTH_PHASE, state.tick)
        added = 0
        try:
            wanted = None
            if self.domain.engine.templates_per_growth is not None:
                picks = select_templates(state, self.templates, self.domain.engine.templates_per_growth)
            else:
                wanted = growth_target(state)
                picks = select_templates(state, self.templates, wanted * 3)
            created = 0
            for template in picks:
                if wanted is not None and created >= wanted:
                    break
                report = await self._attempt(template)
                if report is not None:
                    created += len(report.entities_created)
                    added += len(report.relationships_added)
        finally:
            self._close_budget()
        return added

    async def _attempt(self, template: GrowthTemplate) -> CommitReport | None:
        state = self.state
        view = EngineView(state)
        try:
            if not template.can_apply(view):
                return None
            target = None
            if template.needs_target:
                target = self._pick_target(template, view)
                if target is None:
                    return None
            result = template.expand(view, target)
            if inspect.isawaitable(result):
                result = await result
            if self.abort_check():
                state.record_history(
                    HistoryEventType.FAULT,
                    f"{template.id} aborted; result discarded",
                    component=template.id,
                )
                return None
            if result.is_empty and not result.pressure_changes:
                logger.debug("Template %s produced nothing: %s", template.id, result.description)
                return None
        except ConfigError:
            raise
        except Exception as exc:
            self._fault(template.id, exc)
            return None
        try:
            report = await self.gate.commit_template(template.id, result)
        except ConfigError:
            raise
        except Exception as exc:
            # Commits are not rolled back: whatever the gate applied before the failure stays in the world.
            self._fault(template.id, exc, during="mid-commit")
            return None
        self.statistics.record_template_application(template.id)
        return report

    def _pick_target(self, template: GrowthTemplate, view: EngineView) -> HardState | None:
        targets = template.find_targets(view)
        if targets:
            return view.rng.choice(targets)
        if template.target_kind is None:
            return None
        fallback = view.get_entities_by_kind(template.target_kind)
        return view.rng.choice(fallback) if fallback else None

    def _simulation_phase(self) -> int:
        state = self.state
        state.budget.open(BudgetScope.SIMULATION_TICK, state.tick)
        added = 0
        try:
            for system in self.systems:
                modifier = state.eras.system_modifier(state.current_era, system.id) * state.feedback.system(system.id)
                if modifier <= 0:
                    continue
                try:
                    result = system.apply(EngineView(state), modifier)
                    report = self.gate.commit_system(system.id, result)
                except ConfigError:
                    raise
                except Exception as exc:
                    self._fault(system.id, exc)
                    continue
                added += len(report.relationships_added)
                if self.statistics.record_system_execution(system.id, len(report.relationships_added), state.tick):
                    logger.warning(
                        "System %s is aggressive: %s relationships so far",
                        system.id,
                        self.statistics.system_relationships[system.id],
                    )
        finally:
            self._close_budget()
        return added

    def _close_budget(self) -> None:
        window = self.state.budget.close()
        if window is not None and window.dropped:
            self.statistics.record_budget_hit()

    def _fault(self, component: str, exc: Exception, during: str = "") -> None:
        where = f" {during}" if during else ""
        logger.exception("%s failed%s at tick %s", component, where, self.state.tick)
        self.state.record_history(HistoryEventType.FAULT, f"{component} failed{where}: {exc}", component=component)
        self.statistics.record_fault()

    # Epochs and eras

    def _epoch_boundary(self) -> None:
        state = self.state
        self.statistics.record_epoch(state)
        state.feedback = compute_feedback(state, self.templates, self.systems)
        upcoming = state.eras.next_era(state.current_era)
        if upcoming is not None and state.eras.should_transition(
            state.current_era, state.clock, state.pressures.snapshot(), state.store
        ):
            self._transition(upcoming)
        for limit in state.rate_limits.values():
            limit.reset_epoch()
        state.discovery.reset_epoch()
        state.epoch += 1
        logger.info(
            "Epoch %s done at tick %s: %s entities, %s live relationships, era %s",
            state.epoch,
            state.tick,
            state.store.get_entity_count(),
            state.store.get_relationship_count(include_historical=False),
            state.current_era,
        )

    def _transition(self, upcoming: EraDef) -> None:
        state = self.state
        ending = state.era
        ending_entity = self._era_entity(ending.id)
        beginning_entity = self._era_entity(upcoming.id)
        modified: list[str] = []

        if ending_entity is not None:
            self._link_prominent(ending_entity)
            temporal = ending_entity.temporal or Temporal(start_tick=state.era_started_tick)
            state.store.update_entity(
                ending_entity.id,
                {
                    "status": EraStatus.HISTORICAL.value,
                    "temporal": Temporal(start_tick=temporal.start_tick, end_tick=state.tick),
                },
                state.tick,
            )
            modified.append(ending_entity.id)
        if beginning_entity is not None:
            state.store.update_entity(
                beginning_entity.id,
                {"status": EraStatus.CURRENT.value, "temporal": Temporal(start_tick=state.tick)},
                state.tick,
            )
            modified.append(beginning_entity.id)

        state.pressures.apply_changes(ending.transition_effects.pressure_changes)
        state.current_era = upcoming.id
        state.era_started_tick = state.tick
        state.last_transition_tick = state.tick

        text = f"The {ending.name} ends. The {upcoming.name} begins."
        state.record_history(HistoryEventType.SPECIAL, text, entities_modified=modified, component="era_transition")
        state.narrative.era_transition(state.tick, upcoming.id, ending_entity, beginning_entity, text)
        logger.info(text)

    def _era_entity(self, era_id: str) -> HardState | None:
        entity_id = self.state.era_entities.get(era_id)
        return self.state.store.get_entity(entity_id) if entity_id else None

    def _link_prominent(self, era_entity: HardState) -> None:
        """Tie the ending era to the most prominent entities it produced."""
        state = self.state
        if self.domain.relationship_kind(ACTIVE_DURING) is None:
            return
        threshold = PROMINENCE_ORDER.index(Prominence.RECOGNIZED)
        created = [
            entity
            for entity in state.store.get_entities()
            if entity.kind != ERA_KIND
            and not self.domain.is_terminal(entity.kind, entity.status)
            and entity.created_at >= state.era_started_tick
            and PROMINENCE_ORDER.index(entity.prominence) >= threshold
        ]
        created.sort(key=lambda entity: (-PROMINENCE_ORDER.index(entity.prominence), entity.created_at, entity.id))
        for entity in created[: config.PROMINENT_ERA_LINKS]:
            rel = Relationship(kind=ACTIVE_DURING, src=entity.id, dst=era_entity.id)
            if self.gate.accepts(rel, check_cooldown=False):
                state.store.add_relationship(rel, state.tick)

    # Finalizing

    async def _enrich(self) -> None:
        events = self.state.narrative.events
        if self.enrichment is None or not events:
            return
        if self.abort_check():
            logger.info("Run aborted before enrichment; %s events left unenriched", len(events))
            return
        self.enrichment_outcomes = await EnrichmentQueue(self.enrichment).run(events)
