"""Batched hand-off of narrative events to an enrichment collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
import inspect
import logging
from typing import Awaitable, Mapping, Protocol, Sequence, Union

from loreweave import config
from loreweave.domain.models import NarrativeEvent
from loreweave.errors import CollaboratorError, EnrichmentAborted

logger = logging.getLogger(__name__)

Patches = Mapping[str, str]


class EnrichmentService(Protocol):
    def enrich(self, events: Sequence[NarrativeEvent]) -> Union[Patches, Awaitable[Patches]]: ...


@dataclass
class BatchOutcome:
    index: int
    event_ids: list[str]
    patches: dict[str, str] = field(default_factory=dict)
    failed: bool = False
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "eventIds": list(self.event_ids),
            "patches": dict(self.patches),
            "failed": self.failed,
            "reason": self.reason,
        }


def _validated(patches: object) -> dict[str, str]:
    if not isinstance(patches, Mapping):
        raise CollaboratorError(f"Enrichment returned {type(patches).__name__}, expected a mapping")
    clean: dict[str, str] = {}
    for entity_id, text in patches.items():
        if not isinstance(entity_id, str) or not isinstance(text, str):
            raise CollaboratorError(f"Unparseable enrichment patch for {entity_id!r}")
        clean[entity_id] = text
    return clean


class EnrichmentQueue:
    """Sends events in batches and records one outcome per batch.

    Patches are returned to the caller; nothing here touches the graph.
    """

    def __init__(self, service: EnrichmentService, batch_size: int = config.ENRICHMENT_BATCH_SIZE) -> None:
        self.service = service
        self.batch_size = max(1, batch_size)

    def _aborted(self) -> bool:
        check = getattr(self.service, "is_aborted", None)
        return bool(check()) if callable(check) else False

    async def run(self, events: Sequence[NarrativeEvent]) -> list[BatchOutcome]:
        outcomes: list[BatchOutcome] = []
        for start in range(0, len(events), self.batch_size):
            batch = list(events[start : start + self.batch_size])
            outcome = BatchOutcome(index=len(outcomes), event_ids=[event.id for event in batch])
            outcomes.append(outcome)
            try:
                if self._aborted():
                    raise EnrichmentAborted("aborted before dispatch")
                patches = self.service.enrich(batch)
                if inspect.isawaitable(patches):
                    patches = await patches
                if self._aborted():
                    raise EnrichmentAborted("aborted while awaiting enrichment")
                outcome.patches = _validated(patches)
            except EnrichmentAborted as exc:
                outcome.failed = True
                outcome.reason = str(exc)
                logger.info("Enrichment batch %s abandoned: %s", outcome.index, exc)
                break
            except Exception as exc:
                outcome.failed = True
                outcome.reason = "no enrichment applied"
                logger.warning("Enrichment batch %s failed: %s", outcome.index, exc)
        return outcomes
