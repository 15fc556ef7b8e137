"""Memory maintenance orchestrator: consolidate, abstract, retire."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from proposition_memory.consolidation.abstraction import PropositionAbstractor, group_by_entity
from proposition_memory.consolidation.consolidator import ConsolidationResult, MemoryConsolidator
from proposition_memory.consolidation.forgetting import RetirementPolicy
from proposition_memory.query import PropositionQuery
from proposition_memory.schemas import (
    DEFAULT_DECAY_K,
    Proposition,
    PropositionGroup,
    PropositionStatus,
    utc_now,
)
from proposition_memory.stores.base import PropositionRepository

logger = logging.getLogger("pm.maintenance")


class MaintenanceResult(BaseModel):
    """Summary of one maintenance run."""

    model_config = ConfigDict(frozen=True)

    consolidation: ConsolidationResult | None = None
    abstractions: list[Proposition] = Field(default_factory=list)
    superseded: list[Proposition] = Field(default_factory=list)
    retired: list[Proposition] = Field(default_factory=list)

    @property
    def total_persisted(self) -> int:
        stored = self.consolidation.stored_count if self.consolidation is not None else 0
        return stored + len(self.abstractions) + len(self.superseded)

    @property
    def total_removed(self) -> int:
        return len(self.retired)


@dataclass(frozen=True)
class MemoryMaintenanceOrchestrator:
    """Single entry point for end-of-session or scheduled memory maintenance.

    Phases always run in order, each seeing what the previous one persisted:

    1. Consolidate session propositions against ACTIVE memory of the context.
    2. Abstract entity groups of ACTIVE level-0 propositions, then mark the
       sources SUPERSEDED. Skipped without an abstractor.
    3. Delete ACTIVE propositions whose effective confidence is below
       ``retire_below``. Skipped when ``retire_below`` is None.

    Not safe to run concurrently for the same context: phases 2 and 3 read then
    write without a transaction. Callers serialize per context.
    """

    repository: PropositionRepository
    consolidator: MemoryConsolidator
    abstractor: PropositionAbstractor | None = None
    abstraction_threshold: int = 5
    abstraction_target_count: int = 3
    retire_below: float | None = None
    retire_decay_k: float = DEFAULT_DECAY_K
    clock: Callable[[], datetime] = field(default=utc_now, compare=False)

    def maintain(
        self,
        context_id: str,
        session_propositions: list[Proposition] | None = None,
    ) -> MaintenanceResult:
        """Run all maintenance phases for ``context_id``."""
        consolidation = self._consolidate(context_id, list(session_propositions or []))
        abstractions, superseded = self._abstract(context_id)
        retired = self._retire(context_id)

        result = MaintenanceResult(
            consolidation=consolidation,
            abstractions=abstractions,
            superseded=superseded,
            retired=retired,
        )
        logger.info(
            "Maintenance of context %s: persisted=%d removed=%d",
            context_id,
            result.total_persisted,
            result.total_removed,
        )
        return result

    def _active_query(self, context_id: str) -> PropositionQuery:
        return PropositionQuery.for_context_id(context_id).with_status(PropositionStatus.ACTIVE)

    def _consolidate(self, context_id: str, session_propositions: list[Proposition]) -> ConsolidationResult | None:
        if not session_propositions:
            return None

        existing = self.repository.query(self._active_query(context_id))
        result = self.consolidator.consolidate(session_propositions, existing)

        self.repository.save_all(result.promoted)
        self.repository.save_all(result.reinforced)
        self.repository.save_all([m.result for m in result.merged])

        logger.info(
            "Consolidated %d session propositions: promoted=%d reinforced=%d merged=%d discarded=%d",
            len(session_propositions),
            len(result.promoted),
            len(result.reinforced),
            len(result.merged),
            len(result.discarded),
        )
        return result

    def _abstract(self, context_id: str) -> tuple[list[Proposition], list[Proposition]]:
        if self.abstractor is None:
            return [], []

        raw = self.repository.query(self._active_query(context_id).with_max_level(0))
        # Group membership is fixed up front; one group's supersession does not affect another's.
        groups = {
            entity_id: members
            for entity_id, members in group_by_entity(raw).items()
            if len(members) >= self.abstraction_threshold
        }

        all_abstractions: list[Proposition] = []
        all_superseded: list[Proposition] = []
        for entity_id, members in groups.items():
            abstractions = self.abstractor.abstract(
                PropositionGroup.of(entity_id, members),
                self.abstraction_target_count,
            )
            self.repository.save_all(abstractions)
            all_abstractions.extend(abstractions)

            superseded = [p.with_status(PropositionStatus.SUPERSEDED) for p in members]
            self.repository.save_all(superseded)
            all_superseded.extend(superseded)
            logger.info(
                "Abstracted entity %s: %d sources -> %d abstractions",
                entity_id,
                len(members),
                len(abstractions),
            )

        return all_abstractions, all_superseded

    def _retire(self, context_id: str) -> list[Proposition]:
        if self.retire_below is None:
            return []

        policy = RetirementPolicy(self.retire_below, self.retire_decay_k)
        active = self.repository.query(self._active_query(context_id))
        to_retire = policy.select(active, self.clock())

        for proposition in to_retire:
            self.repository.delete(proposition.id)
            logger.debug("Retired %s", proposition.id)

        if to_retire:
            logger.info("Retired %d propositions below %.3f", len(to_retire), self.retire_below)
        return to_retire

    def with_abstractor(self, abstractor: PropositionAbstractor) -> MemoryMaintenanceOrchestrator:
        return replace(self, abstractor=abstractor)

    def with_abstraction_threshold(self, threshold: int) -> MemoryMaintenanceOrchestrator:
        return replace(self, abstraction_threshold=threshold)

    def with_abstraction_target_count(self, target_count: int) -> MemoryMaintenanceOrchestrator:
        return replace(self, abstraction_target_count=target_count)

    def with_retire_below(self, threshold: float) -> MemoryMaintenanceOrchestrator:
        return replace(self, retire_below=threshold)

    def with_retire_decay_k(self, k: float) -> MemoryMaintenanceOrchestrator:
        return replace(self, retire_decay_k=k)

    def with_clock(self, clock: Callable[[], datetime]) -> MemoryMaintenanceOrchestrator:
        return replace(self, clock=clock)
