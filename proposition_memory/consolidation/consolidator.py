"""Session-to-long-term memory consolidation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from statistics import fmean

from pydantic import BaseModel, ConfigDict, Field

from proposition_memory.schemas import Proposition, PropositionStatus, new_proposition_id, utc_now
from proposition_memory.scoring import proposition_similarity

logger = logging.getLogger("pm.consolidation")

REINFORCE_ABOVE = 0.9


class PropositionMerge(BaseModel):
    """Sources merged into a freshly synthesized proposition."""

    model_config = ConfigDict(frozen=True)

    sources: list[Proposition]
    result: Proposition


class ConsolidationResult(BaseModel):
    """Outcome of one consolidation run. Each session proposition lands in exactly one bucket."""

    model_config = ConfigDict(frozen=True)

    promoted: list[Proposition] = Field(default_factory=list)
    reinforced: list[Proposition] = Field(default_factory=list)
    discarded: list[Proposition] = Field(default_factory=list)
    merged: list[PropositionMerge] = Field(default_factory=list)

    @property
    def stored_count(self) -> int:
        """Number of propositions that will be written."""
        return len(self.promoted) + len(self.reinforced) + len(self.merged)

    def to_persist(self) -> list[Proposition]:
        return [*self.promoted, *self.reinforced, *(m.result for m in self.merged)]


class MemoryConsolidator(ABC):
    """Decides what session knowledge to keep, reinforce, merge or drop."""

    @abstractmethod
    def consolidate(
        self,
        session_propositions: list[Proposition],
        existing_propositions: list[Proposition],
    ) -> ConsolidationResult:
        """Classify each session proposition against existing long-term ones."""


class DefaultMemoryConsolidator(MemoryConsolidator):
    """Similarity-based consolidation. Pure: no I/O, inputs are never modified.

    Per session proposition:
    - no existing match and confidence >= promotion_threshold: promote
    - best match above 0.9: reinforce the existing proposition
    - best match between similarity_threshold and 0.9: merge both into a new one
    - otherwise: discard

    Among equally similar matches the first in ``existing_propositions`` order wins.
    """

    def __init__(
        self,
        promotion_threshold: float = 0.6,
        similarity_threshold: float = 0.7,
        reinforcement_boost: float = 0.1,
    ) -> None:
        self.promotion_threshold = promotion_threshold
        self.similarity_threshold = similarity_threshold
        self.reinforcement_boost = reinforcement_boost

    def consolidate(
        self,
        session_propositions: list[Proposition],
        existing_propositions: list[Proposition],
    ) -> ConsolidationResult:
        promoted: list[Proposition] = []
        reinforced: list[Proposition] = []
        discarded: list[Proposition] = []
        merged: list[PropositionMerge] = []

        for session_prop in session_propositions:
            similar = self._find_similar(session_prop, existing_propositions)

            if similar:
                best_match, best_similarity = max(similar, key=lambda pair: pair[1])
                if best_similarity > REINFORCE_ABOVE:
                    reinforced.append(self._reinforce(best_match, session_prop))
                    logger.debug("Reinforced %s (similarity=%.3f)", best_match.id, best_similarity)
                else:
                    sources = [best_match, session_prop]
                    merged.append(PropositionMerge(sources=sources, result=self._merge(sources)))
                    logger.debug("Merged %s into %s (similarity=%.3f)", session_prop.id, best_match.id, best_similarity)
            elif session_prop.confidence >= self.promotion_threshold:
                promoted.append(session_prop.model_copy(update={"status": PropositionStatus.ACTIVE}))
            else:
                discarded.append(session_prop)

        return ConsolidationResult(
            promoted=promoted,
            reinforced=reinforced,
            discarded=discarded,
            merged=merged,
        )

    def _find_similar(
        self,
        proposition: Proposition,
        existing_propositions: list[Proposition],
    ) -> list[tuple[Proposition, float]]:
        scored = [(existing, proposition_similarity(proposition, existing)) for existing in existing_propositions]
        return [(existing, score) for existing, score in scored if score >= self.similarity_threshold]

    def _reinforce(self, existing: Proposition, session: Proposition) -> Proposition:
        return existing.with_reinforcement(
            confidence=min(1.0, existing.confidence + self.reinforcement_boost),
            grounding=session.grounding,
        )

    @staticmethod
    def _merge(propositions: list[Proposition]) -> Proposition:
        best = max(propositions, key=lambda p: p.confidence)
        now = utc_now()
        grounding = list(dict.fromkeys(g for p in propositions for g in p.grounding))
        return best.model_copy(
            deep=True,
            update={
                "id": new_proposition_id(),
                "confidence": fmean(p.confidence for p in propositions),
                "grounding": grounding,
                "reinforce_count": max(p.reinforce_count for p in propositions) + 1,
                "created": now,
                "revised": now,
            },
        )
