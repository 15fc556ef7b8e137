"""Proposition revision against an existing store.

A reviser classifies how a new proposition relates to stored ones and returns
a ``RevisionResult``. It never persists: ``persist_revisions`` applies the
fixed persistence mapping afterwards.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from proposition_memory.query import PropositionQuery
from proposition_memory.schemas import Proposition, PropositionStatus
from proposition_memory.stores.base import PropositionRepository, SimilarityResult, SimilaritySearchRequest

logger = logging.getLogger("pm.revision")


class PropositionRelation(str, Enum):
    """How a new proposition relates to an existing one."""

    IDENTICAL = "IDENTICAL"
    SIMILAR = "SIMILAR"
    UNRELATED = "UNRELATED"
    CONTRADICTORY = "CONTRADICTORY"
    GENERALIZES = "GENERALIZES"


@dataclass(frozen=True)
class ClassifiedProposition:
    proposition: Proposition
    relation: PropositionRelation
    similarity: float
    reasoning: str | None = None


@dataclass(frozen=True)
class New:
    """Stored as a new proposition; nothing related was found."""

    proposition: Proposition


@dataclass(frozen=True)
class Merged:
    """Folded into an identical existing proposition."""

    original: Proposition
    revised: Proposition


@dataclass(frozen=True)
class Reinforced:
    """Corroborates a similar existing proposition."""

    original: Proposition
    revised: Proposition


@dataclass(frozen=True)
class Contradicted:
    """Conflicts with an existing proposition; both are kept, the original weakened."""

    original: Proposition
    new: Proposition


@dataclass(frozen=True)
class Generalized:
    """New proposition generalizing existing ones; the caller supersedes the sources."""

    generalizes: list[Proposition]
    proposition: Proposition


RevisionResult = New | Merged | Reinforced | Contradicted | Generalized


def propositions_to_persist(result: RevisionResult) -> list[Proposition]:
    """Propositions a revision outcome writes back to the store."""
    match result:
        case New(proposition=proposition):
            return [proposition]
        case Merged(revised=revised) | Reinforced(revised=revised):
            return [revised]
        case Contradicted(original=original, new=new):
            return [original, new]
        case Generalized(proposition=proposition):
            return [proposition]
        case _:
            assert_never(result)


def persist_revisions(results: Iterable[RevisionResult], repository: PropositionRepository) -> list[Proposition]:
    to_save = [p for result in results for p in propositions_to_persist(result)]
    return repository.save_all(to_save)


class PropositionReviser(ABC):
    """Revises new propositions against a repository.

    Subclasses supply ``classify``; candidate retrieval and the mapping from
    classifications to a ``RevisionResult`` are shared.
    """

    def __init__(
        self,
        top_k: int = 5,
        similarity_threshold: float = 0.5,
        min_similarity_for_reinforce: float = 0.7,
    ) -> None:
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.min_similarity_for_reinforce = min_similarity_for_reinforce

    @abstractmethod
    def classify(
        self,
        new_proposition: Proposition,
        candidates: list[SimilarityResult],
    ) -> list[ClassifiedProposition]:
        """Relate ``new_proposition`` to each scored candidate."""

    def candidates(self, new_proposition: Proposition, repository: PropositionRepository) -> list[SimilarityResult]:
        """ACTIVE propositions of the same context most similar to ``new_proposition``, with scores."""
        request = SimilaritySearchRequest(
            query=new_proposition.text,
            similarity_threshold=self.similarity_threshold,
            top_k=self.top_k,
        )
        scope = PropositionQuery.for_context_id(new_proposition.context_id).with_status(PropositionStatus.ACTIVE)
        results = repository.find_similar_with_scores(request, scope)
        return [r for r in results if r.match.id != new_proposition.id]

    def revise(self, new_proposition: Proposition, repository: PropositionRepository) -> RevisionResult:
        candidates = self.candidates(new_proposition, repository)
        if not candidates:
            return New(new_proposition)
        return self.classified_to_result(new_proposition, self.classify(new_proposition, candidates), repository)

    def revise_all(self, propositions: list[Proposition], repository: PropositionRepository) -> list[RevisionResult]:
        return [self.revise(p, repository) for p in propositions]

    def classified_to_result(
        self,
        new_proposition: Proposition,
        classified: list[ClassifiedProposition],
        repository: PropositionRepository,
    ) -> RevisionResult:
        """Resolve classifications in priority order: identical, contradictory, generalizes, similar."""

        def first(relation: PropositionRelation) -> ClassifiedProposition | None:
            return next((c for c in classified if c.relation is relation), None)

        def current(candidate: ClassifiedProposition) -> Proposition:
            return repository.find_by_id(candidate.proposition.id) or candidate.proposition

        identical = first(PropositionRelation.IDENTICAL)
        if identical is not None:
            original = current(identical)
            revised = original.with_reinforcement(
                confidence=min(0.99, original.confidence + new_proposition.confidence * 0.3),
                grounding=new_proposition.grounding,
                decay=original.decay * 0.7,
            )
            logger.debug("Merged %r into %s", new_proposition.text, original.id)
            return Merged(original, revised)

        contradictory = first(PropositionRelation.CONTRADICTORY)
        if contradictory is not None:
            original = current(contradictory)
            weakened = original.with_confidence(max(0.05, original.confidence * 0.3)).with_status(
                PropositionStatus.CONTRADICTED
            )
            weakened = weakened.model_copy(update={"decay": min(1.0, original.decay + 0.15)})
            logger.debug("Contradicted %s by %r", original.id, new_proposition.text)
            return Contradicted(weakened, new_proposition)

        generalizes = [c.proposition for c in classified if c.relation is PropositionRelation.GENERALIZES]
        if generalizes:
            return Generalized(generalizes, new_proposition)

        similar = [
            c
            for c in classified
            if c.relation is PropositionRelation.SIMILAR and c.similarity >= self.min_similarity_for_reinforce
        ]
        if similar:
            original = current(max(similar, key=lambda c: c.similarity))
            revised = original.with_reinforcement(
                confidence=min(0.95, original.confidence + new_proposition.confidence * 0.1),
                grounding=new_proposition.grounding,
                decay=original.decay * 0.85,
            )
            return Reinforced(original, revised)

        return New(new_proposition)


class SimilarityPropositionReviser(PropositionReviser):
    """Rule-based reviser: relation is decided by embedding similarity alone.

    Scores are the ones candidate retrieval already computed, so only ACTIVE
    propositions of the same context are ever compared. Never reports
    CONTRADICTORY or GENERALIZES; those need semantic judgement.
    """

    def __init__(
        self,
        identical_threshold: float = 0.95,
        similar_threshold: float = 0.7,
        top_k: int = 5,
    ) -> None:
        super().__init__(
            top_k=top_k,
            similarity_threshold=0.0,
            min_similarity_for_reinforce=similar_threshold,
        )
        self.identical_threshold = identical_threshold
        self.similar_threshold = similar_threshold

    def classify(
        self,
        new_proposition: Proposition,
        candidates: list[SimilarityResult],
    ) -> list[ClassifiedProposition]:
        classified: list[ClassifiedProposition] = []
        for candidate in candidates:
            if candidate.score >= self.identical_threshold:
                relation = PropositionRelation.IDENTICAL
            elif candidate.score >= self.similar_threshold:
                relation = PropositionRelation.SIMILAR
            else:
                relation = PropositionRelation.UNRELATED
            classified.append(ClassifiedProposition(candidate.match, relation, candidate.score))
        return classified
