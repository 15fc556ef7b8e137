"""Storage contract for propositions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from proposition_memory.query import PropositionQuery
from proposition_memory.schemas import Proposition, PropositionStatus


class SimilaritySearchRequest(BaseModel):
    """Text similarity search parameters."""

    model_config = ConfigDict(frozen=True)

    query: str
    similarity_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    top_k: int = Field(default=10, ge=0)


class SimilarityResult(BaseModel):
    """A proposition matched by similarity search, with its score."""

    model_config = ConfigDict(frozen=True)

    match: Proposition
    score: float


class Cluster(BaseModel):
    """An anchor proposition with its most similar neighbours."""

    model_config = ConfigDict(frozen=True)

    anchor: Proposition
    similar: list[SimilarityResult]


class PropositionRepository(ABC):
    """Durable storage and retrieval of propositions, keyed by id.

    Finders return empty lists when nothing matches; ``delete`` of a missing id
    returns False. Backend failures propagate to the caller.
    """

    @abstractmethod
    def save(self, proposition: Proposition) -> Proposition:
        """Upsert by id. Any similarity index is updated before returning."""

    def save_all(self, propositions: Iterable[Proposition]) -> list[Proposition]:
        return [self.save(p) for p in propositions]

    @abstractmethod
    def find_by_id(self, proposition_id: str) -> Proposition | None:
        """Return the proposition with this id, if any."""

    @abstractmethod
    def find_by_entity(self, entity_id: str) -> list[Proposition]:
        """Propositions where any mention resolves to ``entity_id``."""

    def find_similar(
        self,
        text: str,
        similarity_threshold: float = 0.0,
        top_k: int = 10,
    ) -> list[Proposition]:
        """Propositions most similar to ``text``, best first."""
        request = SimilaritySearchRequest(query=text, similarity_threshold=similarity_threshold, top_k=top_k)
        return [result.match for result in self.find_similar_with_scores(request)]

    @abstractmethod
    def find_similar_with_scores(
        self,
        request: SimilaritySearchRequest,
        query: PropositionQuery | None = None,
    ) -> list[SimilarityResult]:
        """Similarity search; when ``query`` is given, candidates are filtered before scoring."""

    @abstractmethod
    def find_clusters(
        self,
        similarity_threshold: float,
        top_k: int,
        query: PropositionQuery,
    ) -> list[Cluster]:
        """Group propositions matching ``query`` into similarity clusters."""

    @abstractmethod
    def find_by_status(self, status: PropositionStatus) -> list[Proposition]:
        """Propositions in the given lifecycle status."""

    @abstractmethod
    def find_by_grounding(self, chunk_id: str) -> list[Proposition]:
        """Propositions supported by the given source chunk."""

    @abstractmethod
    def find_by_context_id(self, context_id: str) -> list[Proposition]:
        """Propositions in the given context."""

    @abstractmethod
    def find_by_min_level(self, min_level: int) -> list[Proposition]:
        """Propositions at or above the given abstraction level."""

    @abstractmethod
    def find_all(self) -> list[Proposition]:
        """Every stored proposition."""

    @abstractmethod
    def delete(self, proposition_id: str) -> bool:
        """Remove by id; False if it did not exist."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored propositions."""

    def query(self, query: PropositionQuery) -> list[Proposition]:
        return query.apply(self.find_all())
