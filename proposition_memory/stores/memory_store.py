"""In-memory proposition repository with vector similarity search."""

from __future__ import annotations

import logging
import threading

from proposition_memory.query import PropositionQuery
from proposition_memory.schemas import Proposition, PropositionStatus
from proposition_memory.scoring import cosine_similarity
from proposition_memory.stores.base import (
    Cluster,
    PropositionRepository,
    SimilarityResult,
    SimilaritySearchRequest,
)
from proposition_memory.stores.vector_store import EmbeddingService, HashingEmbeddingService

logger = logging.getLogger("pm.store")


class InMemoryPropositionRepository(PropositionRepository):
    """Thread-safe dictionary-backed store.

    The embedding of each proposition's text is computed inside ``save``, so a
    similarity query issued after ``save`` returns, from any thread, sees it.
    """

    def __init__(self, embedding_service: EmbeddingService | None = None) -> None:
        self.embedding_service = embedding_service or HashingEmbeddingService()
        self._propositions: dict[str, Proposition] = {}
        self._embeddings: dict[str, list[float]] = {}
        self._lock = threading.RLock()

    def save(self, proposition: Proposition) -> Proposition:
        embedding = self.embedding_service.embed(proposition.embeddable_value())
        with self._lock:
            self._propositions[proposition.id] = proposition
            self._embeddings[proposition.id] = embedding
        return proposition

    def _snapshot(self) -> list[Proposition]:
        with self._lock:
            return list(self._propositions.values())

    def _embedding_for(self, proposition_id: str) -> list[float] | None:
        with self._lock:
            return self._embeddings.get(proposition_id)

    def find_by_id(self, proposition_id: str) -> Proposition | None:
        with self._lock:
            return self._propositions.get(proposition_id)

    def find_by_entity(self, entity_id: str) -> list[Proposition]:
        return [p for p in self._snapshot() if any(m.resolved_id == entity_id for m in p.mentions)]

    def find_similar_with_scores(
        self,
        request: SimilaritySearchRequest,
        query: PropositionQuery | None = None,
    ) -> list[SimilarityResult]:
        candidates = self._snapshot()
        if not candidates:
            return []
        if query is not None:
            candidates = [p for p in candidates if query.matches(p)]
            if not candidates:
                return []

        query_embedding = self.embedding_service.embed(request.query)
        results: list[SimilarityResult] = []
        for proposition in candidates:
            embedding = self._embedding_for(proposition.id)
            if embedding is None:
                continue
            score = cosine_similarity(query_embedding, embedding)
            if score >= request.similarity_threshold:
                results.append(SimilarityResult(match=proposition, score=score))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[: request.top_k]

    def find_clusters(
        self,
        similarity_threshold: float,
        top_k: int,
        query: PropositionQuery,
    ) -> list[Cluster]:
        candidates = self.query(query)
        embeddings = {p.id: self._embedding_for(p.id) for p in candidates}

        clusters: list[Cluster] = []
        for anchor in candidates:
            anchor_embedding = embeddings.get(anchor.id)
            if anchor_embedding is None:
                continue
            similar: list[SimilarityResult] = []
            for other in candidates:
                # Only (anchor, other) with anchor.id < other.id, so no symmetric duplicates.
                if not anchor.id < other.id:
                    continue
                other_embedding = embeddings.get(other.id)
                if other_embedding is None:
                    continue
                score = cosine_similarity(anchor_embedding, other_embedding)
                if score >= similarity_threshold:
                    similar.append(SimilarityResult(match=other, score=score))
            similar.sort(key=lambda r: r.score, reverse=True)
            if similar:
                clusters.append(Cluster(anchor=anchor, similar=similar[:top_k]))
        clusters.sort(key=lambda c: len(c.similar), reverse=True)
        return clusters

    def find_by_status(self, status: PropositionStatus) -> list[Proposition]:
        return [p for p in self._snapshot() if p.status == status]

    def find_by_grounding(self, chunk_id: str) -> list[Proposition]:
        return [p for p in self._snapshot() if chunk_id in p.grounding]

    def find_by_context_id(self, context_id: str) -> list[Proposition]:
        return [p for p in self._snapshot() if p.context_id == context_id]

    def find_by_min_level(self, min_level: int) -> list[Proposition]:
        return [p for p in self._snapshot() if p.level >= min_level]

    def find_all(self) -> list[Proposition]:
        return self._snapshot()

    def query(self, query: PropositionQuery) -> list[Proposition]:
        if not query.is_scoped:
            logger.debug("Running unscoped proposition query over %d propositions", self.count())
        return query.apply(self._snapshot())

    def delete(self, proposition_id: str) -> bool:
        with self._lock:
            self._embeddings.pop(proposition_id, None)
            return self._propositions.pop(proposition_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._propositions)

    def clear(self) -> None:
        """Drop all propositions and cached embeddings."""
        with self._lock:
            self._propositions.clear()
            self._embeddings.clear()
