"""Similarity helpers shared by consolidation, revision and vector search."""

from __future__ import annotations

import math
from collections.abc import Sequence

from proposition_memory.schemas import Proposition

TEXT_WEIGHT = 0.7
ENTITY_WEIGHT = 0.3
ENTITYLESS_OVERLAP = 0.5


def _word_set(text: str) -> set[str]:
    return {token for token in text.lower().split() if token}


def text_jaccard(a: str, b: str) -> float:
    """Jaccard similarity of lower-cased whitespace token sets."""
    a_words = _word_set(a)
    b_words = _word_set(b)
    if not a_words and not b_words:
        return 1.0
    return len(a_words & b_words) / len(a_words | b_words)


def entity_overlap(a: Proposition, b: Proposition) -> float:
    """Jaccard similarity of resolved entity IDs.

    Two entity-less propositions score 0.5; exactly one entity-less side scores 0.0.
    """
    a_entities = a.entity_ids()
    b_entities = b.entity_ids()
    if not a_entities and not b_entities:
        return ENTITYLESS_OVERLAP
    if not a_entities or not b_entities:
        return 0.0
    return len(a_entities & b_entities) / len(a_entities | b_entities)


def proposition_similarity(a: Proposition, b: Proposition) -> float:
    """Weighted blend of text and entity overlap."""
    return TEXT_WEIGHT * text_jaccard(a.text, b.text) + ENTITY_WEIGHT * entity_overlap(a, b)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two dense vectors of equal dimension."""
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same dimension: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)
