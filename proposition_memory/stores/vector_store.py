"""Embedding services used by the similarity index."""

from __future__ import annotations

import hashlib
import math
from collections import Counter
from typing import Protocol


class EmbeddingService(Protocol):
    """Maps text to a dense vector. Every call must return the same dimension."""

    def embed(self, text: str) -> list[float]: ...


def _tokenize(text: str) -> list[str]:
    return [t for t in "".join(ch.lower() if ch.isalnum() else " " for ch in text).split() if t]


class HashingEmbeddingService:
    """Deterministic bag-of-words embedder.

    Token counts are hashed into a fixed number of buckets and L2-normalised, so
    texts with the same vocabulary embed identically and disjoint texts are
    (barring bucket collisions) orthogonal. Offline stand-in for a model.
    """

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    def _bucket(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self.dimensions

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token, count in Counter(_tokenize(text)).items():
            vector[self._bucket(token)] += count
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]
