"""Retirement policy for stale propositions."""

from __future__ import annotations

from datetime import datetime

from proposition_memory.schemas import DEFAULT_DECAY_K, Proposition


class RetirementPolicy:
    """Selects propositions whose decayed confidence fell below a threshold."""

    def __init__(self, retire_below: float, decay_k: float = DEFAULT_DECAY_K) -> None:
        self.retire_below = retire_below
        self.decay_k = decay_k

    def should_retire(self, proposition: Proposition, as_of: datetime) -> bool:
        return proposition.effective_confidence_at(as_of, self.decay_k) < self.retire_below

    def select(self, propositions: list[Proposition], as_of: datetime) -> list[Proposition]:
        return [p for p in propositions if self.should_retire(p, as_of)]
