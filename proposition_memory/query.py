"""Composable queries over a proposition store.

Start from a scoped factory (``for_context_id``, ``mentioning_entity``) rather
than the bare constructor so a query never scans every context by accident.
``unscoped()`` exists for the rare caller that really wants everything.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from proposition_memory.schemas import (
    DEFAULT_DECAY_K,
    Proposition,
    PropositionStatus,
    as_utc,
    utc_now,
)


class OrderBy(str, Enum):
    """Ordering options for query results."""

    NONE = "none"
    EFFECTIVE_CONFIDENCE_DESC = "effective_confidence_desc"
    CREATED_DESC = "created_desc"
    REVISED_DESC = "revised_desc"
    REINFORCE_COUNT_DESC = "reinforce_count_desc"


class PropositionQuery(BaseModel):
    """Immutable filter, order and limit settings."""

    model_config = ConfigDict(frozen=True)

    # scope
    context_id: str | None = None
    entity_id: str | None = None
    any_entity_ids: frozenset[str] | None = None
    all_entity_ids: frozenset[str] | None = None

    # status and level
    status: PropositionStatus | None = None
    min_level: int | None = Field(default=None, ge=0)
    max_level: int | None = Field(default=None, ge=0)

    # temporal, exclusive bounds
    created_after: datetime | None = None
    created_before: datetime | None = None
    revised_after: datetime | None = None
    revised_before: datetime | None = None

    # confidence with decay
    min_effective_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    effective_confidence_as_of: datetime | None = None
    decay_k: float = Field(default=DEFAULT_DECAY_K, ge=0.0)

    min_reinforce_count: int | None = Field(default=None, ge=0)

    order_by: OrderBy = OrderBy.NONE
    limit: int | None = Field(default=None, ge=0)

    @classmethod
    def for_context_id(cls, context_id: str) -> PropositionQuery:
        return cls(context_id=context_id)

    @classmethod
    def mentioning_entity(cls, entity_id: str) -> PropositionQuery:
        return cls(entity_id=entity_id)

    @classmethod
    def mentioning_any_entity(cls, entity_ids: Iterable[str]) -> PropositionQuery:
        return cls(any_entity_ids=frozenset(entity_ids))

    @classmethod
    def mentioning_all_entities(cls, entity_ids: Iterable[str]) -> PropositionQuery:
        return cls(all_entity_ids=frozenset(entity_ids))

    @classmethod
    def unscoped(cls) -> PropositionQuery:
        """Explicit full-scan query."""
        return cls()

    @property
    def is_scoped(self) -> bool:
        return (
            self.context_id is not None
            or self.entity_id is not None
            or self.any_entity_ids is not None
            or self.all_entity_ids is not None
        )

    def _with(self, **update: Any) -> PropositionQuery:
        # Round-trip through validation so withers get the same checks as the constructor.
        return type(self).model_validate({**self.model_dump(), **update})

    def with_context_id(self, context_id: str) -> PropositionQuery:
        return self._with(context_id=context_id)

    def with_entity_id(self, entity_id: str) -> PropositionQuery:
        return self._with(entity_id=entity_id)

    def with_any_entity_ids(self, entity_ids: Iterable[str]) -> PropositionQuery:
        return self._with(any_entity_ids=frozenset(entity_ids))

    def with_all_entity_ids(self, entity_ids: Iterable[str]) -> PropositionQuery:
        return self._with(all_entity_ids=frozenset(entity_ids))

    def with_status(self, status: PropositionStatus) -> PropositionQuery:
        return self._with(status=status)

    def with_min_level(self, min_level: int) -> PropositionQuery:
        return self._with(min_level=min_level)

    def with_max_level(self, max_level: int) -> PropositionQuery:
        return self._with(max_level=max_level)

    def with_created_after(self, created_after: datetime) -> PropositionQuery:
        return self._with(created_after=created_after)

    def with_created_before(self, created_before: datetime) -> PropositionQuery:
        return self._with(created_before=created_before)

    def with_created_between(self, start: datetime, end: datetime) -> PropositionQuery:
        return self._with(created_after=start, created_before=end)

    def with_revised_after(self, revised_after: datetime) -> PropositionQuery:
        return self._with(revised_after=revised_after)

    def with_revised_before(self, revised_before: datetime) -> PropositionQuery:
        return self._with(revised_before=revised_before)

    def with_revised_between(self, start: datetime, end: datetime) -> PropositionQuery:
        return self._with(revised_after=start, revised_before=end)

    def with_min_effective_confidence(self, threshold: float) -> PropositionQuery:
        return self._with(min_effective_confidence=threshold)

    def with_effective_confidence_as_of(self, as_of: datetime) -> PropositionQuery:
        return self._with(effective_confidence_as_of=as_of)

    def with_decay_k(self, k: float) -> PropositionQuery:
        return self._with(decay_k=k)

    def with_min_reinforce_count(self, count: int) -> PropositionQuery:
        return self._with(min_reinforce_count=count)

    def with_order_by(self, order_by: OrderBy) -> PropositionQuery:
        return self._with(order_by=order_by)

    def ordered_by_effective_confidence(self) -> PropositionQuery:
        return self._with(order_by=OrderBy.EFFECTIVE_CONFIDENCE_DESC)

    def ordered_by_created(self) -> PropositionQuery:
        return self._with(order_by=OrderBy.CREATED_DESC)

    def ordered_by_revised(self) -> PropositionQuery:
        return self._with(order_by=OrderBy.REVISED_DESC)

    def ordered_by_reinforce_count(self) -> PropositionQuery:
        return self._with(order_by=OrderBy.REINFORCE_COUNT_DESC)

    def with_limit(self, limit: int) -> PropositionQuery:
        return self._with(limit=limit)

    def _as_of(self, now: datetime | None) -> datetime:
        return self.effective_confidence_as_of or now or utc_now()

    def matches(self, proposition: Proposition, now: datetime | None = None) -> bool:
        """Return True when the proposition passes every filter that is set."""
        p = proposition
        if self.context_id is not None and p.context_id != self.context_id:
            return False
        if self.status is not None and p.status != self.status:
            return False
        if self.min_level is not None and p.level < self.min_level:
            return False
        if self.max_level is not None and p.level > self.max_level:
            return False
        if self.min_reinforce_count is not None and p.reinforce_count < self.min_reinforce_count:
            return False

        if self.entity_id is not None or self.any_entity_ids is not None or self.all_entity_ids is not None:
            entity_ids = p.entity_ids()
            if self.entity_id is not None and self.entity_id not in entity_ids:
                return False
            if self.any_entity_ids is not None and not (entity_ids & self.any_entity_ids):
                return False
            if self.all_entity_ids is not None and not self.all_entity_ids <= entity_ids:
                return False

        if self.created_after is not None and not p.created > as_utc(self.created_after):
            return False
        if self.created_before is not None and not p.created < as_utc(self.created_before):
            return False
        if self.revised_after is not None and not p.revised > as_utc(self.revised_after):
            return False
        if self.revised_before is not None and not p.revised < as_utc(self.revised_before):
            return False

        if self.min_effective_confidence is not None:
            effective = p.effective_confidence_at(self._as_of(now), self.decay_k)
            if effective < self.min_effective_confidence:
                return False
        return True

    def apply(self, propositions: Iterable[Proposition], now: datetime | None = None) -> list[Proposition]:
        """Filter, order, then limit."""
        as_of = self._as_of(now)
        results = [p for p in propositions if self.matches(p, as_of)]

        if self.order_by is OrderBy.EFFECTIVE_CONFIDENCE_DESC:
            results.sort(key=lambda p: p.effective_confidence_at(as_of, self.decay_k), reverse=True)
        elif self.order_by is OrderBy.CREATED_DESC:
            results.sort(key=lambda p: p.created, reverse=True)
        elif self.order_by is OrderBy.REVISED_DESC:
            results.sort(key=lambda p: p.revised, reverse=True)
        elif self.order_by is OrderBy.REINFORCE_COUNT_DESC:
            results.sort(key=lambda p: p.reinforce_count, reverse=True)

        if self.limit is not None:
            results = results[: self.limit]
        return results
