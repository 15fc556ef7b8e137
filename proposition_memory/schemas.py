"""Pydantic schemas for propositions and their entity mentions."""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_DECAY_K = 2.0
SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    """Return UTC datetime for default timestamps."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def new_proposition_id() -> str:
    return str(uuid.uuid4())


class MentionRole(str, Enum):
    """Role an entity mention plays in a proposition."""

    SUBJECT = "SUBJECT"
    OBJECT = "OBJECT"
    OTHER = "OTHER"


class PropositionStatus(str, Enum):
    """Lifecycle status of a proposition."""

    ACTIVE = "ACTIVE"
    SUPERSEDED = "SUPERSEDED"
    CONTRADICTED = "CONTRADICTED"
    PROMOTED = "PROMOTED"


class EntityMention(BaseModel):
    """Reference to an entity inside a proposition's text."""

    model_config = ConfigDict(frozen=True)

    span: str
    type: str
    resolved_id: str | None = None
    role: MentionRole = MentionRole.OTHER
    hints: dict[str, Any] = Field(default_factory=dict)

    def with_resolved_id(self, entity_id: str) -> EntityMention:
        return self.model_copy(update={"resolved_id": entity_id})

    def info_string(self) -> str:
        resolved = f"→{self.resolved_id}" if self.resolved_id else "?"
        return f"{self.span}:{self.type}{resolved}"


class Proposition(BaseModel):
    """Uncertain natural-language statement with entity mentions and provenance.

    Confidence is the certainty at creation or last revision. Staleness is not
    stored: ``effective_confidence_at`` derives it from ``decay`` and the age of
    ``revised``. Instances are frozen; every ``with_*`` method returns a copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_proposition_id)
    context_id: str
    text: str
    mentions: list[EntityMention] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    decay: float = Field(default=0.0, ge=0.0, le=1.0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str | None = None
    grounding: list[str] = Field(default_factory=list)
    created: datetime = Field(default_factory=utc_now)
    revised: datetime = Field(default_factory=utc_now)
    status: PropositionStatus = PropositionStatus.ACTIVE
    level: int = Field(default=0, ge=0)
    source_ids: list[str] = Field(default_factory=list)
    reinforce_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("created", "revised")
    @classmethod
    def _timestamps_are_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _abstractions_have_sources(self) -> Proposition:
        if self.level > 0 and not self.source_ids:
            raise ValueError("Abstracted propositions (level > 0) must have source_ids")
        return self

    def entity_ids(self) -> set[str]:
        """Resolved entity IDs mentioned by this proposition."""
        return {m.resolved_id for m in self.mentions if m.resolved_id is not None}

    def embeddable_value(self) -> str:
        return self.text

    def info_string(self, verbose: bool = False) -> str:
        mention_str = ", ".join(m.info_string() for m in self.mentions)
        if verbose:
            return (
                f'Proposition(text="{self.text}", mentions=[{mention_str}], '
                f"conf={self.confidence}, importance={self.importance}, status={self.status.value})"
            )
        return f'Proposition("{self.text}" [{mention_str}])'

    def with_resolved_mentions(self, mentions: list[EntityMention]) -> Proposition:
        return self.model_copy(update={"mentions": list(mentions), "revised": utc_now()})

    def with_status(self, status: PropositionStatus) -> Proposition:
        return self.model_copy(update={"status": status, "revised": utc_now()})

    def with_confidence(self, confidence: float) -> Proposition:
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("Confidence must be between 0.0 and 1.0")
        return self.model_copy(update={"confidence": confidence, "revised": utc_now()})

    def with_grounding(self, chunk_ids: list[str]) -> Proposition:
        grounding = list(dict.fromkeys([*self.grounding, *chunk_ids]))
        return self.model_copy(update={"grounding": grounding, "revised": utc_now()})

    def with_reinforcement(
        self,
        confidence: float,
        grounding: list[str],
        decay: float | None = None,
    ) -> Proposition:
        """Copy with new evidence folded in: confidence, grounding union, one more reinforcement."""
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("Confidence must be between 0.0 and 1.0")
        update: dict[str, Any] = {
            "confidence": confidence,
            "grounding": list(dict.fromkeys([*self.grounding, *grounding])),
            "reinforce_count": self.reinforce_count + 1,
            "revised": utc_now(),
        }
        if decay is not None:
            update["decay"] = min(1.0, max(0.0, decay))
        return self.model_copy(update=update)

    def effective_confidence(self, k: float = DEFAULT_DECAY_K) -> float:
        """Confidence after time-based decay, as of now."""
        return self.effective_confidence_at(utc_now(), k)

    def effective_confidence_at(self, as_of: datetime, k: float = DEFAULT_DECAY_K) -> float:
        """Confidence after decay as of ``as_of``: ``confidence * exp(-decay * k * age_days)``.

        Instants before ``revised`` count as age zero.
        """
        age_days = max(0.0, (as_utc(as_of) - self.revised).total_seconds() / SECONDS_PER_DAY)
        return self.confidence * math.exp(-self.decay * k * age_days)

    def with_decay_applied(self, k: float = DEFAULT_DECAY_K, as_of: datetime | None = None) -> Proposition:
        """Copy whose stored confidence is the decayed one. ``revised`` is left untouched."""
        effective = self.effective_confidence_at(as_of or utc_now(), k)
        return self.model_copy(update={"confidence": min(1.0, max(0.0, effective))})


class PropositionGroup(BaseModel):
    """Labelled group of propositions, e.g. everything known about one entity."""

    model_config = ConfigDict(frozen=True)

    label: str
    propositions: list[Proposition] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.propositions)

    def is_empty(self) -> bool:
        return not self.propositions

    @classmethod
    def of(cls, label: str, propositions: list[Proposition]) -> PropositionGroup:
        return cls(label=label, propositions=list(propositions))
