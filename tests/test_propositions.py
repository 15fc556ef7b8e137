"""Proposition model and decay tests."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from proposition_memory.schemas import EntityMention, MentionRole, Proposition, PropositionGroup, PropositionStatus

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def build_proposition(**overrides: object) -> Proposition:
    fields: dict[str, object] = {
        "context_id": "user-1",
        "text": "Jim is an expert in GOAP",
        "mentions": [
            EntityMention(span="Jim", type="Person", resolved_id="jim", role=MentionRole.SUBJECT),
            EntityMention(span="GOAP", type="Technology", role=MentionRole.OBJECT),
        ],
        "confidence": 0.8,
        "decay": 0.1,
        "created": NOW - timedelta(days=10),
        "revised": NOW - timedelta(days=10),
    }
    fields.update(overrides)
    return Proposition(**fields)


@pytest.mark.parametrize("field", ["confidence", "decay", "importance"])
@pytest.mark.parametrize("value", [-0.01, 1.01])
def test_out_of_range_scores_are_rejected(field: str, value: float) -> None:
    with pytest.raises(ValidationError):
        build_proposition(**{field: value})


def test_negative_level_and_reinforce_count_are_rejected() -> None:
    with pytest.raises(ValidationError):
        build_proposition(level=-1)
    with pytest.raises(ValidationError):
        build_proposition(reinforce_count=-1)


def test_abstraction_requires_source_ids() -> None:
    with pytest.raises(ValidationError):
        build_proposition(level=1)

    abstraction = build_proposition(level=1, source_ids=["a", "b"])
    assert abstraction.level == 1


def test_ids_are_generated_and_unique() -> None:
    a = build_proposition()
    b = build_proposition()
    assert a.id and b.id
    assert a.id != b.id


def test_effective_confidence_equals_confidence_at_revision_time() -> None:
    prop = build_proposition(decay=0.7)
    assert prop.effective_confidence_at(prop.revised, k=2.0) == prop.confidence


def test_effective_confidence_follows_exponential_decay() -> None:
    prop = build_proposition(confidence=0.5, decay=0.25, revised=NOW)
    expected = 0.5 * math.exp(-0.25 * 2.0 * 4)
    assert prop.effective_confidence_at(NOW + timedelta(days=4)) == pytest.approx(expected)


def test_effective_confidence_is_non_increasing_over_time() -> None:
    prop = build_proposition(decay=0.3)
    instants = [prop.revised + timedelta(hours=6 * i) for i in range(20)]
    values = [prop.effective_confidence_at(t) for t in instants]
    assert all(later <= earlier for earlier, later in zip(values, values[1:]))


def test_instants_before_revision_do_not_decay() -> None:
    prop = build_proposition(decay=1.0)
    assert prop.effective_confidence_at(prop.revised - timedelta(days=30)) == prop.confidence
    assert prop.effective_confidence_at(prop.created - timedelta(days=365)) == prop.confidence


def test_zero_decay_is_permanent() -> None:
    prop = build_proposition(decay=0.0)
    assert prop.effective_confidence_at(NOW + timedelta(days=3650)) == prop.confidence


def test_naive_datetimes_are_treated_as_utc() -> None:
    prop = build_proposition(revised=datetime(2026, 1, 1))
    assert prop.revised.tzinfo is not None
    assert prop.effective_confidence_at(datetime(2026, 1, 1)) == prop.confidence


def test_with_methods_return_new_values_and_bump_revised() -> None:
    prop = build_proposition()

    superseded = prop.with_status(PropositionStatus.SUPERSEDED)
    assert superseded.status is PropositionStatus.SUPERSEDED
    assert prop.status is PropositionStatus.ACTIVE
    assert superseded.revised > prop.revised
    assert superseded.created == prop.created
    assert superseded.id == prop.id

    adjusted = prop.with_confidence(0.3)
    assert adjusted.confidence == 0.3
    assert prop.confidence == 0.8

    resolved = prop.with_resolved_mentions([m.with_resolved_id("goap") for m in prop.mentions])
    assert resolved.entity_ids() == {"goap"}
    assert prop.entity_ids() == {"jim"}


def test_with_confidence_rejects_out_of_range() -> None:
    with pytest.raises(ValueError):
        build_proposition().with_confidence(1.5)


def test_with_grounding_accumulates_without_duplicates() -> None:
    prop = build_proposition(grounding=["c1", "c2"])
    grounded = prop.with_grounding(["c2", "c3"])
    assert grounded.grounding == ["c1", "c2", "c3"]
    assert prop.grounding == ["c1", "c2"]


def test_with_reinforcement_counts_and_unions_grounding() -> None:
    prop = build_proposition(grounding=["c1"], reinforce_count=2)
    reinforced = prop.with_reinforcement(confidence=0.9, grounding=["c1", "c9"])
    assert reinforced.reinforce_count == 3
    assert reinforced.grounding == ["c1", "c9"]
    assert reinforced.confidence == 0.9


def test_with_decay_applied_keeps_revised() -> None:
    prop = build_proposition(confidence=0.8, decay=0.5, revised=NOW)
    decayed = prop.with_decay_applied(as_of=NOW + timedelta(days=1))
    assert decayed.confidence == pytest.approx(0.8 * math.exp(-1.0))
    assert decayed.revised == prop.revised


def test_propositions_are_frozen() -> None:
    prop = build_proposition()
    with pytest.raises(ValidationError):
        prop.confidence = 0.1  # type: ignore[misc]


def test_info_strings() -> None:
    prop = build_proposition()
    assert prop.info_string() == 'Proposition("Jim is an expert in GOAP" [Jim:Person→jim, GOAP:Technology?])'
    assert "status=ACTIVE" in prop.info_string(verbose=True)


def test_proposition_group() -> None:
    group = PropositionGroup.of("jim", [build_proposition(), build_proposition()])
    assert group.size == 2
    assert not group.is_empty()
    assert PropositionGroup.of("", []).is_empty()
