"""Consolidation and similarity tests."""

from __future__ import annotations

import pytest

from proposition_memory.consolidation.consolidator import DefaultMemoryConsolidator
from proposition_memory.schemas import EntityMention, Proposition, PropositionStatus
from proposition_memory.scoring import entity_overlap, proposition_similarity, text_jaccard


def build_proposition(
    text: str,
    entities: list[str] | None = None,
    confidence: float = 0.8,
    **overrides: object,
) -> Proposition:
    fields: dict[str, object] = {
        "context_id": "user-1",
        "text": text,
        "mentions": [EntityMention(span=e, type="Thing", resolved_id=e) for e in entities or []],
        "confidence": confidence,
    }
    fields.update(overrides)
    return Proposition(**fields)


def test_text_jaccard() -> None:
    assert text_jaccard("Alice likes tea", "alice  LIKES tea") == 1.0
    assert text_jaccard("Alice likes tea", "Bob owns boats") == 0.0
    assert text_jaccard("", "   ") == 1.0
    assert text_jaccard("a b c d", "a b") == pytest.approx(0.5)
    assert text_jaccard("a b", "b c") == text_jaccard("b c", "a b")


def test_entity_overlap() -> None:
    none_a = build_proposition("x")
    none_b = build_proposition("y")
    alice = build_proposition("x", ["alice"])
    alice_bob = build_proposition("x", ["alice", "bob"])

    assert entity_overlap(none_a, none_b) == 0.5
    assert entity_overlap(none_a, alice) == 0.0
    assert entity_overlap(alice, alice_bob) == pytest.approx(0.5)


def test_blended_similarity() -> None:
    a = build_proposition("Alice likes green tea", ["alice"])
    b = build_proposition("Alice likes green tea daily", ["alice"])
    assert proposition_similarity(a, a) == pytest.approx(1.0)
    assert proposition_similarity(a, b) == pytest.approx(0.7 * 0.8 + 0.3)


def test_promotes_confident_proposition_without_matches() -> None:
    session = build_proposition("Alice likes green tea", ["alice"], confidence=0.8, status=PropositionStatus.PROMOTED)

    result = DefaultMemoryConsolidator(promotion_threshold=0.6).consolidate([session], [])

    assert len(result.promoted) == 1
    promoted = result.promoted[0]
    assert promoted.id == session.id
    assert promoted.text == session.text
    assert promoted.status is PropositionStatus.ACTIVE
    assert result.reinforced == []
    assert result.merged == []
    assert result.discarded == []


def test_discards_low_confidence_without_matches() -> None:
    session = build_proposition("Bob might own a boat", ["bob"], confidence=0.3)
    result = DefaultMemoryConsolidator().consolidate([session], [])
    assert result.discarded == [session]
    assert result.stored_count == 0


def test_reinforces_near_identical_existing_proposition() -> None:
    existing = build_proposition("Alice likes green tea", ["alice"], confidence=0.7, grounding=["c1"])
    session = build_proposition("alice likes green tea", ["alice"], confidence=0.5, grounding=["c1", "c2"])

    result = DefaultMemoryConsolidator().consolidate([session], [existing])

    assert len(result.reinforced) == 1
    reinforced = result.reinforced[0]
    assert reinforced.id == existing.id
    assert reinforced.confidence == pytest.approx(min(1.0, existing.confidence + 0.1))
    assert reinforced.grounding == ["c1", "c2"]
    assert reinforced.reinforce_count == 1
    assert reinforced.revised >= existing.revised
    assert existing.confidence == 0.7
    assert result.promoted == result.merged == result.discarded == []


def test_reinforcement_caps_confidence_at_one() -> None:
    existing = build_proposition("Alice likes green tea", ["alice"], confidence=0.95)
    session = build_proposition("Alice likes green tea", ["alice"])
    result = DefaultMemoryConsolidator().consolidate([session], [existing])
    assert result.reinforced[0].confidence == 1.0


def test_merges_moderately_similar_propositions() -> None:
    existing = build_proposition("Alice likes green tea", ["alice"], confidence=0.6, grounding=["c1"])
    session = build_proposition("Alice likes green tea daily", ["alice"], confidence=0.9, grounding=["c2"])

    result = DefaultMemoryConsolidator().consolidate([session], [existing])

    assert len(result.merged) == 1
    merge = result.merged[0]
    assert merge.sources == [existing, session]
    merged = merge.result
    assert merged.id not in {existing.id, session.id}
    assert merged.text == session.text
    assert merged.confidence == pytest.approx(0.75)
    assert merged.grounding == ["c1", "c2"]
    assert merged.created == merged.revised
    assert result.stored_count == 1


def test_entityless_identical_text_merges_rather_than_reinforces() -> None:
    existing = build_proposition("The office closes at six", confidence=0.7)
    session = build_proposition("The office closes at six", confidence=0.7)
    result = DefaultMemoryConsolidator().consolidate([session], [existing])
    assert len(result.merged) == 1
    assert result.merged[0].result.text == existing.text


def test_best_match_ties_go_to_first_existing() -> None:
    first = build_proposition("Alice likes green tea", ["alice"], confidence=0.5)
    second = build_proposition("Alice likes green tea", ["alice"], confidence=0.5)
    session = build_proposition("Alice likes green tea", ["alice"])

    result = DefaultMemoryConsolidator().consolidate([session], [first, second])
    assert result.reinforced[0].id == first.id


def test_below_similarity_threshold_is_not_a_match() -> None:
    existing = build_proposition("Alice likes green tea", ["alice"])
    session = build_proposition("Bob repairs vintage bicycles", ["bob"], confidence=0.9)
    result = DefaultMemoryConsolidator().consolidate([session], [existing])
    assert [p.id for p in result.promoted] == [session.id]


def test_every_session_proposition_lands_in_exactly_one_bucket() -> None:
    existing = [
        build_proposition("Alice likes green tea", ["alice"], confidence=0.6),
        build_proposition("Bob works at Acme", ["bob", "acme"], confidence=0.7),
    ]
    session = [
        build_proposition("Alice likes green tea", ["alice"]),
        build_proposition("Bob works at Acme remotely", ["bob", "acme"]),
        build_proposition("Carol plays chess", ["carol"], confidence=0.9),
        build_proposition("Dave may like jazz", ["dave"], confidence=0.2),
        build_proposition("", confidence=0.1),
    ]

    result = DefaultMemoryConsolidator().consolidate(session, existing)

    session_ids = {p.id for p in session}
    merged_session_ids = [p.id for m in result.merged for p in m.sources if p.id in session_ids]
    reinforced_session_ids = [session[0].id] if result.reinforced else []
    buckets = (
        [p.id for p in result.promoted]
        + [p.id for p in result.discarded]
        + merged_session_ids
        + reinforced_session_ids
    )
    assert sorted(buckets) == sorted(session_ids)
    assert len(result.reinforced) == 1
    assert len(result.merged) == 1
    assert [p.text for p in result.promoted] == ["Carol plays chess"]
    assert len(result.discarded) == 2


def test_empty_inputs_yield_empty_result() -> None:
    result = DefaultMemoryConsolidator().consolidate([], [])
    assert result.stored_count == 0
    assert result.to_persist() == []


def test_merged_result_does_not_share_containers_with_sources() -> None:
    existing = build_proposition("Alice likes green tea", ["alice"], confidence=0.6)
    session = build_proposition("Alice likes green tea daily", ["alice"], confidence=0.9, metadata={"source": "chat"})

    merged = DefaultMemoryConsolidator().consolidate([session], [existing]).merged[0].result

    assert merged.mentions == session.mentions
    assert merged.mentions is not session.mentions
    assert merged.metadata == session.metadata
    assert merged.metadata is not session.metadata
    assert merged.source_ids is not session.source_ids
