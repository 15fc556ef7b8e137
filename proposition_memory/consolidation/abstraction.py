"""Abstraction contract and entity grouping."""

from __future__ import annotations

from abc import ABC, abstractmethod

from proposition_memory.schemas import Proposition, PropositionGroup


class PropositionAbstractor(ABC):
    """Synthesizes higher-level propositions from a group of related ones.

    Results are regular propositions with ``level`` above their sources' and
    ``source_ids`` populated. Implementations are typically LLM-backed.
    """

    @abstractmethod
    def abstract(self, group: PropositionGroup, target_count: int = 3) -> list[Proposition]:
        """Return up to ``target_count`` abstractions of ``group``."""

    def abstract_propositions(self, propositions: list[Proposition], target_count: int = 3) -> list[Proposition]:
        return self.abstract(PropositionGroup.of("", propositions), target_count)


def group_by_entity(propositions: list[Proposition]) -> dict[str, list[Proposition]]:
    """Group propositions under every resolved entity they mention.

    A proposition mentioning two entities lands in both groups; within a group
    each proposition appears once. Group and member order follow first sight.
    """
    groups: dict[str, dict[str, Proposition]] = {}
    for proposition in propositions:
        for mention in proposition.mentions:
            if mention.resolved_id is None:
                continue
            groups.setdefault(mention.resolved_id, {}).setdefault(proposition.id, proposition)
    return {entity_id: list(members.values()) for entity_id, members in groups.items()}
