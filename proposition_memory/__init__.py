"""Proposition memory engine."""

from proposition_memory.consolidation.abstraction import PropositionAbstractor
from proposition_memory.consolidation.consolidator import (
    ConsolidationResult,
    DefaultMemoryConsolidator,
    MemoryConsolidator,
    PropositionMerge,
)
from proposition_memory.consolidation.maintenance import MaintenanceResult, MemoryMaintenanceOrchestrator
from proposition_memory.query import OrderBy, PropositionQuery
from proposition_memory.schemas import (
    EntityMention,
    MentionRole,
    Proposition,
    PropositionGroup,
    PropositionStatus,
)
from proposition_memory.stores.base import PropositionRepository
from proposition_memory.stores.memory_store import InMemoryPropositionRepository

__all__ = [
    "ConsolidationResult",
    "DefaultMemoryConsolidator",
    "EntityMention",
    "InMemoryPropositionRepository",
    "MaintenanceResult",
    "MemoryConsolidator",
    "MemoryMaintenanceOrchestrator",
    "MentionRole",
    "OrderBy",
    "Proposition",
    "PropositionAbstractor",
    "PropositionGroup",
    "PropositionMerge",
    "PropositionQuery",
    "PropositionRepository",
    "PropositionStatus",
]
