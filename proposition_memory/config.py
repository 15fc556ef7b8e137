"""Configuration loading and maintenance wiring."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from proposition_memory.consolidation.abstraction import PropositionAbstractor
from proposition_memory.consolidation.consolidator import DefaultMemoryConsolidator
from proposition_memory.consolidation.maintenance import MemoryMaintenanceOrchestrator
from proposition_memory.schemas import DEFAULT_DECAY_K
from proposition_memory.stores.base import PropositionRepository

logger = logging.getLogger("pm.config")


class MaintenanceSettings(BaseModel):
    """Tunables for consolidation, abstraction and retirement."""

    promotion_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    reinforcement_boost: float = Field(default=0.1, ge=0.0, le=1.0)
    abstraction_threshold: int = Field(default=5, ge=1)
    abstraction_target_count: int = Field(default=3, ge=1)
    retire_below: float | None = Field(default=None, ge=0.0, le=1.0)
    retire_decay_k: float = Field(default=DEFAULT_DECAY_K, ge=0.0)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load ``config/default.yaml`` overlaid with ``config/maintenance.yaml``."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    maintenance_cfg = load_yaml(config_dir / "maintenance.yaml")
    return merge_dicts(default_cfg, maintenance_cfg)


def load_maintenance_settings(root: Path) -> MaintenanceSettings:
    config = load_effective_config(root)
    settings = MaintenanceSettings.model_validate(config.get("maintenance", {}) or {})
    logger.debug("Loaded maintenance settings: %s", settings.model_dump())
    return settings


def build_orchestrator(
    repository: PropositionRepository,
    settings: MaintenanceSettings | None = None,
    abstractor: PropositionAbstractor | None = None,
) -> MemoryMaintenanceOrchestrator:
    """Wire a consolidator and orchestrator from settings."""
    settings = settings or MaintenanceSettings()
    consolidator = DefaultMemoryConsolidator(
        promotion_threshold=settings.promotion_threshold,
        similarity_threshold=settings.similarity_threshold,
        reinforcement_boost=settings.reinforcement_boost,
    )
    return MemoryMaintenanceOrchestrator(
        repository=repository,
        consolidator=consolidator,
        abstractor=abstractor,
        abstraction_threshold=settings.abstraction_threshold,
        abstraction_target_count=settings.abstraction_target_count,
        retire_below=settings.retire_below,
        retire_decay_k=settings.retire_decay_k,
    )
