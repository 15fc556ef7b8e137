"""Configuration loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from proposition_memory.config import (
    MaintenanceSettings,
    build_orchestrator,
    load_effective_config,
    load_maintenance_settings,
    load_yaml,
    merge_dicts,
)
from proposition_memory.stores.memory_store import InMemoryPropositionRepository


def write_config(root: Path, name: str, content: str) -> None:
    config_dir = root / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / name).write_text(content, encoding="utf-8")


def test_missing_yaml_is_empty(tmp_path: Path) -> None:
    assert load_yaml(tmp_path / "absent.yaml") == {}


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml(path)


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_maintenance_file_overrides_defaults(tmp_path: Path) -> None:
    write_config(tmp_path, "default.yaml", "maintenance:\n  abstraction_threshold: 5\n  retire_below: 0.1\n")
    write_config(tmp_path, "maintenance.yaml", "maintenance:\n  retire_below: 0.25\n")

    assert load_effective_config(tmp_path)["maintenance"] == {"abstraction_threshold": 5, "retire_below": 0.25}
    settings = load_maintenance_settings(tmp_path)
    assert settings.retire_below == 0.25
    assert settings.promotion_threshold == 0.6


def test_defaults_without_config(tmp_path: Path) -> None:
    assert load_maintenance_settings(tmp_path) == MaintenanceSettings()


def test_out_of_range_settings_are_rejected(tmp_path: Path) -> None:
    write_config(tmp_path, "maintenance.yaml", "maintenance:\n  promotion_threshold: 1.5\n")
    with pytest.raises(ValidationError):
        load_maintenance_settings(tmp_path)


def test_build_orchestrator_from_settings() -> None:
    repo = InMemoryPropositionRepository()
    settings = MaintenanceSettings(promotion_threshold=0.4, abstraction_threshold=2, retire_below=0.05)

    orchestrator = build_orchestrator(repo, settings)

    assert orchestrator.repository is repo
    assert orchestrator.consolidator.promotion_threshold == 0.4
    assert orchestrator.abstraction_threshold == 2
    assert orchestrator.retire_below == 0.05
    assert orchestrator.abstractor is None
