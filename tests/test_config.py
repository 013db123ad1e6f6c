"""Tests for settings loading and the template catalog."""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from balance_engine.catalog import Catalog
from balance_engine.config import DEFAULT_SETTINGS_PATH, Settings, SettingsLoader, get_settings


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_bundled_settings_match_defaults() -> None:
    assert get_settings() == Settings()


def test_loader_reads_yaml_overrides(tmp_path) -> None:
    path = _write(
        tmp_path,
        """
difficulty:
  mode: HARD
dynamic_adjustment:
  enabled: false
  weights:
    win_loss_ratio: 0.5
resource_scarcity:
  level: 80
history_limits:
  moral: 5
""",
    )

    settings = SettingsLoader(path).load()

    assert settings.difficulty_mode == "hard"
    assert settings.dynamic_enabled is False
    assert settings.adjustment_weights.win_loss_ratio == 0.5
    assert settings.adjustment_weights.quest_completion_rate == 0.25
    assert settings.scarcity_level == 80
    assert settings.moral_history_limit == 5
    assert settings.risk_reward_enabled is True


def test_loader_caches_until_forced(tmp_path) -> None:
    path = _write(tmp_path, "difficulty:\n  mode: easy\n")
    loader = SettingsLoader(path)

    first = loader.load()
    path.write_text("difficulty:\n  mode: hard\n", encoding="utf-8")

    assert loader.load() is first
    assert loader.load(force=True).difficulty_mode == "hard"


def test_empty_file_gives_defaults(tmp_path) -> None:
    assert SettingsLoader(_write(tmp_path, "")).load() == Settings()


def test_invalid_mode_raises(tmp_path) -> None:
    with pytest.raises(ValueError, match="Invalid difficulty mode"):
        SettingsLoader(_write(tmp_path, "difficulty:\n  mode: nightmare\n")).load()


def test_custom_mode_needs_a_profile() -> None:
    with pytest.raises(ValueError):
        Settings.from_dict({"difficulty": {"mode": "custom"}})

    settings = Settings.from_dict(
        {"difficulty": {"mode": "custom", "custom": {"combat_scaling": 1}}}
    )
    assert settings.custom_profile == {"combat_scaling": 1.0}


def test_direct_construction_is_validated() -> None:
    with pytest.raises(ValueError, match="Invalid difficulty mode"):
        Settings(difficulty_mode="nightmare")
    with pytest.raises(ValueError):
        Settings(difficulty_mode="custom")


def test_bundled_file_only_holds_read_keys() -> None:
    data = yaml.safe_load(DEFAULT_SETTINGS_PATH.read_text(encoding="utf-8"))

    assert set(data["failure_recovery"]) == {"enabled"}
    assert set(data["dynamic_adjustment"]) == {
        "enabled",
        "sensitivity",
        "max_adjustment_per_session",
        "weights",
    }
    assert set(data["risk_reward"]["reward_scaling"]) == {
        "base",
        "risk_bonus",
        "difficulty_bonus",
        "time_bonus",
    }


def test_catalog_sections(catalog) -> None:
    assert [r["id"] for r in catalog.resource_types()] == [
        "health_potions",
        "mana_potions",
        "currency",
        "crafting_materials",
        "equipment_durability",
    ]
    assert {f["id"] for f in catalog.failure_types()} >= {"combat_defeat", "exploration_lost"}
    assert len(catalog.factions()) == 3


def test_catalog_returns_copies(catalog) -> None:
    catalog.tradeoffs().clear()

    assert catalog.tradeoffs()
