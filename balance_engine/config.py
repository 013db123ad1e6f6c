"""Configuration loading utilities for the balance engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"

DIFFICULTY_MODES = ("easy", "normal", "hard", "custom")

_DEFAULT_WEIGHTS: Dict[str, float] = {
    "win_loss_ratio": 0.3,
    "resource_efficiency": 0.2,
    "quest_completion_rate": 0.25,
    "player_frustration": 0.15,
    "session_engagement": 0.1,
}


@dataclass(frozen=True)
class AdjustmentWeights:
    win_loss_ratio: float = 0.3
    resource_efficiency: float = 0.2
    quest_completion_rate: float = 0.25
    player_frustration: float = 0.15
    session_engagement: float = 0.1


@dataclass(frozen=True)
class RewardScaling:
    base_multiplier: float = 1.0
    risk_bonus_multiplier: float = 0.2
    difficulty_bonus_multiplier: float = 0.15
    time_constraint_bonus_multiplier: float = 0.1


@dataclass(frozen=True)
class Settings:
    """Typed view over the balance settings YAML file."""

    difficulty_mode: str = "normal"
    custom_profile: Optional[Dict[str, float]] = None
    dynamic_enabled: bool = True
    adjustment_sensitivity: float = 50.0
    max_adjustment_per_session: float = 0.2
    adjustment_weights: AdjustmentWeights = field(default_factory=AdjustmentWeights)
    scarcity_enabled: bool = True
    scarcity_level: float = 30.0
    time_trigger_chance: float = 0.1
    risk_reward_enabled: bool = True
    risk_tolerance: float = 50.0
    reward_scaling: RewardScaling = field(default_factory=RewardScaling)
    failure_recovery_enabled: bool = True
    learning_rate: float = 0.1
    combat_window: int = 10
    relationship_history_limit: int = 10
    standing_history_limit: int = 20
    faction_history_limit: int = 20
    moral_history_limit: int = 50

    def __post_init__(self) -> None:
        if self.difficulty_mode not in DIFFICULTY_MODES:
            raise ValueError(f"Invalid difficulty mode: {self.difficulty_mode}")
        if self.difficulty_mode == "custom" and not self.custom_profile:
            raise ValueError("Custom difficulty mode requires a custom profile")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        data = data or {}
        difficulty = data.get("difficulty", {})
        dynamic = data.get("dynamic_adjustment", {})
        weights_cfg = {**_DEFAULT_WEIGHTS, **dynamic.get("weights", {})}
        scarcity = data.get("resource_scarcity", {})
        risk = data.get("risk_reward", {})
        scaling_cfg = risk.get("reward_scaling", {})
        failure = data.get("failure_recovery", {})
        tracking = data.get("tracking", {})
        history = data.get("history_limits", {})

        mode = str(difficulty.get("mode", "normal")).lower()
        custom = difficulty.get("custom")

        return Settings(
            difficulty_mode=mode,
            custom_profile={k: float(v) for k, v in custom.items()} if custom else None,
            dynamic_enabled=bool(dynamic.get("enabled", True)),
            adjustment_sensitivity=float(dynamic.get("sensitivity", 50)),
            max_adjustment_per_session=float(dynamic.get("max_adjustment_per_session", 0.2)),
            adjustment_weights=AdjustmentWeights(
                **{k: float(v) for k, v in weights_cfg.items()}
            ),
            scarcity_enabled=bool(scarcity.get("enabled", True)),
            scarcity_level=float(scarcity.get("level", 30)),
            time_trigger_chance=float(scarcity.get("time_trigger_chance", 0.1)),
            risk_reward_enabled=bool(risk.get("enabled", True)),
            risk_tolerance=float(risk.get("tolerance", 50)),
            reward_scaling=RewardScaling(
                base_multiplier=float(scaling_cfg.get("base", 1.0)),
                risk_bonus_multiplier=float(scaling_cfg.get("risk_bonus", 0.2)),
                difficulty_bonus_multiplier=float(scaling_cfg.get("difficulty_bonus", 0.15)),
                time_constraint_bonus_multiplier=float(scaling_cfg.get("time_bonus", 0.1)),
            ),
            failure_recovery_enabled=bool(failure.get("enabled", True)),
            learning_rate=float(tracking.get("learning_rate", 0.1)),
            combat_window=int(tracking.get("combat_window", 10)),
            relationship_history_limit=int(history.get("relationship", 10)),
            standing_history_limit=int(history.get("standing", 20)),
            faction_history_limit=int(history.get("faction", 20)),
            moral_history_limit=int(history.get("moral", 50)),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = [
    "AdjustmentWeights",
    "DEFAULT_SETTINGS_PATH",
    "DIFFICULTY_MODES",
    "RewardScaling",
    "Settings",
    "SettingsLoader",
    "get_settings",
]
