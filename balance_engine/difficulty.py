"""Adaptive difficulty profile computation."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping

from .config import Settings
from .models import clamp
from .performance import PerformanceMetrics

logger = logging.getLogger(__name__)

MIN_MULTIPLIER = 0.3
MAX_MULTIPLIER = 2.0


@dataclass(frozen=True)
class DifficultyProfile:
    combat_scaling: float = 1.0
    resource_scarcity: float = 1.0
    consequence_severity: float = 1.0
    time_constraints: float = 1.0
    enemy_intelligence: float = 1.0
    loot_rarity: float = 1.0
    experience_gain: float = 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "DifficultyProfile":
        known = {f.name for f in fields(cls)}
        return cls(
            **{
                key: clamp(float(value), MIN_MULTIPLIER, MAX_MULTIPLIER)
                for key, value in data.items()
                if key in known
            }
        )


DIFFICULTY_PRESETS: Dict[str, DifficultyProfile] = {
    "easy": DifficultyProfile(
        combat_scaling=0.7,
        resource_scarcity=0.6,
        consequence_severity=0.5,
        time_constraints=0.8,
        enemy_intelligence=0.6,
        loot_rarity=1.3,
        experience_gain=1.2,
    ),
    "normal": DifficultyProfile(),
    "hard": DifficultyProfile(
        combat_scaling=1.4,
        resource_scarcity=1.5,
        consequence_severity=1.3,
        time_constraints=1.2,
        enemy_intelligence=1.3,
        loot_rarity=0.8,
        experience_gain=0.9,
    ),
}

# Share of the adjustment magnitude applied to each axis. Negative axes get
# easier as the player performs better; loot and experience improve instead.
_AXIS_SENSITIVITY: Dict[str, float] = {
    "combat_scaling": -0.8,
    "resource_scarcity": -0.6,
    "consequence_severity": -0.4,
    "time_constraints": -0.3,
    "enemy_intelligence": -0.5,
    "loot_rarity": 0.4,
    "experience_gain": 0.2,
}


def base_profile(settings: Settings) -> DifficultyProfile:
    if settings.difficulty_mode == "custom" and settings.custom_profile:
        return DifficultyProfile.from_dict(settings.custom_profile)
    return DIFFICULTY_PRESETS.get(settings.difficulty_mode, DIFFICULTY_PRESETS["normal"])


def weighted_performance(settings: Settings, metrics: PerformanceMetrics) -> float:
    weights = settings.adjustment_weights
    return (
        metrics.combat.win_rate * weights.win_loss_ratio
        + metrics.resource.efficiency * weights.resource_efficiency
        + metrics.quest.completion_rate * weights.quest_completion_rate
        + (100 - metrics.overall.frustration) * weights.player_frustration
        + metrics.overall.engagement * weights.session_engagement
    )


def compute_difficulty(settings: Settings, metrics: PerformanceMetrics) -> DifficultyProfile:
    """Combine the configured baseline with the player's recent performance.

    Pure: the same settings and metrics always give the same profile. Every
    axis of the result lies in ``[0.3, 2.0]``.
    """

    base = base_profile(settings)
    if not settings.dynamic_enabled:
        return base

    delta = (weighted_performance(settings, metrics) - 50) / 50
    magnitude = delta * (settings.adjustment_sensitivity / 100) * settings.max_adjustment_per_session
    adjusted = {
        axis: clamp(getattr(base, axis) + magnitude * share, MIN_MULTIPLIER, MAX_MULTIPLIER)
        for axis, share in _AXIS_SENSITIVITY.items()
    }
    return replace(base, **adjusted)


def balance_recommendations(metrics: PerformanceMetrics) -> List[str]:
    recommendations: List[str] = []
    if metrics.combat.win_rate < 30:
        recommendations.append(
            "Consider reducing combat difficulty - player is struggling with encounters"
        )
    if metrics.combat.win_rate > 80:
        recommendations.append(
            "Consider increasing combat difficulty - player may be finding encounters too easy"
        )
    if metrics.overall.frustration > 70:
        recommendations.append("High frustration detected - consider reducing overall difficulty")
    if metrics.overall.engagement < 40:
        recommendations.append("Low engagement detected - consider adding more varied challenges")
    if metrics.resource.waste_rate > 60:
        recommendations.append(
            "Player is wasting resources - consider adding resource management tutorials"
        )
    if metrics.quest.completion_rate < 50:
        recommendations.append(
            "Low quest completion rate - consider simplifying quest objectives or adding guidance"
        )
    return recommendations


def apply_difficulty_to_encounter(
    stats: Mapping[str, Any], profile: DifficultyProfile, encounter_type: str
) -> Dict[str, Any]:
    """Scale an encounter's base stats by the active profile."""

    scaled = dict(stats)
    if encounter_type == "combat":
        for key in ("health", "attack", "defense"):
            if key in scaled:
                scaled[key] = math.floor(scaled[key] * profile.combat_scaling)
    elif encounter_type == "resource":
        scaled["scarcity_multiplier"] = profile.resource_scarcity
        scaled["cost_multiplier"] = profile.resource_scarcity
    return scaled


def balance_combat_encounter(
    stats: Mapping[str, Any],
    profile: DifficultyProfile,
    importance: str = "minor",
    condition: str = "good",
) -> Dict[str, Any]:
    balanced = apply_difficulty_to_encounter(stats, profile, "combat")
    if importance == "critical":
        if "health" in balanced:
            balanced["health"] = math.floor(balanced["health"] * 1.2)
        if "attack" in balanced:
            balanced["attack"] = math.floor(balanced["attack"] * 1.1)
    if condition == "poor":
        for key in ("health", "attack"):
            if key in balanced:
                balanced[key] = math.floor(balanced[key] * 0.9)
    logger.debug("Balanced %s encounter for %s player: %s", importance, condition, balanced)
    return balanced


__all__ = [
    "DIFFICULTY_PRESETS",
    "DifficultyProfile",
    "MAX_MULTIPLIER",
    "MIN_MULTIPLIER",
    "apply_difficulty_to_encounter",
    "balance_combat_encounter",
    "balance_recommendations",
    "base_profile",
    "compute_difficulty",
    "weighted_performance",
]
