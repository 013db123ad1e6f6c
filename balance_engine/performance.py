"""Rolling player performance metrics."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from .config import Settings
from .models import CombatOutcome, clamp

logger = logging.getLogger(__name__)


class ResourceActionKind(str, Enum):
    USE = "use"
    WASTE = "waste"
    INVEST = "invest"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class CombatResult:
    outcome: CombatOutcome
    duration: float = 5
    damage_dealt: Optional[float] = None
    damage_taken: Optional[float] = None
    turn: int = 0


@dataclass(frozen=True)
class ResourceAction:
    kind: ResourceActionKind
    efficiency: float
    context: str = ""


@dataclass(frozen=True)
class CombatMetrics:
    win_rate: float = 50
    average_duration: float = 5
    damage_efficiency: float = 50
    resource_usage_efficiency: float = 50
    tactical_decision_quality: float = 50
    recent_combats: Tuple[CombatResult, ...] = ()


@dataclass(frozen=True)
class ResourceMetrics:
    efficiency: float = 50
    waste_rate: float = 20
    scarcity_adaptation: float = 50
    investment_wisdom: float = 50
    emergency_preparedness: float = 50


@dataclass(frozen=True)
class QuestMetrics:
    completion_rate: float = 70
    average_attempts: float = 1.2
    time_management: float = 50
    solution_creativity: float = 50
    consequence_awareness: float = 50


@dataclass(frozen=True)
class OverallMetrics:
    adaptability: float = 50
    learning_rate: float = 50
    frustration: float = 20
    engagement: float = 70
    preferred_difficulty_min: float = 40
    preferred_difficulty_max: float = 60


@dataclass(frozen=True)
class PerformanceMetrics:
    combat: CombatMetrics = field(default_factory=CombatMetrics)
    resource: ResourceMetrics = field(default_factory=ResourceMetrics)
    quest: QuestMetrics = field(default_factory=QuestMetrics)
    overall: OverallMetrics = field(default_factory=OverallMetrics)
    updated_turn: int = 0


def initial_metrics() -> PerformanceMetrics:
    """Return the starting metrics for a new session."""

    return PerformanceMetrics()


def _blend(current: float, observed: float, alpha: float) -> float:
    return current * (1 - alpha) + clamp(observed, 0, 100) * alpha


class PerformanceTracker:
    """Applies reported outcomes to a :class:`PerformanceMetrics` record.

    Every axis except combat win rate is an exponential moving average; the
    win rate is recomputed from a fixed window of recent combats so it
    follows recent form.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or Settings()
        self._alpha = settings.learning_rate
        self._window = max(1, settings.combat_window)

    def record_combat_outcome(
        self, metrics: PerformanceMetrics, result: CombatResult
    ) -> PerformanceMetrics:
        recent = (metrics.combat.recent_combats + (result,))[-self._window:]
        victories = sum(1 for combat in recent if combat.outcome == CombatOutcome.VICTORY)
        win_rate = victories / len(recent) * 100
        average_duration = sum(max(0.0, combat.duration) for combat in recent) / len(recent)

        damage_efficiency = metrics.combat.damage_efficiency
        if result.damage_dealt is not None and result.damage_taken is not None:
            total = max(0.0, result.damage_dealt) + max(0.0, result.damage_taken)
            if total > 0:
                observed = max(0.0, result.damage_dealt) / total * 100
                damage_efficiency = _blend(damage_efficiency, observed, self._alpha)

        combat = replace(
            metrics.combat,
            win_rate=win_rate,
            average_duration=average_duration,
            damage_efficiency=damage_efficiency,
            recent_combats=recent,
        )
        logger.debug("Combat %s recorded; win rate now %.1f", result.outcome.value, win_rate)
        return replace(metrics, combat=combat, updated_turn=result.turn or metrics.updated_turn)

    def record_resource_action(
        self, metrics: PerformanceMetrics, action: ResourceAction
    ) -> PerformanceMetrics:
        current = metrics.resource
        alpha = self._alpha
        if action.kind == ResourceActionKind.USE:
            resource = replace(current, efficiency=_blend(current.efficiency, action.efficiency, alpha))
        elif action.kind == ResourceActionKind.WASTE:
            observed = 100 - clamp(action.efficiency, 0, 100)
            resource = replace(current, waste_rate=_blend(current.waste_rate, observed, alpha))
        elif action.kind == ResourceActionKind.INVEST:
            resource = replace(
                current,
                investment_wisdom=_blend(current.investment_wisdom, action.efficiency, alpha),
            )
        else:
            resource = replace(
                current,
                emergency_preparedness=_blend(
                    current.emergency_preparedness, action.efficiency, alpha
                ),
            )
        return replace(metrics, resource=resource)

    def record_quest_outcome(self, metrics: PerformanceMetrics, success: bool) -> PerformanceMetrics:
        observed = 100.0 if success else 0.0
        quest = replace(
            metrics.quest,
            completion_rate=_blend(metrics.quest.completion_rate, observed, self._alpha),
        )
        return replace(metrics, quest=quest)

    def record_engagement(
        self,
        metrics: PerformanceMetrics,
        frustration: Optional[float] = None,
        engagement: Optional[float] = None,
    ) -> PerformanceMetrics:
        overall = metrics.overall
        if frustration is not None:
            overall = replace(overall, frustration=_blend(overall.frustration, frustration, self._alpha))
        if engagement is not None:
            overall = replace(overall, engagement=_blend(overall.engagement, engagement, self._alpha))
        return replace(metrics, overall=overall)


__all__ = [
    "CombatMetrics",
    "CombatResult",
    "OverallMetrics",
    "PerformanceMetrics",
    "PerformanceTracker",
    "QuestMetrics",
    "ResourceAction",
    "ResourceActionKind",
    "ResourceMetrics",
    "initial_metrics",
]
