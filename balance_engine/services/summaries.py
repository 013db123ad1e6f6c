"""Status summaries for reporting the engine's view of a session."""

from __future__ import annotations

from dataclasses import asdict
from typing import Dict, Iterable, List, Mapping, Sequence

from ..difficulty import DifficultyProfile
from ..performance import PerformanceMetrics
from ..recovery import PlayerResilience
from ..scarcity import ScarcityEvent


def performance_summary(metrics: PerformanceMetrics) -> Dict[str, float]:
    """Headline performance figures for a session."""

    return {
        "combat_win_rate": metrics.combat.win_rate,
        "resource_efficiency": metrics.resource.efficiency,
        "quest_completion_rate": metrics.quest.completion_rate,
        "engagement": metrics.overall.engagement,
        "frustration": metrics.overall.frustration,
    }


def system_status(
    *,
    turn: int,
    difficulty: DifficultyProfile,
    metrics: PerformanceMetrics,
    active_events: Iterable[ScarcityEvent],
    recommendations: Sequence[str],
    resilience: PlayerResilience,
    cooldowns: Mapping[str, int],
) -> Dict[str, object]:
    """Bundle the current balance picture into a plain mapping."""

    events: List[Dict[str, object]] = [
        {
            "id": event.id,
            "name": event.name,
            "severity": event.severity,
            "turns_remaining": event.duration,
        }
        for event in active_events
    ]
    return {
        "turn": turn,
        "difficulty": asdict(difficulty),
        "performance": performance_summary(metrics),
        "active_events": events,
        "recommendations": list(recommendations),
        "resilience": asdict(resilience),
        "cooldowns": {key: value for key, value in cooldowns.items() if value > 0},
    }


__all__ = ["performance_summary", "system_status"]
