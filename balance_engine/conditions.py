"""Interpreter for the typed condition language used by quests and factions."""
from __future__ import annotations

from typing import Any, Callable, Dict

from .models import Comparison, Condition, ConditionType, QuestStatus, StoryState


def compare_values(actual: Any, expected: Any, comparison: Comparison) -> bool:
    if comparison == Comparison.EQUALS:
        return actual == expected
    if comparison == Comparison.CONTAINS:
        return str(expected) in str(actual)
    try:
        actual_num = float(actual)
        expected_num = float(expected)
    except (TypeError, ValueError):
        return False
    if comparison == Comparison.AT_LEAST:
        return actual_num >= expected_num
    if comparison == Comparison.GREATER_THAN:
        return actual_num > expected_num
    if comparison == Comparison.LESS_THAN:
        return actual_num < expected_num
    return False


def _quest_completion(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    quest = state.quest(cond.target_id)
    return quest is not None and quest.status == QuestStatus.COMPLETED


def _level(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return compare_values(state.character.level, cond.value, cmp)


def _skill(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    if cond.target_id in state.character.skills:
        return True
    if isinstance(cond.value, (int, float)):
        return state.character.stat(cond.target_id) >= cond.value
    return False


def _item(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return state.has_item(cond.target_id)


def _relationship(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    relationship = state.relationship(cond.target_id)
    score = relationship.score if relationship else 0
    return compare_values(score, cond.value, cmp)


def _faction(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    standing = state.standing(cond.target_id)
    reputation = standing.reputation if standing else 0
    return compare_values(reputation, cond.value, cmp)


def _location_visit(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    target = cond.target_id.lower()
    visited = {loc.lower() for loc in state.visited_locations}
    return target in visited or state.current_location.lower() == target


def _choice_made(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return any(choice.id == cond.target_id for choice in state.player_choices)


def _stat(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return compare_values(state.character.stat(cond.target_id), cond.value, cmp)


def _time_limit(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return state.turn <= int(cond.value)


def _current_location(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    return state.current_location == cond.value


def _choice_text(cond: Condition, state: StoryState, cmp: Comparison) -> bool:
    needle = str(cond.value)
    return any(needle in choice.choice_text for choice in state.player_choices)


_EVALUATORS: Dict[ConditionType, Callable[[Condition, StoryState, Comparison], bool]] = {
    ConditionType.QUEST_COMPLETION: _quest_completion,
    ConditionType.LEVEL_REQUIREMENT: _level,
    ConditionType.SKILL_REQUIREMENT: _skill,
    ConditionType.ITEM_POSSESSION: _item,
    ConditionType.RELATIONSHIP_LEVEL: _relationship,
    ConditionType.FACTION_STANDING: _faction,
    ConditionType.LOCATION_VISIT: _location_visit,
    ConditionType.CHOICE_MADE: _choice_made,
    ConditionType.STAT_CHECK: _stat,
    ConditionType.TIME_LIMIT: _time_limit,
    ConditionType.CURRENT_LOCATION: _current_location,
    ConditionType.CHOICE_TEXT: _choice_text,
}


def evaluate_condition(
    condition: Condition,
    state: StoryState,
    *,
    default_comparison: Comparison = Comparison.GREATER_THAN,
) -> bool:
    """Evaluate a single condition against the current story state.

    Numeric thresholds use the condition's own comparison when it declares
    one, otherwise ``default_comparison``. Prerequisites pass ``AT_LEAST``;
    branch and faction conditions keep the strict ``GREATER_THAN``.
    """

    comparison = condition.comparison or default_comparison
    return _EVALUATORS[condition.type](condition, state, comparison)


def condition_from_dict(data: Dict[str, Any]) -> Condition:
    comparison = data.get("comparison")
    return Condition(
        type=ConditionType(data["type"]),
        target_id=data.get("target_id", ""),
        value=data.get("value"),
        comparison=Comparison(comparison) if comparison else None,
        optional=bool(data.get("optional", False)),
        description=data.get("description", ""),
    )


__all__ = ["compare_values", "condition_from_dict", "evaluate_condition"]
