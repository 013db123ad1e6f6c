"""Quest prerequisites, branching, failure and status transitions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .conditions import evaluate_condition
from .effects import Consequence
from .models import (
    Comparison,
    Condition,
    ConditionType,
    FailureConditionType,
    MoralTag,
    Quest,
    QuestBranch,
    QuestChoice,
    QuestFailureCondition,
    QuestFailureRecord,
    QuestRecoveryOption,
    QuestStatus,
    StoryState,
    UnknownReferenceError,
)

logger = logging.getLogger(__name__)

DEFAULT_FACTION_HOSTILITY = -50


@dataclass(frozen=True)
class PrerequisiteCheck:
    satisfied: bool
    missing: Tuple[Condition, ...] = ()


@dataclass(frozen=True)
class BranchSelection:
    quest: Quest
    choice: QuestChoice
    consequences: Tuple[Consequence, ...] = ()


def _moral_weight(choice_text: str, branch: QuestBranch) -> MoralTag:
    lowered = choice_text.lower()
    if any(word in lowered for word in ("help", "save", "protect")):
        return MoralTag.GOOD
    if any(word in lowered for word in ("kill", "destroy", "betray")):
        return MoralTag.EVIL
    if any(c.category == "moral" for c in branch.consequences):
        return MoralTag.COMPLEX
    return MoralTag.NEUTRAL


class QuestStateMachine:
    """Evaluates quest conditions and drives quest status changes.

    Status flows ``not_started -> active -> completed | failed``. A failed
    quest returns to ``active`` only through an explicit :meth:`reopen_quest`.
    """

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------
    @staticmethod
    def validate_quest_prerequisites(
        prerequisites: Sequence[Condition], state: StoryState
    ) -> PrerequisiteCheck:
        for prerequisite in prerequisites:
            if prerequisite.optional:
                continue
            if not evaluate_condition(prerequisite, state, default_comparison=Comparison.AT_LEAST):
                return PrerequisiteCheck(satisfied=False, missing=(prerequisite,))
        return PrerequisiteCheck(satisfied=True)

    @staticmethod
    def evaluate_branch_condition(condition: Condition, state: StoryState) -> bool:
        return evaluate_condition(condition, state)

    def get_available_quest_branches(self, quest: Quest, state: StoryState) -> List[QuestBranch]:
        available: List[QuestBranch] = []
        for branch in quest.branches:
            if quest.current_branch and quest.current_branch in branch.exclusive_with:
                continue
            if branch.time_limit is not None:
                first = next(
                    (c for c in quest.choice_history if c.branch_id == branch.id), None
                )
                if first is not None and state.turn - first.turn > branch.time_limit:
                    continue
            if self.evaluate_branch_condition(branch.condition, state):
                available.append(branch)
        return available

    @staticmethod
    def select_quest_branch(
        quest: Quest, branch_id: str, choice_text: str, turn: int
    ) -> BranchSelection:
        """Commit ``branch_id`` as the quest's single active branch."""

        if quest.status != QuestStatus.ACTIVE:
            raise ValueError(
                f"Quest {quest.id} cannot branch from status {quest.status.value}"
            )
        branch = next((b for b in quest.branches if b.id == branch_id), None)
        if branch is None:
            raise UnknownReferenceError(f"Quest branch {branch_id} not found in quest {quest.id}")
        if quest.current_branch and quest.current_branch in branch.exclusive_with:
            raise ValueError(
                f"Branch {branch_id} is exclusive with active branch {quest.current_branch}"
            )

        choice = QuestChoice(
            id=f"{quest.id}-choice-{len(quest.choice_history) + 1}",
            quest_id=quest.id,
            branch_id=branch_id,
            choice_text=choice_text,
            turn=turn,
            moral_weight=_moral_weight(choice_text, branch),
            difficulty_level=5 + branch.difficulty_modifier,
            alternative_options=tuple(b.name for b in quest.branches if b.id != branch_id),
        )
        updated = replace(
            quest,
            current_branch=branch_id,
            objectives=list(branch.objectives),
            rewards=dict(branch.rewards),
            choice_history=quest.choice_history + (choice,),
            updated_turn=turn,
        )
        logger.debug("Quest %s committed to branch %s", quest.id, branch_id)
        return BranchSelection(quest=updated, choice=choice, consequences=branch.consequences)

    # ------------------------------------------------------------------
    # Failure
    # ------------------------------------------------------------------
    @staticmethod
    def _failure_holds(
        quest: Quest, condition: QuestFailureCondition, state: StoryState
    ) -> bool:
        if condition.type == FailureConditionType.TIME_LIMIT:
            if quest.time_limit is None:
                return False
            started = quest.started_turn if quest.started_turn is not None else quest.updated_turn
            return state.turn - started > quest.time_limit
        if condition.type == FailureConditionType.CHARACTER_DEATH:
            return state.character.health <= 0
        if condition.type == FailureConditionType.ITEM_LOSS:
            return not state.has_item(condition.target_id)
        if condition.type == FailureConditionType.RELATIONSHIP_THRESHOLD:
            relationship = state.relationship(condition.target_id)
            threshold = condition.threshold if condition.threshold is not None else 0
            return relationship is not None and relationship.score < threshold
        if condition.type == FailureConditionType.FACTION_HOSTILITY:
            standing = state.standing(condition.target_id)
            threshold = (
                condition.threshold
                if condition.threshold is not None
                else DEFAULT_FACTION_HOSTILITY
            )
            return standing is not None and standing.reputation < threshold
        if condition.type == FailureConditionType.NPC_DEATH:
            npc = next((n for n in state.tracked_npcs if n.id == condition.target_id), None)
            return npc is not None and npc.health <= 0
        return False

    def check_quest_failure_conditions(
        self, quest: Quest, state: StoryState
    ) -> List[QuestFailureCondition]:
        return [c for c in quest.failure_conditions if self._failure_holds(quest, c, state)]

    @staticmethod
    def _recovery_options(
        quest: Quest, condition: QuestFailureCondition
    ) -> Tuple[QuestRecoveryOption, ...]:
        if not condition.recoverable:
            return ()
        if condition.type == FailureConditionType.TIME_LIMIT:
            return (
                QuestRecoveryOption(
                    id=f"{quest.id}-seek-extension",
                    name="Seek Extension",
                    description="Try to negotiate for more time to complete the quest",
                    requirements=(
                        Condition(
                            type=ConditionType.RELATIONSHIP_LEVEL,
                            target_id="quest_giver",
                            value=25,
                            description="Must have decent relationship with quest giver",
                        ),
                    ),
                    cost=50,
                    time_limit=24,
                    success_chance=70,
                ),
            )
        if condition.type == FailureConditionType.ITEM_LOSS:
            return (
                QuestRecoveryOption(
                    id=f"{quest.id}-find-replacement",
                    name="Find Replacement",
                    description="Search for a replacement for the lost item",
                    time_limit=48,
                    success_chance=50,
                ),
            )
        if condition.type == FailureConditionType.RELATIONSHIP_THRESHOLD:
            return (
                QuestRecoveryOption(
                    id=f"{quest.id}-repair-relationship",
                    name="Repair Relationship",
                    description="Attempt to mend the damaged relationship",
                    cost=100,
                    success_chance=60,
                ),
            )
        return ()

    def create_quest_failure_record(
        self, quest: Quest, condition: QuestFailureCondition, turn: int
    ) -> QuestFailureRecord:
        return QuestFailureRecord(
            quest_id=quest.id,
            quest_title=quest.title or quest.description,
            failure_type=condition.type,
            failure_reason=condition.description,
            turn=turn,
            consequences=condition.consequences,
            recovery_options=self._recovery_options(quest, condition),
        )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def start_quest(self, quest: Quest, state: StoryState, turn: int) -> Quest:
        if quest.status != QuestStatus.NOT_STARTED:
            raise ValueError(f"Quest {quest.id} cannot start from status {quest.status.value}")
        check = self.validate_quest_prerequisites(quest.prerequisites, state)
        if not check.satisfied:
            unmet = ", ".join(c.description or c.type.value for c in check.missing)
            raise ValueError(f"Quest {quest.id} prerequisites not met: {unmet}")
        logger.info("Quest %s started", quest.id)
        return replace(quest, status=QuestStatus.ACTIVE, started_turn=turn, updated_turn=turn)

    @staticmethod
    def complete_quest(quest: Quest, turn: int) -> Quest:
        if quest.status != QuestStatus.ACTIVE:
            raise ValueError(f"Quest {quest.id} cannot complete from status {quest.status.value}")
        logger.info("Quest %s completed", quest.id)
        return replace(quest, status=QuestStatus.COMPLETED, updated_turn=turn)

    @staticmethod
    def fail_quest(
        quest: Quest, turn: int, record: Optional[QuestFailureRecord] = None
    ) -> Quest:
        if quest.status != QuestStatus.ACTIVE:
            raise ValueError(f"Quest {quest.id} cannot fail from status {quest.status.value}")
        records = quest.failure_records + ((record,) if record is not None else ())
        logger.info("Quest %s failed", quest.id)
        return replace(
            quest, status=QuestStatus.FAILED, failure_records=records, updated_turn=turn
        )

    @staticmethod
    def reopen_quest(quest: Quest, turn: int) -> Quest:
        if quest.status != QuestStatus.FAILED:
            raise ValueError(f"Quest {quest.id} cannot reopen from status {quest.status.value}")
        logger.info("Quest %s reopened", quest.id)
        return replace(quest, status=QuestStatus.ACTIVE, started_turn=turn, updated_turn=turn)


def replace_quest(state: StoryState, quest: Quest) -> StoryState:
    """Return ``state`` with the quest of the same id swapped for ``quest``."""

    quests = [quest if existing.id == quest.id else existing for existing in state.quests]
    if not any(existing.id == quest.id for existing in state.quests):
        quests.append(quest)
    return replace(state, quests=quests)


__all__ = [
    "BranchSelection",
    "DEFAULT_FACTION_HOSTILITY",
    "PrerequisiteCheck",
    "QuestStateMachine",
    "replace_quest",
]
