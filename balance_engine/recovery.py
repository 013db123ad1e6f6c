"""Failure detection and recovery mechanics."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalog import Catalog
from .config import Settings
from .models import (
    Character,
    CombatOutcome,
    FactionStanding,
    NPCRelationship,
    StoryState,
    UnknownReferenceError,
    clamp,
)
from .rng import DeterministicRNG
from .services.alternatives import AlternativePath, generate_alternative_paths
from .services.standings import standing_label

logger = logging.getLogger(__name__)

# Detection order: the first matching category wins.
FAILURE_PRIORITY = (
    "combat_defeat",
    "quest_failure",
    "social_blunder",
    "resource_depletion",
    "exploration_lost",
)

_SUCCESS_NOTES = {
    "resource_investment": " - Resources invested to resolve the situation",
    "alternative_path": " - Found an alternative approach to achieve goals",
    "time_investment": " - Time and effort gradually resolved the issue",
    "help_seeking": " - Assistance from others helped overcome the failure",
}

_SUCCESS_LESSONS = {
    "resource_investment": "Having adequate resources enables quick problem resolution",
    "alternative_path": "Creative thinking can overcome apparent dead ends",
    "help_seeking": "Building relationships provides safety nets for failures",
}

_CATEGORY_LESSONS = {
    "combat": "Better preparation and tactics could prevent future combat failures",
    "resource": "Resource management and emergency reserves are crucial",
    "social": "Understanding social dynamics helps avoid misunderstandings",
}


@dataclass(frozen=True)
class FailureConsequence:
    type: str
    severity: str
    description: str
    duration: Optional[int] = None
    reversible: bool = True


@dataclass(frozen=True)
class FailureType:
    id: str
    name: str
    description: str
    category: str
    is_game_over: bool = False
    recovery_options: Tuple[str, ...] = ()
    consequences: Tuple[FailureConsequence, ...] = ()


@dataclass(frozen=True)
class RecoveryRequirement:
    type: str
    value: Any
    description: str = ""


@dataclass(frozen=True)
class RecoveryCost:
    type: str
    amount: float
    description: str = ""


@dataclass(frozen=True)
class FailureRecoveryMechanic:
    id: str
    name: str
    description: str
    applicable_failure_types: Tuple[str, ...]
    recovery_type: str
    success_chance: float
    cost: Optional[RecoveryCost] = None
    time_limit: Optional[int] = None
    requirements: Tuple[RecoveryRequirement, ...] = ()


@dataclass(frozen=True)
class FailureContext:
    """Signals available when classifying a failed action.

    The boolean flags are explicit reports from the caller and take
    precedence over the outcome text.
    """

    quest_id: Optional[str] = None
    combat_result: Optional[CombatOutcome] = None
    resource_levels: Mapping[str, float] = field(default_factory=dict)
    social_context: Optional[str] = None
    location: str = ""
    quest_failed: bool = False
    hostile: bool = False
    lost: bool = False


@dataclass(frozen=True)
class RecoveryAttemptContext:
    failure_type: FailureType
    original_failure_id: str
    character: Character
    turn: int = 0
    npc_relationships: Tuple[NPCRelationship, ...] = ()
    faction_standings: Tuple[FactionStanding, ...] = ()


@dataclass(frozen=True)
class FailureRecoveryRecord:
    id: str
    original_failure_id: str
    failure_type: str
    mechanic_id: str
    mechanic_name: str
    turn: int
    success: bool
    outcome: str
    lessons: Tuple[str, ...] = ()
    satisfaction: float = 50


@dataclass(frozen=True)
class RecoveryAttempt:
    success: bool
    outcome: str
    character: Character
    record: FailureRecoveryRecord
    consequences: Tuple[FailureConsequence, ...] = ()
    npc_relationships: Tuple[NPCRelationship, ...] = ()
    faction_standings: Tuple[FactionStanding, ...] = ()


@dataclass(frozen=True)
class PlayerResilience:
    resilience: float = 50
    adaptability: float = 50
    learning_rate: float = 50
    preferred_mechanics: Tuple[str, ...] = ()


def _failure_type(data: Dict[str, Any]) -> FailureType:
    return FailureType(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        category=data.get("category", ""),
        is_game_over=bool(data.get("is_game_over", False)),
        recovery_options=tuple(data.get("recovery_options", [])),
        consequences=tuple(
            FailureConsequence(
                type=item["type"],
                severity=item.get("severity", "minor"),
                description=item.get("description", ""),
                duration=item.get("duration"),
                reversible=bool(item.get("reversible", True)),
            )
            for item in data.get("consequences", [])
        ),
    )


def _mechanic(data: Dict[str, Any]) -> FailureRecoveryMechanic:
    cost = data.get("cost")
    return FailureRecoveryMechanic(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        applicable_failure_types=tuple(data.get("applicable_failure_types", [])),
        recovery_type=data.get("recovery_type", ""),
        success_chance=max(0.0, min(100.0, float(data.get("success_chance", 50)))),
        cost=RecoveryCost(
            type=cost["type"], amount=float(cost["amount"]), description=cost.get("description", "")
        )
        if cost
        else None,
        time_limit=data.get("time_limit"),
        requirements=tuple(
            RecoveryRequirement(
                type=item["type"], value=item.get("value"), description=item.get("description", "")
            )
            for item in data.get("requirements", [])
        ),
    )


def _pay_reputation(
    amount: float,
    relationships: Tuple[NPCRelationship, ...],
    standings: Tuple[FactionStanding, ...],
) -> Tuple[Tuple[NPCRelationship, ...], Tuple[FactionStanding, ...]]:
    """Charge a favour against the strongest standing or relationship.

    Faction standings win ties with NPC relationships.
    """

    best_standing = max(standings, key=lambda s: s.reputation, default=None)
    best_relationship = max(relationships, key=lambda r: r.score, default=None)
    if best_standing is not None and (
        best_relationship is None or best_standing.reputation >= best_relationship.score
    ):
        reputation = clamp(best_standing.reputation - amount, -100, 100)
        paid = replace(
            best_standing, reputation=reputation, standing_level=standing_label(reputation)
        )
        return relationships, tuple(paid if s is best_standing else s for s in standings)
    if best_relationship is not None:
        paid = replace(best_relationship, score=clamp(best_relationship.score - amount, -100, 100))
        return tuple(paid if r is best_relationship else r for r in relationships), standings
    return relationships, standings


class FailureRecoverySystem:
    """Classifies failures and resolves recovery attempts."""

    def __init__(self, settings: Settings | None = None, catalog: Catalog | None = None) -> None:
        self._settings = settings or Settings()
        catalog = catalog or Catalog()
        self._failure_types = {item["id"]: _failure_type(item) for item in catalog.failure_types()}
        self._mechanics = [_mechanic(item) for item in catalog.recovery_mechanics()]

    @property
    def failure_types(self) -> List[FailureType]:
        return list(self._failure_types.values())

    @property
    def mechanics(self) -> List[FailureRecoveryMechanic]:
        return list(self._mechanics)

    def failure_type(self, failure_id: str) -> Optional[FailureType]:
        return self._failure_types.get(failure_id)

    def mechanic(self, mechanic_id: str) -> FailureRecoveryMechanic:
        for mechanic in self._mechanics:
            if mechanic.id == mechanic_id:
                return mechanic
        raise UnknownReferenceError(f"Unknown recovery mechanic: {mechanic_id}")

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    def _matches(self, failure_id: str, action: str, outcome: str, context: FailureContext) -> bool:
        if failure_id == "combat_defeat":
            return context.combat_result == CombatOutcome.DEFEAT
        if failure_id == "quest_failure":
            if context.quest_failed:
                return True
            return bool(context.quest_id) and ("fail" in outcome or "unable" in outcome)
        if failure_id == "social_blunder":
            if context.hostile:
                return True
            return bool(context.social_context) and ("offend" in outcome or "anger" in outcome)
        if failure_id == "resource_depletion":
            return any(level <= 0 for level in context.resource_levels.values())
        if failure_id == "exploration_lost":
            if context.lost:
                return True
            return "explore" in action and "lost" in outcome
        return False

    def detect_failure(
        self, action: str, outcome: str, context: FailureContext
    ) -> Optional[FailureType]:
        """Classify a failed action into at most one failure type.

        Combat defeat always wins over every other category, even when a
        quest is active at the same time.
        """

        action_lower = action.lower()
        outcome_lower = outcome.lower()
        for failure_id in FAILURE_PRIORITY:
            if failure_id not in self._failure_types:
                continue
            if self._matches(failure_id, action_lower, outcome_lower, context):
                logger.info("Detected failure %s", failure_id)
                return self._failure_types[failure_id]
        return None

    # ------------------------------------------------------------------
    # Recovery options
    # ------------------------------------------------------------------
    def _can_use(self, mechanic: FailureRecoveryMechanic, state: StoryState) -> bool:
        for requirement in mechanic.requirements:
            if requirement.type == "resource" and requirement.value == "currency":
                cost = mechanic.cost.amount if mechanic.cost else 0
                if state.character.currency < cost:
                    return False
            elif requirement.type == "resource" and requirement.value == "reputation":
                if not (
                    any(r.score > 0 for r in state.npc_relationships)
                    or any(s.reputation > 0 for s in state.faction_standings)
                ):
                    return False
            elif requirement.type == "location":
                if str(requirement.value).lower() not in state.current_location.lower():
                    return False
            elif requirement.type == "skill":
                if state.character.level < 3:
                    return False
        return True

    def generate_recovery_options(
        self, failure_type: FailureType, state: StoryState
    ) -> List[FailureRecoveryMechanic]:
        if not self._settings.failure_recovery_enabled:
            return []
        return [
            mechanic
            for mechanic in self._mechanics
            if failure_type.id in mechanic.applicable_failure_types and self._can_use(mechanic, state)
        ]

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------
    def attempt_recovery(
        self, mechanic_id: str, context: RecoveryAttemptContext, rng: DeterministicRNG
    ) -> RecoveryAttempt:
        """Roll a recovery attempt; its cost is paid whether or not it works."""

        mechanic = self.mechanic(mechanic_id)
        success = rng.random() * 100 < mechanic.success_chance

        character = context.character
        relationships = context.npc_relationships
        standings = context.faction_standings
        if mechanic.cost is not None and mechanic.cost.type == "resource":
            character = replace(
                character, currency=max(0, character.currency - int(mechanic.cost.amount))
            )
        elif mechanic.cost is not None and mechanic.cost.type == "reputation":
            relationships, standings = _pay_reputation(
                mechanic.cost.amount, relationships, standings
            )

        consequences: Tuple[FailureConsequence, ...] = ()
        if success:
            outcome = f"Successfully recovered using {mechanic.name}"
            outcome += _SUCCESS_NOTES.get(mechanic.recovery_type, "")
        else:
            outcome = f"Recovery attempt failed: {mechanic.name} was unsuccessful"
            consequences = (
                FailureConsequence(
                    type="resource_loss",
                    severity="minor",
                    description="Wasted resources on failed recovery attempt",
                    reversible=False,
                ),
            )

        record = FailureRecoveryRecord(
            id=f"{mechanic.id}-{context.original_failure_id}-{context.turn}",
            original_failure_id=context.original_failure_id,
            failure_type=context.failure_type.id,
            mechanic_id=mechanic.id,
            mechanic_name=mechanic.name,
            turn=context.turn,
            success=success,
            outcome=outcome,
            lessons=tuple(self._lessons(context.failure_type, mechanic, success)),
            satisfaction=75 if success else 25,
        )
        logger.info(
            "Recovery via %s for %s %s",
            mechanic.id,
            context.failure_type.id,
            "succeeded" if success else "failed",
        )
        return RecoveryAttempt(
            success=success,
            outcome=outcome,
            character=character,
            record=record,
            consequences=consequences,
            npc_relationships=relationships,
            faction_standings=standings,
        )

    @staticmethod
    def _lessons(
        failure_type: FailureType, mechanic: FailureRecoveryMechanic, success: bool
    ) -> List[str]:
        lessons: List[str] = []
        if success:
            lessons.append(f"{mechanic.name} is an effective recovery method for {failure_type.name}")
            if mechanic.recovery_type in _SUCCESS_LESSONS:
                lessons.append(_SUCCESS_LESSONS[mechanic.recovery_type])
        else:
            lessons.append(f"{mechanic.name} may not always work for {failure_type.name}")
            lessons.append("Having backup recovery plans is important")
        if failure_type.category in _CATEGORY_LESSONS:
            lessons.append(_CATEGORY_LESSONS[failure_type.category])
        return lessons

    def generate_alternative_paths(self, objective: str, reason: str) -> List[AlternativePath]:
        return generate_alternative_paths(objective, reason)

    # ------------------------------------------------------------------
    # Resilience
    # ------------------------------------------------------------------
    @staticmethod
    def calculate_player_resilience(history: Sequence[FailureRecoveryRecord]) -> PlayerResilience:
        if not history:
            return PlayerResilience()

        success_rate = sum(1 for record in history if record.success) / len(history)
        average_satisfaction = sum(record.satisfaction for record in history) / len(history)
        recent = list(history)[-5:]
        recent_rate = sum(1 for record in recent if record.success) / len(recent)
        # Floored at zero only; a strongly improving player can exceed 100.
        learning_rate = max(0.0, (recent_rate - success_rate + 0.5) * 100)

        counts = Counter(record.mechanic_name for record in history)
        preferred = tuple(name for name, _ in counts.most_common(3))
        return PlayerResilience(
            resilience=min(100.0, success_rate * 100 + 10),
            adaptability=min(100.0, average_satisfaction + 10),
            learning_rate=learning_rate,
            preferred_mechanics=preferred,
        )


__all__ = [
    "FAILURE_PRIORITY",
    "FailureConsequence",
    "FailureContext",
    "FailureRecoveryMechanic",
    "FailureRecoveryRecord",
    "FailureRecoverySystem",
    "FailureType",
    "PlayerResilience",
    "RecoveryAttempt",
    "RecoveryAttemptContext",
    "RecoveryCost",
    "RecoveryRequirement",
]
