"""Faction relationship graph, conflicts and political influence."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalog import Catalog
from .conditions import compare_values, condition_from_dict, evaluate_condition
from .config import Settings
from .effects import (
    Consequence,
    ConsequenceEffect,
    FactionChange,
    PowerShift,
    Visibility,
    effect_from_dict,
)
from .models import (
    Character,
    Comparison,
    Condition,
    ConditionType,
    Quest,
    StoryState,
    UnknownReferenceError,
    clamp,
)
from .rng import DeterministicRNG
from .services.standings import relationship_label

logger = logging.getLogger(__name__)

CONFLICT_TYPES = (
    "trade_war",
    "territorial_dispute",
    "ideological_conflict",
    "resource_competition",
    "succession_crisis",
)

POWER_SHIFT_STEP = 10


@dataclass(frozen=True)
class FactionInfluence:
    political: float = 50
    economic: float = 50
    military: float = 50
    social: float = 50
    magical: float = 50
    informational: float = 50


@dataclass(frozen=True)
class FactionGoal:
    id: str
    name: str
    description: str
    priority: str = "medium"
    type: str = ""
    progress: float = 0
    obstacles: Tuple[str, ...] = ()
    player_can_influence: bool = True


@dataclass(frozen=True)
class FactionBenefit:
    name: str
    type: str
    description: str
    requirements: Tuple[Condition, ...] = ()
    effects: Tuple[ConsequenceEffect, ...] = ()


@dataclass(frozen=True)
class FactionConsequence:
    name: str
    description: str
    trigger: Condition
    effects: Tuple[ConsequenceEffect, ...] = ()


@dataclass(frozen=True)
class FactionRelationshipEvent:
    turn: int
    event_type: str
    description: str
    change: float


@dataclass
class FactionRelationship:
    faction_id: str
    faction_name: str = ""
    score: float = 0
    label: str = "neutral"
    history: List[FactionRelationshipEvent] = field(default_factory=list)


@dataclass
class FactionConflict:
    id: str
    name: str
    type: str
    faction_a: str
    faction_b: str
    started_turn: int
    causes: Tuple[str, ...] = ()
    intensity: str = "minor"
    status: str = "Active conflict ongoing"
    player_involvement: str = "none"
    resolved: bool = False
    resolution: str = ""
    resolved_turn: Optional[int] = None

    def involves(self, a: str, b: str) -> bool:
        return {self.faction_a, self.faction_b} == {a, b}


@dataclass
class Faction:
    id: str
    name: str
    description: str = ""
    type: str = ""
    power_level: float = 50
    influence: FactionInfluence = field(default_factory=FactionInfluence)
    territory: List[str] = field(default_factory=list)
    goals: List[FactionGoal] = field(default_factory=list)
    benefits: List[FactionBenefit] = field(default_factory=list)
    consequences: List[FactionConsequence] = field(default_factory=list)
    relationships: List[FactionRelationship] = field(default_factory=list)

    def relationship(self, faction_id: str) -> Optional[FactionRelationship]:
        return next((r for r in self.relationships if r.faction_id == faction_id), None)


@dataclass(frozen=True)
class ConflictResolution:
    factions: List[Faction]
    conflicts: List[FactionConflict]
    effects: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PoliticalInfluence:
    dominant_faction: str = ""
    stability: float = 100
    player_influence: float = 0


@dataclass(frozen=True)
class FactionQuestOffer:
    faction_id: str
    goal_id: str
    category: str
    quest: Quest
    consequences: Tuple[Consequence, ...] = ()


def faction_from_dict(data: Dict[str, Any]) -> Faction:
    return Faction(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        type=data.get("type", ""),
        power_level=clamp(float(data.get("power_level", 50)), 0, 100),
        influence=FactionInfluence(**data.get("influence", {})),
        territory=list(data.get("territory", [])),
        goals=[
            FactionGoal(
                id=goal["id"],
                name=goal["name"],
                description=goal.get("description", ""),
                priority=goal.get("priority", "medium"),
                type=goal.get("type", ""),
                progress=float(goal.get("progress", 0)),
                obstacles=tuple(goal.get("obstacles", [])),
                player_can_influence=bool(goal.get("player_can_influence", True)),
            )
            for goal in data.get("goals", [])
        ],
        benefits=[
            FactionBenefit(
                name=benefit["name"],
                type=benefit.get("type", ""),
                description=benefit.get("description", ""),
                requirements=tuple(condition_from_dict(req) for req in benefit.get("requirements", [])),
                effects=tuple(effect_from_dict(effect) for effect in benefit.get("effects", [])),
            )
            for benefit in data.get("benefits", [])
        ],
        consequences=[
            FactionConsequence(
                name=item["name"],
                description=item.get("description", ""),
                trigger=condition_from_dict(item["trigger"]),
                effects=tuple(effect_from_dict(effect) for effect in item.get("effects", [])),
            )
            for item in data.get("consequences", [])
        ],
    )


def default_factions(catalog: Catalog | None = None) -> List[Faction]:
    """Build the starting faction roster from the catalog."""

    catalog = catalog or Catalog()
    return [faction_from_dict(item) for item in catalog.factions()]


def _has_active_conflict(conflicts: Sequence[FactionConflict], a: str, b: str) -> bool:
    return any(not conflict.resolved and conflict.involves(a, b) for conflict in conflicts)


def _relabel(
    factions: Sequence[Faction], conflicts: Sequence[FactionConflict], a: str, b: str
) -> List[Faction]:
    updated: List[Faction] = []
    at_odds = _has_active_conflict(conflicts, a, b)
    for faction in factions:
        other = b if faction.id == a else a if faction.id == b else None
        if other is None:
            updated.append(faction)
            continue
        relationships = [
            replace(rel, label=relationship_label(rel.score, active_conflict=at_odds))
            if rel.faction_id == other
            else rel
            for rel in faction.relationships
        ]
        updated.append(replace(faction, relationships=relationships))
    return updated


class FactionRelationshipGraph:
    """Maintains directed faction-to-faction relationships.

    Edges are independent: faction A's view of B changes without touching
    B's view of A.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------
    def update_faction_relationship(
        self,
        faction_a: str,
        faction_b: str,
        delta: float,
        reason: str,
        turn: int,
        factions: Sequence[Faction],
        conflicts: Sequence[FactionConflict] = (),
    ) -> List[Faction]:
        other = next((f for f in factions if f.id == faction_b), None)
        at_odds = _has_active_conflict(conflicts, faction_a, faction_b)
        limit = self._settings.faction_history_limit
        event = FactionRelationshipEvent(
            turn=turn,
            event_type="assistance_provided" if delta > 0 else "conflict_started",
            description=reason,
            change=delta,
        )

        updated: List[Faction] = []
        for faction in factions:
            if faction.id != faction_a:
                updated.append(faction)
                continue
            relationships = list(faction.relationships)
            index = next(
                (i for i, rel in enumerate(relationships) if rel.faction_id == faction_b), None
            )
            if index is None:
                relationships.append(
                    FactionRelationship(
                        faction_id=faction_b,
                        faction_name=other.name if other else faction_b,
                    )
                )
                index = len(relationships) - 1
            current = relationships[index]
            score = clamp(current.score + delta, -100, 100)
            relationships[index] = replace(
                current,
                score=score,
                label=relationship_label(score, active_conflict=at_odds),
                history=(current.history + [event])[-limit:],
            )
            logger.debug(
                "Relationship %s -> %s now %.0f (%s)",
                faction_a,
                faction_b,
                score,
                relationships[index].label,
            )
            updated.append(replace(faction, relationships=relationships))
        return updated

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------
    def create_faction_conflict(
        self,
        faction_a: str,
        faction_b: str,
        conflict_type: str,
        description: str,
        turn: int,
        factions: Sequence[Faction],
        conflicts: Sequence[FactionConflict] = (),
    ) -> Tuple[List[Faction], FactionConflict]:
        """Open a conflict between two factions.

        Returns the factions with their mutual edges relabelled and the new
        conflict record.
        """

        if conflict_type not in CONFLICT_TYPES:
            raise ValueError(f"Unknown conflict type: {conflict_type}")
        conflict = FactionConflict(
            id=f"conflict-{faction_a}-{faction_b}-{turn}",
            name=f"{conflict_type.replace('_', ' ')} between factions",
            type=conflict_type,
            faction_a=faction_a,
            faction_b=faction_b,
            started_turn=turn,
            causes=(description,),
        )
        logger.info("Conflict %s opened between %s and %s", conflict_type, faction_a, faction_b)
        return _relabel(factions, list(conflicts) + [conflict], faction_a, faction_b), conflict

    def resolve_faction_conflict(
        self,
        conflict_id: str,
        resolution: str,
        player_role: str,
        effects: Sequence[ConsequenceEffect],
        factions: Sequence[Faction],
        conflicts: Sequence[FactionConflict],
        turn: int = 0,
    ) -> ConflictResolution:
        conflict = next((c for c in conflicts if c.id == conflict_id), None)
        if conflict is None:
            raise UnknownReferenceError(f"Unknown faction conflict: {conflict_id}")

        updated = list(factions)
        lines: List[str] = []
        for effect in effects:
            if not isinstance(effect, FactionChange):
                continue
            shift = effect.power_shift
            if shift is None:
                if "weakened" in effect.description:
                    shift = PowerShift.WEAKENED
                elif "strengthened" in effect.description:
                    shift = PowerShift.STRENGTHENED
            if shift is None:
                continue
            index = next((i for i, f in enumerate(updated) if f.id == effect.faction_id), None)
            if index is None:
                continue
            faction = updated[index]
            step = -POWER_SHIFT_STEP if shift == PowerShift.WEAKENED else POWER_SHIFT_STEP
            updated[index] = replace(faction, power_level=clamp(faction.power_level + step, 0, 100))
            lines.append(f"{faction.name} has been {shift.value} by the conflict resolution")

        resolved = replace(
            conflict,
            resolved=True,
            resolution=resolution,
            resolved_turn=turn,
            player_involvement=player_role,
            status="Resolved",
        )
        remaining = [resolved if c.id == conflict_id else c for c in conflicts]
        updated = _relabel(updated, remaining, conflict.faction_a, conflict.faction_b)
        logger.info("Conflict %s resolved with player as %s", conflict_id, player_role)
        return ConflictResolution(factions=updated, conflicts=remaining, effects=tuple(lines))

    # ------------------------------------------------------------------
    # Goals, benefits and consequences
    # ------------------------------------------------------------------
    @staticmethod
    def update_faction_goal_progress(
        faction_id: str,
        goal_id: str,
        change: float,
        player_contribution: bool,
        factions: Sequence[Faction],
    ) -> List[Faction]:
        updated: List[Faction] = []
        for faction in factions:
            if faction.id != faction_id:
                updated.append(faction)
                continue
            goals = [
                replace(goal, progress=clamp(goal.progress + change, 0, 100))
                if goal.id == goal_id
                else goal
                for goal in faction.goals
            ]
            if player_contribution:
                logger.debug("Player advanced %s goal %s by %.0f", faction_id, goal_id, change)
            updated.append(replace(faction, goals=goals))
        return updated

    @staticmethod
    def apply_faction_benefits(
        faction: Faction, reputation: float, character: Character
    ) -> Tuple[List[str], List[ConsequenceEffect]]:
        benefits: List[str] = []
        effects: List[ConsequenceEffect] = []
        for benefit in faction.benefits:
            qualifies = True
            for requirement in benefit.requirements:
                if requirement.type == ConditionType.FACTION_STANDING:
                    qualifies = reputation >= float(requirement.value)
                elif requirement.type == ConditionType.LEVEL_REQUIREMENT:
                    qualifies = character.level >= int(requirement.value)
                if not qualifies:
                    break
            if qualifies:
                benefits.append(benefit.description)
                effects.extend(benefit.effects)
        return benefits, effects

    @staticmethod
    def _faction_condition(condition: Condition, reputation: float, state: StoryState) -> bool:
        if condition.type == ConditionType.FACTION_STANDING:
            return compare_values(
                reputation, condition.value, condition.comparison or Comparison.AT_LEAST
            )
        if condition.type in (
            ConditionType.CHOICE_TEXT,
            ConditionType.CHOICE_MADE,
            ConditionType.STAT_CHECK,
        ):
            return evaluate_condition(condition, state)
        return False

    def check_faction_consequences(
        self, faction: Faction, reputation: float, state: StoryState
    ) -> Tuple[List[FactionConsequence], List[ConsequenceEffect]]:
        triggered: List[FactionConsequence] = []
        effects: List[ConsequenceEffect] = []
        for consequence in faction.consequences:
            if self._faction_condition(consequence.trigger, reputation, state):
                triggered.append(consequence)
                effects.extend(consequence.effects)
        if triggered:
            logger.info(
                "%s consequences triggered for %s", len(triggered), faction.id
            )
        return triggered, effects

    @staticmethod
    def generate_faction_quest(
        faction: Faction, reputation: float, state: StoryState, rng: DeterministicRNG
    ) -> Optional[FactionQuestOffer]:
        goals = [g for g in faction.goals if g.player_can_influence and g.progress < 100]
        if not goals:
            return None
        goal = rng.choice(goals)
        quest_id = f"{faction.id}-{goal.id}-{state.turn}"

        if goal.type == "economic":
            quest = Quest(
                id=quest_id,
                title=f"Economic Support for {faction.name}",
                description=f"Help {faction.name} achieve their economic goal: {goal.description}",
                objectives=[f"Contribute to {goal.name}"],
                rewards={"experience": 100, "currency": 50},
            )
            reward = Consequence(
                id=f"{quest_id}-standing",
                description=f"Improved standing with {faction.name}",
                effects=(
                    FactionChange(
                        faction_id=faction.id,
                        faction_name=faction.name,
                        delta=15,
                        description=f"Reputation increased with {faction.name}",
                    ),
                ),
                category="reputation",
                reversible=False,
                visibility=Visibility.OBVIOUS,
            )
            return FactionQuestOffer(
                faction_id=faction.id,
                goal_id=goal.id,
                category="faction_support",
                quest=quest,
                consequences=(reward,),
            )
        if goal.type == "defense":
            quest = Quest(
                id=quest_id,
                title=f"Defend {faction.name} Interests",
                description=f"Help {faction.name} with their defensive goal: {goal.description}",
                objectives=[f"Assist in {goal.name}"],
                rewards={"experience": 150, "currency": 25},
            )
            return FactionQuestOffer(
                faction_id=faction.id, goal_id=goal.id, category="faction_defense", quest=quest
            )
        return None

    # ------------------------------------------------------------------
    # Politics
    # ------------------------------------------------------------------
    @staticmethod
    def calculate_political_influence(
        factions: Sequence[Faction], standings: Mapping[str, float]
    ) -> PoliticalInfluence:
        """Summarise the balance of political power and the player's share of it."""

        if not factions:
            return PoliticalInfluence()

        powers = [f.power_level * f.influence.political / 100 for f in factions]
        total = sum(powers)
        dominant = ""
        strongest = 0.0
        for faction, power in zip(factions, powers):
            if power > strongest:
                strongest = power
                dominant = faction.id

        if total > 0:
            shares = [power / total for power in powers]
            stability = 100 - (max(shares) - min(shares)) * 100
        else:
            stability = 100.0

        influence = 0.0
        for faction in factions:
            standing = standings.get(faction.id, 0)
            influence += standing / 100 * (faction.influence.political / 100) * faction.power_level
        return PoliticalInfluence(
            dominant_faction=dominant,
            stability=clamp(stability, 0, 100),
            player_influence=clamp(influence / len(factions), 0, 100),
        )


__all__ = [
    "CONFLICT_TYPES",
    "ConflictResolution",
    "Faction",
    "FactionBenefit",
    "FactionConflict",
    "FactionConsequence",
    "FactionGoal",
    "FactionInfluence",
    "FactionQuestOffer",
    "FactionRelationship",
    "FactionRelationshipEvent",
    "FactionRelationshipGraph",
    "PoliticalInfluence",
    "default_factions",
    "faction_from_dict",
]
