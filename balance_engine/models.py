"""Core data models for the balance engine.

These records describe the story-state snapshot the engine reads from its
collaborators. Subsystems never mutate them in place; they build updated
copies with :func:`dataclasses.replace`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Tuple

if TYPE_CHECKING:
    from .effects import Consequence


class UnknownReferenceError(ValueError):
    """Raised when a mechanic, trade-off or branch identifier cannot be resolved."""


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class QuestStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class CombatOutcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLEE = "flee"


class MoralTag(str, Enum):
    GOOD = "good"
    NEUTRAL = "neutral"
    EVIL = "evil"
    COMPLEX = "complex"


class Alignment(str, Enum):
    LAWFUL_GOOD = "lawful_good"
    NEUTRAL_GOOD = "neutral_good"
    CHAOTIC_GOOD = "chaotic_good"
    LAWFUL_NEUTRAL = "lawful_neutral"
    TRUE_NEUTRAL = "true_neutral"
    CHAOTIC_NEUTRAL = "chaotic_neutral"
    LAWFUL_EVIL = "lawful_evil"
    NEUTRAL_EVIL = "neutral_evil"
    CHAOTIC_EVIL = "chaotic_evil"


@dataclass(frozen=True)
class Durability:
    current: float
    maximum: float = 100.0

    def percent(self) -> float:
        if self.maximum <= 0:
            return 0.0
        return self.current / self.maximum * 100


@dataclass
class Item:
    id: str
    name: str
    quantity: int = 1
    item_type: str = ""
    base_price: int = 0
    durability: Optional[Durability] = None


@dataclass
class Character:
    name: str
    level: int = 1
    health: float = 100
    max_health: float = 100
    mana: float = 0
    max_mana: float = 0
    experience: int = 0
    currency: int = 0
    attributes: Dict[str, int] = field(default_factory=dict)
    skills: List[str] = field(default_factory=list)

    _CORE_STATS = (
        "level",
        "health",
        "max_health",
        "mana",
        "max_mana",
        "experience",
        "currency",
    )

    def stat(self, name: str) -> float:
        """Look up a core stat or attribute, defaulting unknown names to 0."""

        if name in self._CORE_STATS:
            return getattr(self, name)
        return self.attributes.get(name, 0)


@dataclass
class TrackedNPC:
    id: str
    name: str
    health: float = 100
    short_term_goal: str = ""
    updated_turn: int = 0


@dataclass(frozen=True)
class RelationshipEvent:
    turn: int
    interaction_type: str
    change: float
    emotional_impact: str
    description: str


@dataclass
class NPCRelationship:
    npc_id: str
    npc_name: str = ""
    score: float = 0
    last_interaction_turn: int = 0
    history: List[RelationshipEvent] = field(default_factory=list)


@dataclass(frozen=True)
class ReputationEvent:
    turn: int
    action: str
    change: float
    standing_level: str


@dataclass
class FactionStanding:
    faction_id: str
    faction_name: str = ""
    reputation: float = 0
    standing_level: str = "friendly"
    history: List[ReputationEvent] = field(default_factory=list)


class ConditionType(str, Enum):
    QUEST_COMPLETION = "quest_completion"
    LEVEL_REQUIREMENT = "level_requirement"
    SKILL_REQUIREMENT = "skill_requirement"
    ITEM_POSSESSION = "item_possession"
    RELATIONSHIP_LEVEL = "relationship_level"
    FACTION_STANDING = "faction_standing"
    LOCATION_VISIT = "location_visit"
    CHOICE_MADE = "choice_made"
    STAT_CHECK = "stat_check"
    TIME_LIMIT = "time_limit"
    CURRENT_LOCATION = "current_location"
    CHOICE_TEXT = "choice_text"


class Comparison(str, Enum):
    AT_LEAST = "at_least"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"
    CONTAINS = "contains"


@dataclass(frozen=True)
class Condition:
    """One clause of the quest/faction condition language."""

    type: ConditionType
    target_id: str = ""
    value: Any = None
    comparison: Optional[Comparison] = None
    optional: bool = False
    description: str = ""


@dataclass(frozen=True)
class QuestBranch:
    id: str
    name: str
    condition: Condition
    objectives: Tuple[str, ...] = ()
    rewards: Dict[str, int] = field(default_factory=dict)
    consequences: Tuple["Consequence", ...] = ()
    exclusive_with: Tuple[str, ...] = ()
    time_limit: Optional[int] = None
    difficulty_modifier: int = 0


@dataclass(frozen=True)
class QuestChoice:
    id: str
    quest_id: str
    branch_id: str
    choice_text: str
    turn: int
    moral_weight: MoralTag
    difficulty_level: int
    alternative_options: Tuple[str, ...] = ()


class FailureConditionType(str, Enum):
    TIME_LIMIT = "time_limit"
    CHARACTER_DEATH = "character_death"
    ITEM_LOSS = "item_loss"
    RELATIONSHIP_THRESHOLD = "relationship_threshold"
    FACTION_HOSTILITY = "faction_hostility"
    NPC_DEATH = "npc_death"


@dataclass(frozen=True)
class QuestFailureCondition:
    type: FailureConditionType
    description: str = ""
    target_id: str = ""
    threshold: Optional[float] = None
    recoverable: bool = True
    consequences: Tuple["Consequence", ...] = ()


@dataclass(frozen=True)
class QuestRecoveryOption:
    id: str
    name: str
    description: str
    requirements: Tuple[Condition, ...] = ()
    cost: int = 0
    time_limit: Optional[int] = None
    success_chance: float = 50


@dataclass(frozen=True)
class QuestFailureRecord:
    quest_id: str
    quest_title: str
    failure_type: FailureConditionType
    failure_reason: str
    turn: int
    consequences: Tuple["Consequence", ...] = ()
    recovery_options: Tuple[QuestRecoveryOption, ...] = ()


@dataclass
class Quest:
    id: str
    title: str
    description: str = ""
    status: QuestStatus = QuestStatus.NOT_STARTED
    prerequisites: List[Condition] = field(default_factory=list)
    branches: List[QuestBranch] = field(default_factory=list)
    failure_conditions: List[QuestFailureCondition] = field(default_factory=list)
    current_branch: Optional[str] = None
    objectives: List[str] = field(default_factory=list)
    rewards: Dict[str, int] = field(default_factory=dict)
    choice_history: Tuple[QuestChoice, ...] = ()
    failure_records: Tuple[QuestFailureRecord, ...] = ()
    time_limit: Optional[int] = None
    started_turn: Optional[int] = None
    updated_turn: int = 0


@dataclass(frozen=True)
class ChoiceAlternative:
    id: str
    text: str
    difficulty_level: int = 5
    was_available: bool = True


@dataclass(frozen=True)
class ChoiceContext:
    location: str
    npcs_present: Tuple[str, ...]
    time_of_day: str
    stress_level: float
    available_resources: Tuple[str, ...]
    known_information: Tuple[str, ...]
    pressure_level: float
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChoiceConsequenceTracking:
    consequence_id: str
    manifested_turn: int
    description: str
    severity: str
    category: str
    player_awareness: str
    ongoing_effects: Tuple[str, ...]
    reversible: bool


@dataclass
class PlayerChoice:
    id: str
    turn: int
    choice_text: str
    choice_description: str
    context: ChoiceContext
    alternatives: List[ChoiceAlternative] = field(default_factory=list)
    consequences: List[ChoiceConsequenceTracking] = field(default_factory=list)
    moral_tag: MoralTag = MoralTag.NEUTRAL
    difficulty_level: int = 5
    confidence: float = 50
    quest_id: Optional[str] = None


@dataclass(frozen=True)
class MoralAlignmentEvent:
    turn: int
    choice_id: str
    previous_alignment: Alignment
    new_alignment: Alignment
    alignment_shift: int
    triggering_action: str
    moral_weight: str


@dataclass
class MoralProfile:
    alignment: Alignment = Alignment.TRUE_NEUTRAL
    history: List[MoralAlignmentEvent] = field(default_factory=list)
    consistency_score: float = 100


@dataclass
class StoryState:
    """Snapshot of the story the engine balances against."""

    character: Character
    inventory: List[Item] = field(default_factory=list)
    equipped: Dict[str, Optional[Item]] = field(default_factory=dict)
    quests: List[Quest] = field(default_factory=list)
    tracked_npcs: List[TrackedNPC] = field(default_factory=list)
    npc_relationships: List[NPCRelationship] = field(default_factory=list)
    faction_standings: List[FactionStanding] = field(default_factory=list)
    world_facts: List[str] = field(default_factory=list)
    narrative_threads: List[str] = field(default_factory=list)
    current_location: str = ""
    visited_locations: List[str] = field(default_factory=list)
    player_choices: List[PlayerChoice] = field(default_factory=list)
    moral_profile: MoralProfile = field(default_factory=MoralProfile)
    stress_level: float = 0
    time_of_day: str = "unknown"
    turn: int = 0
    locked_targets: FrozenSet[str] = frozenset()

    def has_item(self, item_id: str) -> bool:
        if any(item.id == item_id for item in self.inventory):
            return True
        return any(item is not None and item.id == item_id for item in self.equipped.values())

    def quest(self, quest_id: str) -> Optional[Quest]:
        return next((q for q in self.quests if q.id == quest_id), None)

    def active_quests(self) -> List[Quest]:
        return [q for q in self.quests if q.status == QuestStatus.ACTIVE]

    def relationship(self, npc_id: str) -> Optional[NPCRelationship]:
        return next((r for r in self.npc_relationships if r.npc_id == npc_id), None)

    def standing(self, faction_id: str) -> Optional[FactionStanding]:
        return next((s for s in self.faction_standings if s.faction_id == faction_id), None)

    def standings_map(self) -> Dict[str, float]:
        return {s.faction_id: s.reputation for s in self.faction_standings}


__all__ = [
    "Alignment",
    "Character",
    "ChoiceAlternative",
    "ChoiceConsequenceTracking",
    "ChoiceContext",
    "CombatOutcome",
    "Comparison",
    "Condition",
    "ConditionType",
    "Durability",
    "FactionStanding",
    "FailureConditionType",
    "Item",
    "MoralAlignmentEvent",
    "MoralProfile",
    "MoralTag",
    "NPCRelationship",
    "PlayerChoice",
    "Quest",
    "QuestBranch",
    "QuestChoice",
    "QuestFailureCondition",
    "QuestFailureRecord",
    "QuestRecoveryOption",
    "QuestStatus",
    "RelationshipEvent",
    "ReputationEvent",
    "StoryState",
    "TrackedNPC",
    "UnknownReferenceError",
    "clamp",
]
