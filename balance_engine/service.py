"""High-level balance coordinator running every subsystem once per turn."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalog import Catalog
from .config import Settings, get_settings
from .consequences import ConsequencePropagator
from .difficulty import (
    DifficultyProfile,
    balance_combat_encounter,
    balance_recommendations,
    compute_difficulty,
)
from .effects import Consequence, ConsequenceEffect
from .factions import (
    ConflictResolution,
    Faction,
    FactionConflict,
    FactionRelationshipGraph,
    PoliticalInfluence,
    default_factions,
)
from .models import (
    Character,
    MoralProfile,
    MoralTag,
    PlayerChoice,
    Quest,
    QuestFailureRecord,
    StoryState,
    UnknownReferenceError,
)
from .performance import (
    CombatResult,
    PerformanceMetrics,
    PerformanceTracker,
    ResourceAction,
    ResourceActionKind,
    initial_metrics,
)
from .quests import BranchSelection, QuestStateMachine, replace_quest
from .recovery import (
    FailureContext,
    FailureRecoveryMechanic,
    FailureRecoveryRecord,
    FailureRecoverySystem,
    FailureType,
    PlayerResilience,
    RecoveryAttempt,
    RecoveryAttemptContext,
)
from .rng import DeterministicRNG
from .risk import (
    Reward,
    RiskAssessment,
    RiskContext,
    RiskOutcome,
    RiskRewardEngine,
    TradeoffContext,
    TradeoffMechanic,
    TradeoffResult,
)
from .scarcity import ScarcityEvent, ScarcityManager
from .services.summaries import system_status

logger = logging.getLogger(__name__)

# Turns left on an active quest flagged urgent, for trade-off affordability.
_URGENT_QUEST_TURNS = 2
_RISK_OUTCOME_LIMIT = 20


@dataclass
class World:
    """Everything one balance session owns between turns."""

    state: StoryState
    metrics: PerformanceMetrics = field(default_factory=initial_metrics)
    scarcity_events: List[ScarcityEvent] = field(default_factory=list)
    factions: List[Faction] = field(default_factory=list)
    conflicts: List[FactionConflict] = field(default_factory=list)
    recovery_history: Tuple[FailureRecoveryRecord, ...] = ()
    tradeoff_cooldowns: Dict[str, int] = field(default_factory=dict)
    failure_log: List[QuestFailureRecord] = field(default_factory=list)
    risk_outcomes: List[RiskOutcome] = field(default_factory=list)
    risk_tolerance: float = 50


@dataclass(frozen=True)
class ChoiceInput:
    text: str
    description: str = ""
    alternatives: Tuple[str, ...] = ()
    consequences: Tuple[Consequence, ...] = ()
    quest_id: Optional[str] = None
    moral_tag: Optional[MoralTag] = None
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TurnContext:
    """Structured facts about the action being processed this turn."""

    action_type: str = "general"
    success: bool = True
    combat_result: Optional[CombatResult] = None
    resource_levels: Mapping[str, float] = field(default_factory=dict)
    resources_used: Optional[Mapping[str, float]] = None
    choice: Optional[ChoiceInput] = None
    time_constraints: Optional[int] = None
    allies: Optional[int] = None
    social_context: Optional[str] = None
    quest_failed: bool = False
    hostile: bool = False
    lost: bool = False
    frustration: Optional[float] = None
    engagement: Optional[float] = None


@dataclass
class TurnResult:
    turn: int
    metrics: PerformanceMetrics
    difficulty: DifficultyProfile
    scarcity_events: List[ScarcityEvent]
    new_scarcity_events: List[ScarcityEvent]
    warnings: List[str]
    risk: RiskAssessment
    failure: Optional[FailureType] = None
    recovery_options: List[FailureRecoveryMechanic] = field(default_factory=list)
    choice: Optional[PlayerChoice] = None
    consequences: List[str] = field(default_factory=list)
    moral_profile: Optional[MoralProfile] = None
    political_influence: PoliticalInfluence = field(default_factory=PoliticalInfluence)
    quest_failures: List[QuestFailureRecord] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    renewed_resources: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResourceAvailability:
    resource_id: str
    availability: float
    cost_multiplier: float
    quality_multiplier: float
    warnings: Tuple[str, ...] = ()


class BalanceCoordinator:
    """Coordinates the balance subsystems over a single owned world."""

    def __init__(
        self,
        settings: Settings | None = None,
        world: World | None = None,
        rng: DeterministicRNG | None = None,
        catalog: Catalog | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog or Catalog()
        self.world = world or World(
            state=StoryState(character=Character(name="Adventurer")),
            factions=default_factions(self.catalog),
            risk_tolerance=self.settings.risk_tolerance,
        )
        self._rng = rng or DeterministicRNG(seed=42)
        self.quests = QuestStateMachine()
        self._build_subsystems()

    def _build_subsystems(self) -> None:
        self.tracker = PerformanceTracker(self.settings)
        self.scarcity = ScarcityManager(self.settings, self.catalog)
        self.risk = RiskRewardEngine(self.settings, self.catalog)
        self.recovery = FailureRecoverySystem(self.settings, self.catalog)
        self.consequences = ConsequencePropagator(self.settings)
        self.factions = FactionRelationshipGraph(self.settings)

    @property
    def state(self) -> StoryState:
        return self.world.state

    @property
    def turn(self) -> int:
        return self.world.state.turn

    def update_settings(self, **changes: Any) -> Settings:
        """Apply ``changes`` to the live settings and rebuild the subsystems.

        The world is kept as is; only behaviour from the next call onwards
        follows the new values.
        """

        self.settings = replace(self.settings, **changes)
        self._build_subsystems()
        logger.info("Balance settings updated: %s", ", ".join(sorted(changes)))
        return self.settings

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------
    def process_turn(self, action: str, outcome: str, context: TurnContext) -> TurnResult:
        """Run every subsystem over one player action, then end the turn."""

        world = self.world
        turn = world.state.turn
        logger.debug("Processing turn %s: %s", turn, action)

        world.metrics = self._update_metrics(context, turn)

        previous_events = list(world.scarcity_events)
        world.scarcity_events = self.scarcity.trigger_scarcity_events(
            world.state, previous_events, self._rng
        )
        new_events = world.scarcity_events[len(previous_events):]
        warnings = self.scarcity.get_resource_warnings(world.state)

        assessment = self._assess_risk(action, context)

        failure = self.recovery.detect_failure(action, outcome, self._failure_context(context))
        recovery_options = (
            self.recovery.generate_recovery_options(failure, world.state) if failure else []
        )

        choice: Optional[PlayerChoice] = None
        descriptions: List[str] = []
        moral_profile: Optional[MoralProfile] = None
        if context.choice is not None:
            choice, descriptions, moral_profile = self._apply_choice(context.choice, turn)

        influence = self.factions.calculate_political_influence(
            world.factions, world.state.standings_map()
        )

        quest_failures = self._check_quest_failures(turn)
        for record in quest_failures:
            for consequence in record.consequences:
                world.state, lines = self.consequences.manifest_consequence(
                    consequence, None, turn, world.state
                )
                descriptions.extend(lines)

        difficulty = compute_difficulty(self.settings, world.metrics)
        recommendations = balance_recommendations(world.metrics)

        renewed = self.end_turn()
        return TurnResult(
            turn=turn,
            metrics=world.metrics,
            difficulty=difficulty,
            scarcity_events=list(world.scarcity_events),
            new_scarcity_events=list(new_events),
            warnings=warnings,
            risk=assessment,
            failure=failure,
            recovery_options=recovery_options,
            choice=choice,
            consequences=descriptions,
            moral_profile=moral_profile,
            political_influence=influence,
            quest_failures=quest_failures,
            recommendations=recommendations,
            renewed_resources=renewed,
        )

    def end_turn(self) -> List[str]:
        """Age scarcity events, tick cooldowns and advance the turn counter.

        Returns the ids of resources that naturally replenished.
        """

        world = self.world
        renewed = self.scarcity.roll_renewals(world.scarcity_events, self._rng)
        world.scarcity_events = self.scarcity.update_active_events(world.scarcity_events)
        world.tradeoff_cooldowns = {
            tradeoff_id: remaining - 1
            for tradeoff_id, remaining in world.tradeoff_cooldowns.items()
            if remaining - 1 > 0
        }
        world.state = replace(world.state, turn=world.state.turn + 1)
        world.metrics = replace(world.metrics, updated_turn=world.state.turn)
        return renewed

    def _update_metrics(self, context: TurnContext, turn: int) -> PerformanceMetrics:
        metrics = self.world.metrics
        if context.combat_result is not None:
            result = context.combat_result
            if not result.turn:
                result = replace(result, turn=turn)
            metrics = self.tracker.record_combat_outcome(metrics, result)
        if context.resources_used:
            metrics = self.tracker.record_resource_action(
                metrics,
                ResourceAction(
                    kind=ResourceActionKind.USE,
                    efficiency=80 if context.success else 30,
                    context=context.action_type,
                ),
            )
        if context.action_type == "quest":
            metrics = self.tracker.record_quest_outcome(metrics, context.success)
        if context.frustration is not None or context.engagement is not None:
            metrics = self.tracker.record_engagement(
                metrics, frustration=context.frustration, engagement=context.engagement
            )
        return metrics

    def _assess_risk(self, action: str, context: TurnContext) -> RiskAssessment:
        world = self.world
        character = world.state.character
        assessment = self.risk.assess_action_risk(
            action,
            RiskContext(
                current_health=character.health,
                resources=character.currency,
                player_level=character.level,
                location=world.state.current_location,
                time_constraints=context.time_constraints,
                allies=context.allies,
            ),
        )
        if assessment.risk_level > 0:
            world.risk_outcomes = (
                world.risk_outcomes
                + [
                    RiskOutcome(
                        risk=assessment.risk_level,
                        success=context.success,
                        satisfaction=75 if context.success else 25,
                    )
                ]
            )[-_RISK_OUTCOME_LIMIT:]
            world.risk_tolerance = self.risk.adjust_risk_tolerance(
                world.risk_tolerance, world.risk_outcomes
            )
        return assessment

    def _failure_context(self, context: TurnContext) -> FailureContext:
        state = self.world.state
        active = state.active_quests()
        return FailureContext(
            quest_id=active[0].id if active else None,
            combat_result=context.combat_result.outcome if context.combat_result else None,
            resource_levels=dict(context.resource_levels),
            social_context=context.social_context,
            location=state.current_location,
            quest_failed=context.quest_failed,
            hostile=context.hostile,
            lost=context.lost,
        )

    def _apply_choice(
        self, choice_input: ChoiceInput, turn: int
    ) -> Tuple[PlayerChoice, List[str], MoralProfile]:
        world = self.world
        choice = self.consequences.record_player_choice(
            choice_input.text,
            choice_input.description,
            choice_input.alternatives,
            choice_input.context,
            turn,
            world.state,
            quest_id=choice_input.quest_id,
            moral_tag=choice_input.moral_tag,
        )
        world.state = replace(world.state, player_choices=world.state.player_choices + [choice])
        descriptions: List[str] = []
        for consequence in choice_input.consequences:
            world.state, lines = self.consequences.manifest_consequence(
                consequence, choice, turn, world.state
            )
            descriptions.extend(lines)
        profile = self.consequences.update_moral_profile(choice, world.state)
        world.state = replace(world.state, moral_profile=profile)
        recorded = next(c for c in world.state.player_choices if c.id == choice.id)
        return recorded, descriptions, profile

    def _check_quest_failures(self, turn: int) -> List[QuestFailureRecord]:
        world = self.world
        records: List[QuestFailureRecord] = []
        for quest in world.state.active_quests():
            failing = self.quests.check_quest_failure_conditions(quest, world.state)
            if not failing:
                continue
            record = self.quests.create_quest_failure_record(quest, failing[0], turn)
            world.state = replace_quest(
                world.state, self.quests.fail_quest(quest, turn, record)
            )
            world.metrics = self.tracker.record_quest_outcome(world.metrics, False)
            records.append(record)
        world.failure_log.extend(records)
        return records

    # ------------------------------------------------------------------
    # Difficulty and rewards
    # ------------------------------------------------------------------
    def current_difficulty(self) -> DifficultyProfile:
        return compute_difficulty(self.settings, self.world.metrics)

    def balance_combat_encounter(
        self, stats: Mapping[str, Any], importance: str = "minor", condition: str = "good"
    ) -> Dict[str, Any]:
        return balance_combat_encounter(stats, self.current_difficulty(), importance, condition)

    def calculate_balanced_rewards(
        self,
        base: Reward,
        risk_level: float,
        difficulty_multiplier: float = 1.0,
        time_constraints: Optional[int] = None,
        creative_solution: bool = False,
    ) -> Reward:
        """Scale ``base`` for risk, difficulty, urgency and creativity."""

        time_bonus = max(0.0, (5 - time_constraints) / 5) if time_constraints else 0.0
        creativity_bonus = 0.2 if creative_solution else 0.0
        return self.risk.calculate_reward(
            base,
            risk_level,
            difficulty_multiplier,
            time_bonus + creativity_bonus,
            rng=self._rng,
        )

    def get_resource_availability(
        self, resource_id: str, base_availability: float
    ) -> ResourceAvailability:
        events = self.world.scarcity_events
        warnings = tuple(
            event.description
            for event in events
            if any(effect.resource_id == resource_id for effect in event.effects)
        )
        return ResourceAvailability(
            resource_id=resource_id,
            availability=self.scarcity.apply_scarcity_effects(
                base_availability, resource_id, "availability", events
            ),
            cost_multiplier=self.scarcity.apply_scarcity_effects(1.0, resource_id, "cost", events),
            quality_multiplier=self.scarcity.apply_scarcity_effects(
                1.0, resource_id, "quality", events
            ),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Trade-offs
    # ------------------------------------------------------------------
    def _time_constraints(self) -> Optional[int]:
        urgent = [
            quest
            for quest in self.world.state.active_quests()
            if "urgent" in quest.description.lower()
        ]
        return _URGENT_QUEST_TURNS if urgent else None

    def get_available_tradeoffs(self, situation: str = "") -> List[TradeoffMechanic]:
        character = self.world.state.character
        return self.risk.get_available_tradeoffs(
            TradeoffContext(
                player_health=character.health,
                player_resources=character.currency,
                current_situation=situation,
                time_constraints=self._time_constraints(),
            ),
            self.world.tradeoff_cooldowns,
        )

    def execute_tradeoff(self, tradeoff_id: str) -> TradeoffResult:
        remaining = self.world.tradeoff_cooldowns.get(tradeoff_id, 0)
        if remaining > 0:
            raise ValueError(f"Trade-off {tradeoff_id} is cooling down for {remaining} more turns")
        result = self.risk.execute_tradeoff(tradeoff_id, self.world.state, self._rng)
        self.world.state = result.state
        if result.cooldown > 0:
            self.world.tradeoff_cooldowns[tradeoff_id] = result.cooldown
        return result

    # ------------------------------------------------------------------
    # Failure recovery
    # ------------------------------------------------------------------
    def attempt_recovery(
        self, mechanic_id: str, failure_type_id: str, original_failure_id: str = ""
    ) -> RecoveryAttempt:
        failure_type = self.recovery.failure_type(failure_type_id)
        if failure_type is None:
            raise UnknownReferenceError(f"Unknown failure type: {failure_type_id}")
        world = self.world
        attempt = self.recovery.attempt_recovery(
            mechanic_id,
            RecoveryAttemptContext(
                failure_type=failure_type,
                original_failure_id=original_failure_id or f"{failure_type_id}-{world.state.turn}",
                character=world.state.character,
                turn=world.state.turn,
                npc_relationships=tuple(world.state.npc_relationships),
                faction_standings=tuple(world.state.faction_standings),
            ),
            self._rng,
        )
        world.state = replace(
            world.state,
            character=attempt.character,
            npc_relationships=list(attempt.npc_relationships),
            faction_standings=list(attempt.faction_standings),
        )
        world.recovery_history = world.recovery_history + (attempt.record,)
        return attempt

    def player_resilience(self) -> PlayerResilience:
        return self.recovery.calculate_player_resilience(self.world.recovery_history)

    # ------------------------------------------------------------------
    # Quests
    # ------------------------------------------------------------------
    def _quest(self, quest_id: str) -> Quest:
        quest = self.world.state.quest(quest_id)
        if quest is None:
            raise UnknownReferenceError(f"Unknown quest: {quest_id}")
        return quest

    def start_quest(self, quest_id: str) -> Quest:
        quest = self.quests.start_quest(self._quest(quest_id), self.world.state, self.turn)
        self.world.state = replace_quest(self.world.state, quest)
        return quest

    def complete_quest(self, quest_id: str) -> Quest:
        quest = self.quests.complete_quest(self._quest(quest_id), self.turn)
        self.world.state = replace_quest(self.world.state, quest)
        self.world.metrics = self.tracker.record_quest_outcome(self.world.metrics, True)
        return quest

    def reopen_quest(self, quest_id: str) -> Quest:
        quest = self.quests.reopen_quest(self._quest(quest_id), self.turn)
        self.world.state = replace_quest(self.world.state, quest)
        return quest

    def select_quest_branch(
        self, quest_id: str, branch_id: str, choice_text: str
    ) -> Tuple[BranchSelection, List[str]]:
        """Commit a branch and manifest the consequences it declares."""

        turn = self.turn
        selection = self.quests.select_quest_branch(
            self._quest(quest_id), branch_id, choice_text, turn
        )
        state = replace_quest(self.world.state, selection.quest)
        descriptions: List[str] = []
        for consequence in selection.consequences:
            state, lines = self.consequences.manifest_consequence(consequence, None, turn, state)
            descriptions.extend(lines)
        self.world.state = state
        return selection, descriptions

    # ------------------------------------------------------------------
    # Factions
    # ------------------------------------------------------------------
    def update_faction_relationship(
        self, faction_a: str, faction_b: str, delta: float, reason: str
    ) -> List[Faction]:
        world = self.world
        world.factions = self.factions.update_faction_relationship(
            faction_a, faction_b, delta, reason, self.turn, world.factions, world.conflicts
        )
        return world.factions

    def create_faction_conflict(
        self, faction_a: str, faction_b: str, conflict_type: str, description: str
    ) -> FactionConflict:
        world = self.world
        world.factions, conflict = self.factions.create_faction_conflict(
            faction_a, faction_b, conflict_type, description, self.turn, world.factions, world.conflicts
        )
        world.conflicts = world.conflicts + [conflict]
        return conflict

    def resolve_faction_conflict(
        self,
        conflict_id: str,
        resolution: str,
        player_role: str,
        effects: Sequence[ConsequenceEffect] = (),
    ) -> ConflictResolution:
        world = self.world
        outcome = self.factions.resolve_faction_conflict(
            conflict_id, resolution, player_role, effects, world.factions, world.conflicts, self.turn
        )
        world.factions = outcome.factions
        world.conflicts = outcome.conflicts
        return outcome

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def system_status(self) -> Dict[str, object]:
        world = self.world
        return system_status(
            turn=world.state.turn,
            difficulty=self.current_difficulty(),
            metrics=world.metrics,
            active_events=world.scarcity_events,
            recommendations=balance_recommendations(world.metrics),
            resilience=self.player_resilience(),
            cooldowns=world.tradeoff_cooldowns,
        )


__all__ = [
    "BalanceCoordinator",
    "ChoiceInput",
    "ResourceAvailability",
    "TurnContext",
    "TurnResult",
    "World",
]
