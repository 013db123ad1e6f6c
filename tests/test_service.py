"""Integration tests for the balance coordinator."""
from __future__ import annotations

import pytest

from balance_engine.difficulty import DIFFICULTY_PRESETS
from balance_engine.effects import Consequence, RelationshipChange, StatChange, WorldFactChange
from balance_engine.factions import default_factions
from balance_engine.models import (
    Alignment,
    Character,
    CombatOutcome,
    Condition,
    ConditionType,
    FactionStanding,
    FailureConditionType,
    Quest,
    QuestBranch,
    QuestFailureCondition,
    QuestStatus,
    StoryState,
    UnknownReferenceError,
)
from balance_engine.performance import CombatResult
from balance_engine.risk import Reward
from balance_engine.service import BalanceCoordinator, ChoiceInput, TurnContext, World


@pytest.fixture
def coordinator(settings, catalog, scripted_rng) -> BalanceCoordinator:
    def _build(state: StoryState | None = None, *values: float) -> BalanceCoordinator:
        state = state or StoryState(
            character=Character(name="Mira", level=5, currency=500),
            current_location="Riverside town",
        )
        world = World(state=state, factions=default_factions(catalog))
        return BalanceCoordinator(settings, world, scripted_rng(*values), catalog)

    return _build


def test_default_coordinator_builds_its_own_world() -> None:
    coordinator = BalanceCoordinator()

    assert coordinator.turn == 0
    assert coordinator.state.character.name == "Adventurer"
    assert len(coordinator.world.factions) == 3
    assert coordinator.world.risk_tolerance == 50


def test_defeat_turn_runs_every_subsystem(coordinator) -> None:
    engine = coordinator()
    context = TurnContext(
        action_type="combat", combat_result=CombatResult(outcome=CombatOutcome.DEFEAT)
    )

    result = engine.process_turn("Attack the troll", "You were beaten", context)

    assert result.turn == 0
    assert engine.turn == 1
    assert result.metrics.combat.win_rate == 0
    assert result.metrics.combat.recent_combats[0].turn == 0
    assert [event.name for event in result.new_scarcity_events] == ["Supply Shortage"]
    assert result.risk.risk_level == pytest.approx(75)
    assert result.failure.id == "combat_defeat"
    assert [m.id for m in result.recovery_options] == ["medical_treatment"]
    assert any("Health Potions" in line for line in result.warnings)
    assert engine.world.risk_tolerance == pytest.approx(52.5)
    assert result.political_influence.dominant_faction == "city_guard"


def test_scarcity_events_are_not_duplicated_across_turns(coordinator) -> None:
    engine = coordinator()

    first = engine.process_turn("rest", "", TurnContext())
    second = engine.process_turn("rest", "", TurnContext())

    assert [event.name for event in first.scarcity_events] == ["Supply Shortage"]
    assert second.new_scarcity_events == []
    assert [event.name for event in engine.world.scarcity_events] == ["Supply Shortage"]
    assert engine.world.scarcity_events[0].duration == 8


def test_choice_consequences_and_morality(coordinator) -> None:
    engine = coordinator()
    gratitude = Consequence(
        id="grateful-refugees",
        description="The refugees remember your kindness",
        effects=(RelationshipChange(npc_id="elda", delta=20, description="improved"),),
    )
    choice = ChoiceInput(
        text="Help the refugees",
        alternatives=("Ignore them", "Rob them", "Send them away", "Recruit them", "Wait"),
        consequences=(gratitude,),
    )

    result = engine.process_turn("Open the gates", "", TurnContext(choice=choice))

    assert result.choice.id == "choice-0-1"
    assert [t.consequence_id for t in result.choice.consequences] == ["grateful-refugees"]
    assert result.consequences == ["Relationship improved"]
    assert result.moral_profile.alignment == Alignment.NEUTRAL_GOOD
    assert engine.state.moral_profile.alignment == Alignment.NEUTRAL_GOOD
    assert engine.state.relationship("elda").score == 20
    assert len(engine.state.player_choices) == 1


def test_quest_fails_when_the_character_dies(coordinator) -> None:
    caravan = Quest(
        id="escort",
        title="Escort the Caravan",
        status=QuestStatus.ACTIVE,
        failure_conditions=[
            QuestFailureCondition(
                type=FailureConditionType.CHARACTER_DEATH,
                description="You fell on the road",
                consequences=(
                    Consequence(
                        id="caravan-lost",
                        description="The caravan was lost",
                        effects=(WorldFactChange(fact="The caravan was lost"),),
                    ),
                ),
            )
        ],
    )
    state = StoryState(character=Character(name="Mira", health=0, currency=500), quests=[caravan])
    engine = coordinator(state)

    result = engine.process_turn("wait", "", TurnContext())

    assert [record.quest_id for record in result.quest_failures] == ["escort"]
    assert engine.state.quest("escort").status == QuestStatus.FAILED
    assert engine.state.quest("escort").failure_records[0].failure_reason == "You fell on the road"
    assert "The caravan was lost" in engine.state.world_facts
    assert engine.world.failure_log == result.quest_failures
    assert result.metrics.quest.completion_rate == pytest.approx(63)


def test_tradeoff_cooldown_blocks_until_it_expires(coordinator) -> None:
    engine = coordinator()

    result = engine.execute_tradeoff("power_at_a_price")
    assert engine.state.character.health == 75
    assert engine.world.tradeoff_cooldowns == {"power_at_a_price": 10}

    with pytest.raises(ValueError):
        engine.execute_tradeoff("power_at_a_price")

    engine.end_turn()
    assert engine.world.tradeoff_cooldowns == {"power_at_a_price": 9}
    assert "power_at_a_price" not in [m.id for m in engine.get_available_tradeoffs()]

    for _ in range(9):
        engine.end_turn()
    assert engine.world.tradeoff_cooldowns == {}
    assert "power_at_a_price" in [m.id for m in engine.get_available_tradeoffs()]
    assert result.cooldown == 10


def test_unknown_tradeoff_propagates(coordinator) -> None:
    with pytest.raises(UnknownReferenceError):
        coordinator().execute_tradeoff("deal_with_devil")


def test_urgent_quests_rule_out_slow_tradeoffs(coordinator) -> None:
    urgent = Quest(
        id="fire", title="Fire", description="Urgent: the mill is burning", status=QuestStatus.ACTIVE
    )
    state = StoryState(character=Character(name="Mira", currency=500), quests=[urgent])

    assert coordinator(state)._time_constraints() == 2
    assert coordinator()._time_constraints() is None


def test_attempt_recovery_records_history(coordinator) -> None:
    engine = coordinator(None, 0.5)

    attempt = engine.attempt_recovery("medical_treatment", "combat_defeat")

    assert attempt.success is True
    assert engine.state.character.currency == 450
    assert engine.world.recovery_history == (attempt.record,)
    assert attempt.record.original_failure_id == "combat_defeat-0"
    assert engine.player_resilience().resilience == 100


def test_seeking_guidance_spends_reputation(coordinator) -> None:
    state = StoryState(
        character=Character(name="Mira", currency=500),
        faction_standings=[FactionStanding(faction_id="city_guard", reputation=40)],
    )
    engine = coordinator(state, 0.1)

    attempt = engine.attempt_recovery("seek_guidance", "exploration_lost")

    assert attempt.success is True
    assert engine.state.standing("city_guard").reputation == 30
    assert engine.state.character.currency == 500


def test_attempt_recovery_with_unknown_references(coordinator) -> None:
    engine = coordinator()

    with pytest.raises(UnknownReferenceError):
        engine.attempt_recovery("medical_treatment", "stubbed_toe")
    with pytest.raises(UnknownReferenceError):
        engine.attempt_recovery("prayer", "combat_defeat")


def test_balanced_rewards(coordinator) -> None:
    engine = coordinator()

    assert engine.calculate_balanced_rewards(Reward(experience=100), 100).experience == 120
    assert (
        engine.calculate_balanced_rewards(
            Reward(experience=100), 100, creative_solution=True
        ).experience
        == 122
    )


def test_resource_availability_reflects_active_events(coordinator) -> None:
    engine = coordinator()
    engine.process_turn("rest", "", TurnContext())
    baseline = 1 - 20 * 30 / 10000

    availability = engine.get_resource_availability("health_potions", 100)

    assert availability.availability == pytest.approx(100 * 0.5 * baseline)
    assert availability.cost_multiplier == pytest.approx(1.5 * baseline)
    assert len(availability.warnings) == 1
    assert engine.get_resource_availability("mana_potions", 10).warnings == ()


def test_combat_encounters_use_current_difficulty(coordinator) -> None:
    engine = coordinator()

    balanced = engine.balance_combat_encounter({"health": 100, "attack": 10}, "minor", "good")

    assert set(balanced) == {"health", "attack"}
    assert balanced["health"] < 100


def test_quest_lifecycle_through_the_coordinator(coordinator) -> None:
    quest = Quest(
        id="heist",
        title="Heist",
        branches=[
            QuestBranch(
                id="loud",
                name="Go In Loud",
                condition=Condition(type=ConditionType.LEVEL_REQUIREMENT, value=1),
                consequences=(
                    Consequence(
                        id="alarm",
                        description="The alarm sounded",
                        effects=(StatChange(stat="health", delta=-20, description="was wounded"),),
                    ),
                ),
            )
        ],
    )
    engine = coordinator(StoryState(character=Character(name="Mira", level=5), quests=[quest]))

    engine.start_quest("heist")
    selection, lines = engine.select_quest_branch("heist", "loud", "Kick the door")
    completed = engine.complete_quest("heist")

    assert selection.choice.id == "heist-choice-1"
    assert lines == ["Player was wounded"]
    assert engine.state.character.health == 80
    assert engine.state.player_choices == []
    assert completed.status == QuestStatus.COMPLETED
    assert engine.world.metrics.quest.completion_rate == pytest.approx(73)

    with pytest.raises(UnknownReferenceError):
        engine.start_quest("missing")


def test_faction_operations_update_the_world(coordinator) -> None:
    engine = coordinator()

    conflict = engine.create_faction_conflict(
        "merchants_guild", "city_guard", "trade_war", "Tariffs"
    )
    factions = engine.update_faction_relationship("merchants_guild", "city_guard", -95, "Embargo")
    guild = next(f for f in factions if f.id == "merchants_guild")
    assert guild.relationship("city_guard").label == "at_war"

    engine.resolve_faction_conflict(conflict.id, "Truce", "mediator")
    guild = next(f for f in engine.world.factions if f.id == "merchants_guild")
    assert guild.relationship("city_guard").label == "hostile"
    assert engine.world.conflicts[0].resolved is True


def test_system_status_snapshot(coordinator) -> None:
    engine = coordinator()
    engine.process_turn("rest", "", TurnContext())
    engine.execute_tradeoff("power_at_a_price")

    status = engine.system_status()

    assert set(status) == {
        "turn",
        "difficulty",
        "performance",
        "active_events",
        "recommendations",
        "resilience",
        "cooldowns",
    }
    assert status["turn"] == 1
    assert status["cooldowns"] == {"power_at_a_price": 10}
    assert status["active_events"][0]["name"] == "Supply Shortage"
    assert status["resilience"]["resilience"] == 50


def test_settings_can_change_mid_session(coordinator) -> None:
    engine = coordinator()
    engine.process_turn("rest", "", TurnContext())
    normal = engine.current_difficulty()

    engine.update_settings(difficulty_mode="hard", dynamic_enabled=False, scarcity_enabled=False)

    assert engine.settings.difficulty_mode == "hard"
    assert engine.current_difficulty() == DIFFICULTY_PRESETS["hard"]
    assert engine.current_difficulty() != normal
    assert engine.turn == 1
    assert [event.name for event in engine.world.scarcity_events] == ["Supply Shortage"]

    engine.world.scarcity_events = []
    assert engine.process_turn("rest", "", TurnContext()).new_scarcity_events == []


def test_invalid_settings_update_keeps_the_old_settings(coordinator) -> None:
    engine = coordinator()
    before = engine.settings

    with pytest.raises(ValueError, match="Invalid difficulty mode"):
        engine.update_settings(difficulty_mode="nightmare")
    with pytest.raises(ValueError):
        engine.update_settings(difficulty_mode="custom")

    assert engine.settings is before


def test_choice_without_consequences_changes_no_relations(coordinator) -> None:
    state = StoryState(
        character=Character(name="Mira", level=5, currency=500),
        current_location="Riverside town",
        faction_standings=[FactionStanding(faction_id="city_guard", reputation=15)],
    )
    engine = coordinator(state)
    factions_before = list(engine.world.factions)

    result = engine.process_turn("Wait", "", TurnContext(choice=ChoiceInput(text="Wait")))

    assert result.choice is not None
    assert result.consequences == []
    assert engine.state.character == state.character
    assert engine.state.npc_relationships == []
    assert engine.state.faction_standings == state.faction_standings
    assert engine.world.factions == factions_before
