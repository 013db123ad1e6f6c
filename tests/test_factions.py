"""Tests for the faction relationship graph and politics."""
from __future__ import annotations

import pytest

from balance_engine.effects import FactionChange, PowerShift, WorldFactChange
from balance_engine.factions import (
    FactionRelationshipGraph,
    default_factions,
)
from balance_engine.models import Character, UnknownReferenceError


@pytest.fixture
def graph(settings) -> FactionRelationshipGraph:
    return FactionRelationshipGraph(settings)


@pytest.fixture
def factions(catalog):
    return default_factions(catalog)


def _by_id(factions, faction_id):
    return next(f for f in factions if f.id == faction_id)


def test_default_roster(factions) -> None:
    assert [f.id for f in factions] == ["merchants_guild", "city_guard", "scholars_circle"]
    guild = _by_id(factions, "merchants_guild")
    assert guild.power_level == 75
    assert guild.goals[0].progress == 45


def test_relationship_clamps_and_labels(graph, factions) -> None:
    factions = graph.update_faction_relationship(
        "merchants_guild", "city_guard", 80, "Joint patrols", 1, factions
    )
    edge = _by_id(factions, "merchants_guild").relationship("city_guard")
    assert (edge.score, edge.label) == (80, "allied")
    assert edge.faction_name == "City Guard"

    factions = graph.update_faction_relationship(
        "merchants_guild", "city_guard", -200, "Tariff dispute", 2, factions
    )
    edge = _by_id(factions, "merchants_guild").relationship("city_guard")
    assert edge.score == -100
    assert edge.label == "hostile"
    assert [event.event_type for event in edge.history] == [
        "assistance_provided",
        "conflict_started",
    ]


def test_edges_are_directed(graph, factions) -> None:
    factions = graph.update_faction_relationship(
        "merchants_guild", "city_guard", -40, "Smuggling raid", 1, factions
    )

    assert _by_id(factions, "merchants_guild").relationship("city_guard").label == "rival"
    assert _by_id(factions, "city_guard").relationship("merchants_guild") is None


def test_history_is_capped(graph, factions, settings) -> None:
    for turn in range(settings.faction_history_limit + 5):
        factions = graph.update_faction_relationship(
            "scholars_circle", "city_guard", 1, "Favour", turn, factions
        )

    history = _by_id(factions, "scholars_circle").relationship("city_guard").history
    assert len(history) == settings.faction_history_limit
    assert history[-1].turn == settings.faction_history_limit + 4


def test_at_war_only_during_a_conflict(graph, factions) -> None:
    factions = graph.update_faction_relationship(
        "merchants_guild", "city_guard", -95, "Open hostility", 1, factions
    )
    assert _by_id(factions, "merchants_guild").relationship("city_guard").label == "hostile"

    factions, conflict = graph.create_faction_conflict(
        "merchants_guild", "city_guard", "trade_war", "Embargo", 2, factions
    )
    assert _by_id(factions, "merchants_guild").relationship("city_guard").label == "at_war"
    assert conflict.id == "conflict-merchants_guild-city_guard-2"
    assert conflict.causes == ("Embargo",)

    resolution = graph.resolve_faction_conflict(
        conflict.id, "Treaty signed", "mediator", [], factions, [conflict], turn=5
    )
    assert _by_id(resolution.factions, "merchants_guild").relationship("city_guard").label == "hostile"
    assert resolution.conflicts[0].resolved is True
    assert resolution.conflicts[0].player_involvement == "mediator"
    assert resolution.conflicts[0].resolved_turn == 5


def test_invalid_conflict_type_raises(graph, factions) -> None:
    with pytest.raises(ValueError):
        graph.create_faction_conflict("merchants_guild", "city_guard", "bake_off", "", 1, factions)


def test_resolution_shifts_power(graph, factions) -> None:
    factions, conflict = graph.create_faction_conflict(
        "merchants_guild", "city_guard", "territorial_dispute", "Harbor rights", 1, factions
    )
    effects = [
        FactionChange(faction_id="merchants_guild", power_shift=PowerShift.WEAKENED),
        FactionChange(faction_id="city_guard", description="The guard was strengthened"),
        FactionChange(faction_id="scholars_circle", description="unchanged"),
        WorldFactChange(fact="Harbor belongs to the guard"),
    ]

    resolution = graph.resolve_faction_conflict(
        conflict.id, "Guard victory", "ally", effects, factions, [conflict]
    )

    assert _by_id(resolution.factions, "merchants_guild").power_level == 65
    assert _by_id(resolution.factions, "city_guard").power_level == 90
    assert _by_id(resolution.factions, "scholars_circle").power_level == 60
    assert resolution.effects == (
        "Merchants Guild has been weakened by the conflict resolution",
        "City Guard has been strengthened by the conflict resolution",
    )


def test_power_stays_within_bounds(graph, factions) -> None:
    factions, conflict = graph.create_faction_conflict(
        "city_guard", "scholars_circle", "ideological_conflict", "Censorship", 1, factions
    )
    effects = [FactionChange(faction_id="city_guard", power_shift=PowerShift.STRENGTHENED)] * 3

    resolution = graph.resolve_faction_conflict(
        conflict.id, "Crackdown", "observer", effects, factions, [conflict]
    )

    assert _by_id(resolution.factions, "city_guard").power_level == 100


def test_unknown_conflict_raises(graph, factions) -> None:
    with pytest.raises(UnknownReferenceError):
        graph.resolve_faction_conflict("missing", "", "", [], factions, [])


def test_political_influence(factions) -> None:
    influence = FactionRelationshipGraph.calculate_political_influence(
        factions, {"merchants_guild": 50}
    )

    assert influence.dominant_faction == "city_guard"
    assert influence.stability == pytest.approx(100 - 26 / 131 * 100)
    assert influence.player_influence == pytest.approx(7.5)


def test_political_influence_without_factions() -> None:
    influence = FactionRelationshipGraph.calculate_political_influence([], {})

    assert (influence.dominant_faction, influence.stability, influence.player_influence) == ("", 100, 0)


def test_negative_standing_never_yields_negative_influence(factions) -> None:
    influence = FactionRelationshipGraph.calculate_political_influence(
        factions, {"merchants_guild": -100}
    )

    assert influence.player_influence == 0


def test_benefits_require_standing(factions) -> None:
    guild = _by_id(factions, "merchants_guild")
    hero = Character(name="Mira", level=5)

    benefits, effects = FactionRelationshipGraph.apply_faction_benefits(guild, 30, hero)
    assert benefits == ["Reduced prices on goods and services"]
    assert effects[0].stat == "price_multiplier"

    assert FactionRelationshipGraph.apply_faction_benefits(guild, 10, hero) == ([], [])


def test_level_gated_benefit(factions) -> None:
    scholars = _by_id(factions, "scholars_circle")

    novice, _ = FactionRelationshipGraph.apply_faction_benefits(scholars, 0, Character(name="A", level=1))
    veteran, _ = FactionRelationshipGraph.apply_faction_benefits(scholars, 0, Character(name="B", level=3))

    assert novice == []
    assert veteran == ["Access to extensive libraries and research materials"]


def test_consequences_trigger_below_threshold(graph, factions, make_state) -> None:
    guild = _by_id(factions, "merchants_guild")

    triggered, effects = graph.check_faction_consequences(guild, -60, make_state())
    assert [c.name for c in triggered] == ["Blacklisted by Traders"]
    assert effects[0].fact == "Blacklisted by the Merchants Guild"

    assert graph.check_faction_consequences(guild, -50, make_state()) == ([], [])


def test_economic_goal_offers_support_quest(factions, make_state, scripted_rng) -> None:
    guild = _by_id(factions, "merchants_guild")

    offer = FactionRelationshipGraph.generate_faction_quest(guild, 0, make_state(turn=3), scripted_rng())

    assert offer.category == "faction_support"
    assert offer.quest.id == "merchants_guild-expand_trade-3"
    assert offer.quest.rewards == {"experience": 100, "currency": 50}
    assert offer.consequences[0].effects[0].delta == 15


def test_defense_goal_offers_defense_quest(factions, make_state, scripted_rng) -> None:
    guard = _by_id(factions, "city_guard")

    offer = FactionRelationshipGraph.generate_faction_quest(guard, 0, make_state(), scripted_rng())

    assert offer.category == "faction_defense"
    assert offer.quest.rewards == {"experience": 150, "currency": 25}


def test_other_goal_types_offer_nothing(factions, make_state, scripted_rng) -> None:
    scholars = _by_id(factions, "scholars_circle")

    assert FactionRelationshipGraph.generate_faction_quest(scholars, 0, make_state(), scripted_rng()) is None


def test_goal_progress_is_clamped(factions) -> None:
    updated = FactionRelationshipGraph.update_faction_goal_progress(
        "merchants_guild", "expand_trade", 80, True, factions
    )
    assert _by_id(updated, "merchants_guild").goals[0].progress == 100

    updated = FactionRelationshipGraph.update_faction_goal_progress(
        "merchants_guild", "expand_trade", -80, False, factions
    )
    assert _by_id(updated, "merchants_guild").goals[0].progress == 0
    assert _by_id(factions, "merchants_guild").goals[0].progress == 45
