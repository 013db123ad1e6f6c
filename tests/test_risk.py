"""Tests for risk assessment, reward scaling and trade-offs."""
from __future__ import annotations

import pytest

from balance_engine.config import Settings
from balance_engine.models import Character, Item, UnknownReferenceError
from balance_engine.risk import (
    Investment,
    Reward,
    RiskContext,
    RiskOutcome,
    RiskRewardEngine,
    TradeoffContext,
)


@pytest.fixture
def engine(settings, catalog) -> RiskRewardEngine:
    return RiskRewardEngine(settings, catalog)


def _context(**overrides) -> RiskContext:
    values = dict(current_health=100, resources=500, player_level=10, location="Town")
    values.update(overrides)
    return RiskContext(**values)


def test_fighting_alone_is_outnumbered(engine) -> None:
    assessment = engine.assess_action_risk("Attack the bandit camp", _context(allies=0))

    assert [factor.id for factor in assessment.factors] == ["combat_outnumbered"]
    assert assessment.risk_level == pytest.approx(75)
    assert assessment.mitigations == ("Better equipment", "Tactical positioning", "Allies")


def test_allies_remove_the_outnumbered_factor(engine) -> None:
    assert engine.assess_action_risk("Attack the camp", _context(allies=3)).risk_level == 0


def test_weak_poor_novice_compounds_and_caps(engine) -> None:
    assessment = engine.assess_action_risk(
        "fight the ogre", _context(current_health=40, resources=50, player_level=1)
    )

    assert assessment.risk_level == 100


def test_mitigations_are_deduplicated_in_order(engine) -> None:
    assessment = engine.assess_action_risk("explore the ruins", _context(time_constraints=2))

    assert [factor.id for factor in assessment.factors] == ["time_pressure", "exploration_unknown"]
    assert assessment.risk_level == pytest.approx(60)
    assert assessment.mitigations.count("Preparation") == 1
    assert assessment.mitigations[0] == "Preparation"


def test_unknown_location_counts_as_exploration(engine) -> None:
    assessment = engine.assess_action_risk("wait", _context(location="Unknown Depths"))

    assert [factor.id for factor in assessment.factors] == ["exploration_unknown"]


def test_reward_at_full_risk_gets_twenty_percent_bonus(engine) -> None:
    reward = engine.calculate_reward(Reward(experience=100), risk_level=100)

    assert reward.experience == 120
    assert reward.currency is None
    assert reward.items is None


def test_reward_axes_are_floored_independently(engine) -> None:
    reward = engine.calculate_reward(
        Reward(experience=10, currency=7, reputation=3), risk_level=50, difficulty_multiplier=1.2
    )
    # 1.1 for risk, 1.03 for difficulty
    assert reward.experience == 11
    assert reward.currency == 7
    assert reward.reputation == 3


def test_disabled_risk_reward_returns_base(catalog) -> None:
    engine = RiskRewardEngine(Settings(risk_reward_enabled=False), catalog)
    base = Reward(experience=100)

    assert engine.calculate_reward(base, risk_level=100) is base


def test_high_multiplier_can_grant_bonus_item(engine, scripted_rng) -> None:
    base = Reward(experience=100, items=[Item(id="gem", name="Gem")])

    lucky = engine.calculate_reward(base, 100, time_bonus=5, rng=scripted_rng(0.1))
    unlucky = engine.calculate_reward(base, 100, time_bonus=5, rng=scripted_rng(0.9))

    assert [item.id for item in lucky.items] == ["gem", "risk_bonus_item"]
    assert [item.id for item in unlucky.items] == ["gem"]
    assert [item.id for item in base.items] == ["gem"]


def test_available_tradeoffs_check_affordability_and_cooldown(engine) -> None:
    context = TradeoffContext(player_health=100, player_resources=50)

    available = [m.id for m in engine.get_available_tradeoffs(context)]
    assert available == ["power_at_a_price", "rush_job", "dangerous_shortcut"]

    cooling = [m.id for m in engine.get_available_tradeoffs(context, {"power_at_a_price": 3})]
    assert "power_at_a_price" not in cooling

    weak = TradeoffContext(player_health=12, player_resources=500)
    assert "power_at_a_price" not in [m.id for m in engine.get_available_tradeoffs(weak)]

    rushed = TradeoffContext(player_health=100, player_resources=500, time_constraints=1)
    assert [m.id for m in engine.get_available_tradeoffs(rushed)] == [
        "power_at_a_price",
        "rush_job",
        "high_risk_investment",
        "dangerous_shortcut",
    ]


def test_unknown_tradeoff_raises(engine, make_state, scripted_rng) -> None:
    with pytest.raises(UnknownReferenceError):
        engine.execute_tradeoff("deal_with_devil", make_state(), scripted_rng())

    with pytest.raises(ValueError):
        engine.tradeoff("deal_with_devil")


def test_health_tradeoff_costs_a_share_of_health(engine, make_state, scripted_rng) -> None:
    result = engine.execute_tradeoff("power_at_a_price", make_state(), scripted_rng())

    assert result.state.character.health == 75
    assert result.cooldown == 10
    assert result.effects == ["Lost 25 health", "Gained +50% damage for 5 turns"]


def test_health_never_drops_below_one(engine, make_state, scripted_rng) -> None:
    state = make_state(character=Character(name="Mira", health=1))

    result = engine.execute_tradeoff("power_at_a_price", state, scripted_rng())

    assert result.state.character.health == 1


def test_risk_for_reward_is_all_or_nothing(engine, make_state, scripted_rng) -> None:
    state = make_state(character=Character(name="Mira", currency=100))

    won = engine.execute_tradeoff("high_risk_investment", state, scripted_rng(0.4))
    lost = engine.execute_tradeoff("high_risk_investment", state, scripted_rng(0.6))

    assert won.state.character.currency == 300
    assert lost.state.character.currency == 0
    assert state.character.currency == 100


def test_investment_return(engine, scripted_rng) -> None:
    investment = Investment(amount=1000, kind="caravan", risk_level=30)

    success = engine.calculate_investment_return(investment, 5, scripted_rng(0.5))
    failure = engine.calculate_investment_return(investment, 5, scripted_rng(0.9))

    assert success.success is True
    assert success.base_return == pytest.approx(150)
    assert success.risk_adjusted_return == pytest.approx(195)
    assert failure.success is False
    assert failure.risk_adjusted_return == pytest.approx(-500)


def test_investment_time_multiplier_caps_at_double(engine, scripted_rng) -> None:
    outcome = engine.calculate_investment_return(
        Investment(amount=100, kind="bonds", risk_level=0), 50, scripted_rng(0.0)
    )

    assert outcome.base_return == pytest.approx(20)


def test_adjust_risk_tolerance() -> None:
    assert RiskRewardEngine.adjust_risk_tolerance(50, []) == 50
    assert RiskRewardEngine.adjust_risk_tolerance(
        50, [RiskOutcome(risk=80, success=True, satisfaction=90)]
    ) == pytest.approx(54)
    assert RiskRewardEngine.adjust_risk_tolerance(
        50, [RiskOutcome(risk=20, success=False, satisfaction=0)]
    ) == 50
    assert RiskRewardEngine.adjust_risk_tolerance(
        99, [RiskOutcome(risk=90, success=True, satisfaction=100)] * 3
    ) == 100
