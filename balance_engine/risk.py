"""Risk assessment, reward scaling, trade-offs and investments."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalog import Catalog
from .config import Settings
from .models import Item, StoryState, UnknownReferenceError, clamp
from .rng import DeterministicRNG

logger = logging.getLogger(__name__)

_COMBAT_WORDS = ("fight", "attack", "combat")
_SPEND_WORDS = ("invest", "spend", "trade")
_DECEIT_WORDS = ("betray", "lie", "deceive")
_EXPLORE_WORDS = ("explore", "venture")


@dataclass(frozen=True)
class RiskFactor:
    id: str
    name: str
    description: str
    category: str
    risk_level: float
    consequences: Tuple[str, ...] = ()
    mitigations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RiskContext:
    current_health: float
    resources: float
    player_level: int
    location: str = ""
    time_constraints: Optional[int] = None
    allies: Optional[int] = None


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: float
    factors: Tuple[RiskFactor, ...] = ()
    mitigations: Tuple[str, ...] = ()


@dataclass
class Reward:
    experience: Optional[int] = None
    currency: Optional[int] = None
    reputation: Optional[int] = None
    items: Optional[List[Item]] = None


@dataclass(frozen=True)
class TradeoffCost:
    type: str
    amount: float
    description: str = ""


@dataclass(frozen=True)
class TradeoffBenefit:
    type: str
    amount: float
    description: str = ""
    duration: Optional[int] = None


@dataclass(frozen=True)
class TradeoffMechanic:
    id: str
    name: str
    description: str
    tradeoff_type: str
    cost: TradeoffCost
    benefit: TradeoffBenefit
    cooldown: int = 0
    limitations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TradeoffContext:
    player_health: float
    player_resources: float
    current_situation: str = ""
    time_constraints: Optional[int] = None


@dataclass
class TradeoffResult:
    tradeoff: TradeoffMechanic
    state: StoryState
    effects: List[str] = field(default_factory=list)
    message: str = ""
    cooldown: int = 0


@dataclass(frozen=True)
class Investment:
    amount: float
    kind: str
    risk_level: float


@dataclass(frozen=True)
class InvestmentOutcome:
    base_return: float
    risk_adjusted_return: float
    success: bool
    message: str


@dataclass(frozen=True)
class RiskOutcome:
    risk: float
    success: bool
    satisfaction: float


def _risk_factor(data: Dict[str, Any]) -> RiskFactor:
    return RiskFactor(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        category=data.get("category", ""),
        risk_level=clamp(float(data.get("risk_level", 0)), 0, 100),
        consequences=tuple(data.get("consequences", [])),
        mitigations=tuple(data.get("mitigations", [])),
    )


def _tradeoff(data: Dict[str, Any]) -> TradeoffMechanic:
    cost = data["cost"]
    benefit = data["benefit"]
    return TradeoffMechanic(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        tradeoff_type=data["tradeoff_type"],
        cost=TradeoffCost(
            type=cost["type"], amount=float(cost["amount"]), description=cost.get("description", "")
        ),
        benefit=TradeoffBenefit(
            type=benefit["type"],
            amount=float(benefit["amount"]),
            description=benefit.get("description", ""),
            duration=benefit.get("duration"),
        ),
        cooldown=int(data.get("cooldown", 0)),
        limitations=tuple(data.get("limitations", [])),
    )


def _mentions(text: str, words: Sequence[str]) -> bool:
    return any(word in text for word in words)


class RiskRewardEngine:
    """Evaluates risky actions and scales their rewards."""

    def __init__(self, settings: Settings | None = None, catalog: Catalog | None = None) -> None:
        self._settings = settings or Settings()
        catalog = catalog or Catalog()
        self._factors = {item["id"]: _risk_factor(item) for item in catalog.risk_factors()}
        self._tradeoffs = [_tradeoff(item) for item in catalog.tradeoffs()]

    @property
    def tradeoffs(self) -> List[TradeoffMechanic]:
        return list(self._tradeoffs)

    def tradeoff(self, tradeoff_id: str) -> TradeoffMechanic:
        for mechanic in self._tradeoffs:
            if mechanic.id == tradeoff_id:
                return mechanic
        raise UnknownReferenceError(f"Unknown trade-off: {tradeoff_id}")

    # ------------------------------------------------------------------
    # Risk assessment
    # ------------------------------------------------------------------
    def assess_action_risk(self, action_text: str, context: RiskContext) -> RiskAssessment:
        action = action_text.lower()
        matched: List[str] = []
        if _mentions(action, _COMBAT_WORDS) and (context.allies or 0) < 2:
            matched.append("combat_outnumbered")
        if _mentions(action, _SPEND_WORDS) and context.resources < 200:
            matched.append("resource_investment")
        if context.time_constraints is not None and 0 < context.time_constraints < 3:
            matched.append("time_pressure")
        if _mentions(action, _DECEIT_WORDS):
            matched.append("social_reputation")
        if _mentions(action, _EXPLORE_WORDS) or "unknown" in context.location.lower():
            matched.append("exploration_unknown")

        factors = tuple(self._factors[factor_id] for factor_id in matched if factor_id in self._factors)
        if not factors:
            return RiskAssessment(risk_level=0.0)

        risk = sum(factor.risk_level for factor in factors) / len(factors)
        if context.current_health < 50:
            risk *= 1.3
        if context.resources < 100:
            risk *= 1.2
        if context.player_level < 5:
            risk *= 1.1

        mitigations: List[str] = []
        for factor in factors:
            for mitigation in factor.mitigations:
                if mitigation not in mitigations:
                    mitigations.append(mitigation)
        return RiskAssessment(
            risk_level=min(100.0, risk), factors=factors, mitigations=tuple(mitigations)
        )

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------
    def reward_multiplier(
        self, risk_level: float, difficulty_multiplier: float = 1.0, time_bonus: float = 0.0
    ) -> float:
        scaling = self._settings.reward_scaling
        risk_bonus = 1 + clamp(risk_level, 0, 100) / 100 * scaling.risk_bonus_multiplier
        difficulty_bonus = 1 + (difficulty_multiplier - 1) * scaling.difficulty_bonus_multiplier
        time_factor = 1 + time_bonus * scaling.time_constraint_bonus_multiplier
        return scaling.base_multiplier * risk_bonus * difficulty_bonus * time_factor

    def calculate_reward(
        self,
        base: Reward,
        risk_level: float,
        difficulty_multiplier: float = 1.0,
        time_bonus: float = 0.0,
        rng: DeterministicRNG | None = None,
    ) -> Reward:
        """Scale every reward axis present in ``base`` by the compound multiplier."""

        if not self._settings.risk_reward_enabled:
            return base

        multiplier = self.reward_multiplier(risk_level, difficulty_multiplier, time_bonus)

        def scale(value: Optional[int]) -> Optional[int]:
            return None if value is None else math.floor(value * multiplier)

        items = None
        if base.items is not None:
            items = list(base.items)
            if multiplier > 1.5 and rng is not None and rng.chance((multiplier - 1) * 0.3):
                items.append(
                    Item(
                        id="risk_bonus_item",
                        name="Risk Bonus Item",
                        base_price=math.floor(50 * multiplier),
                    )
                )
                logger.info("Bonus item granted at reward multiplier %.2f", multiplier)
        return Reward(
            experience=scale(base.experience),
            currency=scale(base.currency),
            reputation=scale(base.reputation),
            items=items,
        )

    # ------------------------------------------------------------------
    # Trade-offs
    # ------------------------------------------------------------------
    def _affordable(self, mechanic: TradeoffMechanic, context: TradeoffContext) -> bool:
        cost = mechanic.cost
        if cost.type == "health":
            health_cost = cost.amount / 100 * context.player_health
            return context.player_health > health_cost + 10
        if cost.type == "resource":
            return context.player_resources >= cost.amount
        if cost.type == "time":
            return context.time_constraints is None or context.time_constraints > 1
        return True

    def get_available_tradeoffs(
        self, context: TradeoffContext, cooldowns: Mapping[str, int] | None = None
    ) -> List[TradeoffMechanic]:
        cooldowns = cooldowns or {}
        return [
            mechanic
            for mechanic in self._tradeoffs
            if cooldowns.get(mechanic.id, 0) <= 0 and self._affordable(mechanic, context)
        ]

    def execute_tradeoff(
        self, tradeoff_id: str, state: StoryState, rng: DeterministicRNG
    ) -> TradeoffResult:
        """Pay a trade-off's cost and resolve its benefit.

        Health never drops below 1 and resources never below 0. A
        ``risk_for_reward`` trade-off pays out in full or not at all on a
        single coin flip.
        """

        mechanic = self.tradeoff(tradeoff_id)
        character = state.character
        health = character.health
        currency = character.currency
        effects: List[str] = []

        if mechanic.cost.type == "health":
            loss = mechanic.cost.amount / 100 * health
            health = max(1, health - loss)
            effects.append(f"Lost {math.floor(loss)} health")
        elif mechanic.cost.type == "resource":
            currency = max(0, currency - int(mechanic.cost.amount))
            effects.append(f"Spent {mechanic.cost.amount:g} resources")

        benefit = mechanic.benefit
        if benefit.type == "stat_boost":
            effects.append(f"Gained {benefit.description}")
        elif benefit.type == "resource_gain":
            if mechanic.tradeoff_type == "risk_for_reward":
                if rng.chance(0.5):
                    currency += int(benefit.amount)
                    effects.append(f"Investment succeeded! Gained {benefit.amount:g} resources")
                else:
                    effects.append("Investment failed - resources lost")
            else:
                currency += int(benefit.amount)
                effects.append(f"Gained {benefit.amount:g} resources")
        elif benefit.type == "advantage":
            effects.append(f"Gained advantage: {benefit.description}")

        new_state = replace(state, character=replace(character, health=health, currency=currency))
        logger.info("Trade-off %s executed: %s", mechanic.id, "; ".join(effects))
        return TradeoffResult(
            tradeoff=mechanic,
            state=new_state,
            effects=effects,
            message=f"{mechanic.name}: {', '.join(effects)}",
            cooldown=mechanic.cooldown,
        )

    # ------------------------------------------------------------------
    # Investments and tolerance
    # ------------------------------------------------------------------
    def calculate_investment_return(
        self, investment: Investment, time_elapsed: int, rng: DeterministicRNG
    ) -> InvestmentOutcome:
        risk = clamp(investment.risk_level, 0, 100)
        time_multiplier = min(2.0, 1 + time_elapsed * 0.1)
        base_return = investment.amount * 0.1 * time_multiplier
        risk_adjusted = base_return * (1 + risk / 100)
        success_chance = max(0.2, 1 - risk / 150)
        success = rng.chance(success_chance)
        if success:
            return InvestmentOutcome(
                base_return=base_return,
                risk_adjusted_return=risk_adjusted,
                success=True,
                message=f"Investment in {investment.kind} paid off!",
            )
        return InvestmentOutcome(
            base_return=base_return,
            risk_adjusted_return=-investment.amount * 0.5,
            success=False,
            message=f"Investment in {investment.kind} failed",
        )

    @staticmethod
    def adjust_risk_tolerance(current: float, outcomes: Sequence[RiskOutcome]) -> float:
        if not outcomes:
            return current
        risky = [outcome.satisfaction for outcome in outcomes if outcome.risk > 50]
        satisfaction = sum(risky) / len(risky) if risky else 50.0
        return clamp(current + (satisfaction - 50) * 0.1, 0, 100)


__all__ = [
    "Investment",
    "InvestmentOutcome",
    "Reward",
    "RiskAssessment",
    "RiskContext",
    "RiskFactor",
    "RiskOutcome",
    "RiskRewardEngine",
    "TradeoffBenefit",
    "TradeoffContext",
    "TradeoffCost",
    "TradeoffMechanic",
    "TradeoffResult",
]
