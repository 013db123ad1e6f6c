"""Resource scarcity tracking and scarcity events."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .catalog import Catalog
from .config import Settings
from .models import StoryState
from .rng import DeterministicRNG

logger = logging.getLogger(__name__)


class TriggerType(str, Enum):
    RESOURCE_BELOW_THRESHOLD = "resource_below_threshold"
    LOCATION_BASED = "location_based"
    QUEST_BASED = "quest_based"
    TIME_BASED = "time_based"


class ScarcityEffectType(str, Enum):
    REDUCE_AVAILABILITY = "reduce_availability"
    INCREASE_COST = "increase_cost"
    REDUCE_QUALITY = "reduce_quality"
    ADD_RISK = "add_risk"


# Which effect kind feeds each modifier axis.
_AXIS_EFFECTS: Dict[str, ScarcityEffectType] = {
    "availability": ScarcityEffectType.REDUCE_AVAILABILITY,
    "cost": ScarcityEffectType.INCREASE_COST,
    "quality": ScarcityEffectType.REDUCE_QUALITY,
    "risk": ScarcityEffectType.ADD_RISK,
}


@dataclass(frozen=True)
class ResourceType:
    id: str
    name: str
    category: str
    base_scarcity: float
    critical_threshold: float
    renewal_rate: float


@dataclass(frozen=True)
class ScarcityTrigger:
    type: TriggerType
    resource_id: Optional[str] = None
    threshold: Optional[float] = None
    location: Optional[str] = None
    quest_id: Optional[str] = None


@dataclass(frozen=True)
class ScarcityEffect:
    resource_id: str
    effect_type: ScarcityEffectType
    magnitude: float
    description: str = ""


@dataclass(frozen=True)
class ScarcityEvent:
    id: str
    name: str
    description: str
    severity: str
    duration: int
    triggers: Tuple[ScarcityTrigger, ...] = ()
    effects: Tuple[ScarcityEffect, ...] = ()
    started_turn: int = 0


@dataclass(frozen=True)
class ResourceRequirement:
    type: str
    value: Any
    description: str = ""


@dataclass(frozen=True)
class ResourceRecoveryMechanic:
    id: str
    name: str
    description: str
    resource_id: str
    recovery_type: str
    recovery_rate: float
    cost: Optional[float] = None
    requirements: Tuple[ResourceRequirement, ...] = ()


def _resource_type(data: Dict[str, Any]) -> ResourceType:
    return ResourceType(
        id=data["id"],
        name=data["name"],
        category=data.get("category", ""),
        base_scarcity=float(data.get("base_scarcity", 0)),
        critical_threshold=float(data.get("critical_threshold", 0)),
        renewal_rate=float(data.get("renewal_rate", 0)),
    )


def _event_template(data: Dict[str, Any]) -> ScarcityEvent:
    triggers = tuple(
        ScarcityTrigger(
            type=TriggerType(item["type"]),
            resource_id=item.get("resource_id"),
            threshold=item.get("threshold"),
            location=item.get("location"),
            quest_id=item.get("quest_id"),
        )
        for item in data.get("triggers", [])
    )
    effects = tuple(
        ScarcityEffect(
            resource_id=item["resource_id"],
            effect_type=ScarcityEffectType(item["effect_type"]),
            magnitude=float(item["magnitude"]),
            description=item.get("description", ""),
        )
        for item in data.get("effects", [])
    )
    return ScarcityEvent(
        id=data["name"].lower().replace(" ", "_"),
        name=data["name"],
        description=data.get("description", ""),
        severity=data.get("severity", "minor"),
        duration=int(data.get("duration", 1)),
        triggers=triggers,
        effects=effects,
    )


def _recovery_mechanic(data: Dict[str, Any]) -> ResourceRecoveryMechanic:
    return ResourceRecoveryMechanic(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        resource_id=data["resource_id"],
        recovery_type=data.get("recovery_type", "action_based"),
        recovery_rate=float(data.get("recovery_rate", 0)),
        cost=data.get("cost"),
        requirements=tuple(
            ResourceRequirement(
                type=item["type"], value=item.get("value"), description=item.get("description", "")
            )
            for item in data.get("requirements", [])
        ),
    )


def _quantity(items: Iterable, predicate) -> int:
    return sum(max(0, item.quantity) for item in items if predicate(item))


class ScarcityManager:
    """Derives resource counts and manages scarcity event lifecycles.

    The manager is stateless between calls: the active event list belongs to
    the caller's world and is passed in and returned.
    """

    def __init__(self, settings: Settings | None = None, catalog: Catalog | None = None) -> None:
        self._settings = settings or Settings()
        catalog = catalog or Catalog()
        self._resource_types = [_resource_type(item) for item in catalog.resource_types()]
        self._templates = [_event_template(item) for item in catalog.scarcity_events()]
        self._recovery = [_recovery_mechanic(item) for item in catalog.resource_recovery()]

    @property
    def resource_types(self) -> List[ResourceType]:
        return list(self._resource_types)

    def resource_type(self, resource_id: str) -> Optional[ResourceType]:
        return next((r for r in self._resource_types if r.id == resource_id), None)

    # ------------------------------------------------------------------
    # Resource tracking
    # ------------------------------------------------------------------
    def get_resource_count(self, resource_id: str, state: StoryState) -> float:
        """Derive a live count for a tracked resource from the story state."""

        if resource_id == "health_potions":
            return _quantity(
                state.inventory,
                lambda item: "health" in item.name.lower() and "potion" in item.name.lower(),
            )
        if resource_id == "mana_potions":
            return _quantity(
                state.inventory,
                lambda item: "mana" in item.name.lower() and "potion" in item.name.lower(),
            )
        if resource_id == "currency":
            return state.character.currency
        if resource_id == "crafting_materials":
            return _quantity(
                state.inventory,
                lambda item: item.item_type == "material" or "material" in item.name.lower(),
            )
        if resource_id == "equipment_durability":
            equipped = [item for item in state.equipped.values() if item is not None]
            if not equipped:
                return 100.0
            percents = [
                item.durability.percent() if item.durability is not None else 100.0
                for item in equipped
            ]
            return sum(percents) / len(percents)
        return 0

    # ------------------------------------------------------------------
    # Event lifecycle
    # ------------------------------------------------------------------
    def _trigger_holds(
        self, trigger: ScarcityTrigger, state: StoryState, rng: DeterministicRNG
    ) -> bool:
        if trigger.type == TriggerType.RESOURCE_BELOW_THRESHOLD:
            if not trigger.resource_id or trigger.threshold is None:
                return False
            return self.get_resource_count(trigger.resource_id, state) < trigger.threshold
        if trigger.type == TriggerType.LOCATION_BASED:
            if not trigger.location:
                return False
            return trigger.location.lower() in state.current_location.lower()
        if trigger.type == TriggerType.QUEST_BASED:
            if not trigger.quest_id:
                return False
            return any(q.id == trigger.quest_id for q in state.active_quests())
        if trigger.type == TriggerType.TIME_BASED:
            return rng.chance(self._settings.time_trigger_chance)
        return False

    def check_for_scarcity_events(
        self,
        state: StoryState,
        active_events: Sequence[ScarcityEvent],
        rng: DeterministicRNG,
    ) -> List[ScarcityEvent]:
        """Return templates whose triggers all hold and that are not yet active."""

        if not self._settings.scarcity_enabled:
            return []
        active_names = {event.name for event in active_events}
        triggered: List[ScarcityEvent] = []
        for template in self._templates:
            if template.name in active_names:
                continue
            if all(self._trigger_holds(trigger, state, rng) for trigger in template.triggers):
                triggered.append(
                    replace(template, id=f"{template.id}-{state.turn}", started_turn=state.turn)
                )
        return triggered

    def trigger_scarcity_events(
        self,
        state: StoryState,
        active_events: Sequence[ScarcityEvent],
        rng: DeterministicRNG,
    ) -> List[ScarcityEvent]:
        """Merge newly triggered events into the active list."""

        new_events = self.check_for_scarcity_events(state, active_events, rng)
        for event in new_events:
            logger.info(
                "Scarcity event %s triggered for %d turns", event.name, event.duration
            )
        return list(active_events) + new_events

    def update_active_events(
        self, active_events: Sequence[ScarcityEvent], turns_passed: int = 1
    ) -> List[ScarcityEvent]:
        remaining: List[ScarcityEvent] = []
        for event in active_events:
            aged = replace(event, duration=event.duration - turns_passed)
            if aged.duration > 0:
                remaining.append(aged)
            else:
                logger.info("Scarcity event %s expired", event.name)
        return remaining

    # ------------------------------------------------------------------
    # Modifiers
    # ------------------------------------------------------------------
    def apply_scarcity_effects(
        self,
        base: float,
        resource_id: str,
        axis: str,
        active_events: Sequence[ScarcityEvent],
    ) -> float:
        wanted = _AXIS_EFFECTS.get(axis)
        modifier = 1.0
        for event in active_events:
            for effect in event.effects:
                if effect.resource_id == resource_id and effect.effect_type == wanted:
                    modifier *= effect.magnitude
        resource = self.resource_type(resource_id)
        if resource is not None:
            modifier *= 1 - resource.base_scarcity * self._settings.scarcity_level / 10000
        return base * modifier

    def get_resource_warnings(self, state: StoryState) -> List[str]:
        warnings: List[str] = []
        for resource in self._resource_types:
            count = self.get_resource_count(resource.id, state)
            if count <= resource.critical_threshold:
                warnings.append(
                    f"Warning: {resource.name} is running low ({count:g} remaining)"
                )
        return warnings

    # ------------------------------------------------------------------
    # Recovery and renewal
    # ------------------------------------------------------------------
    def _can_use(self, mechanic: ResourceRecoveryMechanic, state: StoryState) -> bool:
        for requirement in mechanic.requirements:
            if requirement.type == "resource":
                if self.get_resource_count(str(requirement.value), state) <= 0:
                    return False
            elif requirement.type == "location":
                if str(requirement.value).lower() not in state.current_location.lower():
                    return False
        return True

    def get_available_recovery_mechanics(
        self, resource_id: str, state: StoryState
    ) -> List[ResourceRecoveryMechanic]:
        return [
            mechanic
            for mechanic in self._recovery
            if mechanic.resource_id == resource_id and self._can_use(mechanic, state)
        ]

    def roll_renewals(
        self, active_events: Sequence[ScarcityEvent], rng: DeterministicRNG
    ) -> List[str]:
        """Return the ids of resources that naturally replenish this turn."""

        renewed: List[str] = []
        for resource in self._resource_types:
            if resource.renewal_rate <= 0:
                continue
            chance = resource.renewal_rate * self.apply_scarcity_effects(
                1.0, resource.id, "availability", active_events
            )
            if rng.chance(chance):
                renewed.append(resource.id)
        return renewed


__all__ = [
    "ResourceRecoveryMechanic",
    "ResourceRequirement",
    "ResourceType",
    "ScarcityEffect",
    "ScarcityEffectType",
    "ScarcityEvent",
    "ScarcityManager",
    "ScarcityTrigger",
    "TriggerType",
]
