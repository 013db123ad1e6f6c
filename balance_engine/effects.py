"""Tagged consequence effects.

Each effect kind is its own frozen dataclass carrying a typed payload.
``EffectType`` enumerates the kinds; handlers elsewhere are keyed on it so a
new kind without a handler is caught by the handler-table check.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from .models import Item


class EffectType(str, Enum):
    STAT_CHANGE = "stat_change"
    RELATIONSHIP_CHANGE = "relationship_change"
    FACTION_CHANGE = "faction_change"
    WORLD_FACT_CHANGE = "world_fact_change"
    QUEST_UNLOCK = "quest_unlock"
    QUEST_LOCK = "quest_lock"
    ITEM_GAIN = "item_gain"
    ITEM_LOSS = "item_loss"
    LOCATION_CHANGE = "location_change"
    NPC_STATE_CHANGE = "npc_state_change"


class FactOperation(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class PowerShift(str, Enum):
    WEAKENED = "weakened"
    STRENGTHENED = "strengthened"


class ConsequenceEffect:
    """Marker base for every effect variant."""

    effect_type: ClassVar[EffectType]
    description: str


@dataclass(frozen=True)
class StatChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.STAT_CHANGE
    stat: str
    delta: float
    description: str = ""


@dataclass(frozen=True)
class RelationshipChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.RELATIONSHIP_CHANGE
    npc_id: str
    delta: float
    npc_name: str = ""
    description: str = ""


@dataclass(frozen=True)
class FactionChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.FACTION_CHANGE
    faction_id: str
    delta: float = 0.0
    faction_name: str = ""
    power_shift: Optional[PowerShift] = None
    description: str = ""


@dataclass(frozen=True)
class WorldFactChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.WORLD_FACT_CHANGE
    fact: str
    operation: FactOperation = FactOperation.ADD
    description: str = ""


@dataclass(frozen=True)
class QuestUnlock(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.QUEST_UNLOCK
    quest_id: str
    description: str = ""


@dataclass(frozen=True)
class QuestLock(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.QUEST_LOCK
    quest_id: str
    description: str = ""


@dataclass(frozen=True)
class ItemGain(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.ITEM_GAIN
    item: Item
    description: str = ""


@dataclass(frozen=True)
class ItemLoss(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.ITEM_LOSS
    item_id: str
    description: str = ""


@dataclass(frozen=True)
class LocationChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.LOCATION_CHANGE
    location: str
    description: str = ""


@dataclass(frozen=True)
class NPCStateChange(ConsequenceEffect):
    effect_type: ClassVar[EffectType] = EffectType.NPC_STATE_CHANGE
    npc_id: str
    goal: str
    description: str = ""


class ConsequenceTiming(str, Enum):
    IMMEDIATE = "immediate"
    DELAYED = "delayed"
    CONDITIONAL = "conditional"


class Visibility(str, Enum):
    OBVIOUS = "obvious"
    HINTED = "hinted"
    HIDDEN = "hidden"


@dataclass(frozen=True)
class Consequence:
    """A declared outcome of a choice, made of one or more effects."""

    id: str
    description: str
    effects: Tuple[ConsequenceEffect, ...] = ()
    category: str = "general"
    severity: str = "moderate"
    timing: ConsequenceTiming = ConsequenceTiming.IMMEDIATE
    reversible: bool = True
    visibility: Visibility = Visibility.OBVIOUS


_EFFECT_CLASSES = {
    EffectType.STAT_CHANGE: StatChange,
    EffectType.RELATIONSHIP_CHANGE: RelationshipChange,
    EffectType.FACTION_CHANGE: FactionChange,
    EffectType.WORLD_FACT_CHANGE: WorldFactChange,
    EffectType.QUEST_UNLOCK: QuestUnlock,
    EffectType.QUEST_LOCK: QuestLock,
    EffectType.ITEM_GAIN: ItemGain,
    EffectType.ITEM_LOSS: ItemLoss,
    EffectType.LOCATION_CHANGE: LocationChange,
    EffectType.NPC_STATE_CHANGE: NPCStateChange,
}


def effect_from_dict(data: Dict[str, Any]) -> ConsequenceEffect:
    """Build an effect variant from a catalog mapping with a ``type`` key."""

    payload = dict(data)
    effect_type = EffectType(payload.pop("type"))
    if effect_type is EffectType.ITEM_GAIN:
        payload["item"] = Item(**payload["item"])
    elif effect_type is EffectType.WORLD_FACT_CHANGE and "operation" in payload:
        payload["operation"] = FactOperation(payload["operation"])
    elif effect_type is EffectType.FACTION_CHANGE and payload.get("power_shift"):
        payload["power_shift"] = PowerShift(payload["power_shift"])
    return _EFFECT_CLASSES[effect_type](**payload)


def consequence_from_dict(data: Dict[str, Any]) -> Consequence:
    return Consequence(
        id=data["id"],
        description=data.get("description", ""),
        effects=tuple(effect_from_dict(item) for item in data.get("effects", [])),
        category=data.get("category", "general"),
        severity=data.get("severity", "moderate"),
        timing=ConsequenceTiming(data.get("timing", "immediate")),
        reversible=bool(data.get("reversible", True)),
        visibility=Visibility(data.get("visibility", "obvious")),
    )


__all__ = [
    "Consequence",
    "ConsequenceEffect",
    "ConsequenceTiming",
    "EffectType",
    "FactOperation",
    "FactionChange",
    "ItemGain",
    "ItemLoss",
    "LocationChange",
    "NPCStateChange",
    "PowerShift",
    "QuestLock",
    "QuestUnlock",
    "RelationshipChange",
    "StatChange",
    "Visibility",
    "WorldFactChange",
    "consequence_from_dict",
    "effect_from_dict",
]
