"""Choice recording, consequence manifestation and moral alignment."""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import Settings
from .effects import (
    Consequence,
    ConsequenceEffect,
    EffectType,
    FactionChange,
    FactOperation,
    ItemGain,
    ItemLoss,
    LocationChange,
    NPCStateChange,
    QuestLock,
    QuestUnlock,
    RelationshipChange,
    StatChange,
    Visibility,
    WorldFactChange,
)
from .models import (
    Alignment,
    ChoiceAlternative,
    ChoiceConsequenceTracking,
    ChoiceContext,
    FactionStanding,
    MoralAlignmentEvent,
    MoralProfile,
    MoralTag,
    NPCRelationship,
    PlayerChoice,
    QuestStatus,
    RelationshipEvent,
    ReputationEvent,
    StoryState,
    clamp,
)
from .services.standings import standing_label

logger = logging.getLogger(__name__)

_GOOD_WORDS = ("help", "save", "protect", "heal", "donate", "forgive", "mercy")
_EVIL_WORDS = ("kill", "destroy", "steal", "betray", "torture", "abandon", "lie")
_COMPLEX_WORDS = ("sacrifice", "compromise", "necessary evil", "greater good")
_DILEMMA_WORDS = ("sacrifice", "betray", "choose between", "difficult decision")

_AWARENESS = {
    Visibility.OBVIOUS: "fully_aware",
    Visibility.HINTED: "partially_aware",
    Visibility.HIDDEN: "unaware",
}

# One step along the good-evil axis; the law-chaos axis is preserved.
_TOWARD_GOOD: Dict[Alignment, Alignment] = {
    Alignment.LAWFUL_EVIL: Alignment.LAWFUL_NEUTRAL,
    Alignment.NEUTRAL_EVIL: Alignment.TRUE_NEUTRAL,
    Alignment.CHAOTIC_EVIL: Alignment.CHAOTIC_NEUTRAL,
    Alignment.LAWFUL_NEUTRAL: Alignment.LAWFUL_GOOD,
    Alignment.TRUE_NEUTRAL: Alignment.NEUTRAL_GOOD,
    Alignment.CHAOTIC_NEUTRAL: Alignment.CHAOTIC_GOOD,
}
_TOWARD_EVIL: Dict[Alignment, Alignment] = {after: before for before, after in _TOWARD_GOOD.items()}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def new_relationship(npc_id: str, npc_name: str = "") -> NPCRelationship:
    return NPCRelationship(npc_id=npc_id, npc_name=npc_name or npc_id)


def new_standing(faction_id: str, faction_name: str = "") -> FactionStanding:
    return FactionStanding(
        faction_id=faction_id,
        faction_name=faction_name or faction_id,
        reputation=0,
        standing_level=standing_label(0),
    )


def initial_moral_profile() -> MoralProfile:
    return MoralProfile()


# ---------------------------------------------------------------------------
# Choice analysis
# ---------------------------------------------------------------------------
def determine_moral_tag(text: str) -> MoralTag:
    lowered = text.lower()
    good = any(word in lowered for word in _GOOD_WORDS)
    evil = any(word in lowered for word in _EVIL_WORDS)
    complex_choice = any(word in lowered for word in _COMPLEX_WORDS)
    if complex_choice or (good and evil):
        return MoralTag.COMPLEX
    if good:
        return MoralTag.GOOD
    if evil:
        return MoralTag.EVIL
    return MoralTag.NEUTRAL


def calculate_pressure(state: StoryState) -> float:
    pressure = 0.0
    if state.character.health < state.character.max_health * 0.3:
        pressure += 30
    pressure += state.stress_level
    pressure += 10 * sum(1 for quest in state.active_quests() if quest.time_limit)
    return min(100.0, pressure)


def choice_difficulty(text: str, alternatives: Sequence[str]) -> int:
    difficulty = min(10, len(alternatives))
    if any(word in text.lower() for word in _DILEMMA_WORDS):
        difficulty += 3
    return min(10, difficulty)


def alignment_shift(choice: PlayerChoice) -> int:
    base = {MoralTag.GOOD: 2, MoralTag.EVIL: -2}.get(choice.moral_tag, 0)
    # Half-up rounding, so -0.5 rounds to 0 and 0.5 rounds to 1.
    return int(math.floor(base * choice.difficulty_level / 10 + 0.5))


def next_alignment(current: Alignment, shift: int) -> Alignment:
    if shift > 0:
        return _TOWARD_GOOD.get(current, current)
    if shift < 0:
        return _TOWARD_EVIL.get(current, current)
    return current


def consistency_score(history: Sequence[MoralAlignmentEvent]) -> float:
    if len(history) < 2:
        return 100.0
    changes = sum(
        1 for event in list(history)[-10:] if event.previous_alignment != event.new_alignment
    )
    return max(0.0, 100.0 - changes * 10)


def _lock_key(effect: ConsequenceEffect) -> Optional[str]:
    if isinstance(effect, WorldFactChange):
        return f"fact:{effect.fact}"
    if isinstance(effect, (QuestUnlock, QuestLock)):
        return f"quest:{effect.quest_id}"
    if isinstance(effect, ItemGain):
        return f"item:{effect.item.id}"
    if isinstance(effect, ItemLoss):
        return f"item:{effect.item_id}"
    return None


class ConsequencePropagator:
    """Applies declared consequences to a story state.

    Every effect kind has a handler in ``_handlers``; each handler returns
    the updated state and a human-readable line describing what changed.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()
        self._handlers: Dict[
            EffectType, Callable[[Any, StoryState, int], Tuple[StoryState, str]]
        ] = {
            EffectType.STAT_CHANGE: self._apply_stat,
            EffectType.RELATIONSHIP_CHANGE: self._apply_relationship,
            EffectType.FACTION_CHANGE: self._apply_faction,
            EffectType.WORLD_FACT_CHANGE: self._apply_world_fact,
            EffectType.QUEST_UNLOCK: self._apply_quest_unlock,
            EffectType.QUEST_LOCK: self._apply_quest_lock,
            EffectType.ITEM_GAIN: self._apply_item_gain,
            EffectType.ITEM_LOSS: self._apply_item_loss,
            EffectType.LOCATION_CHANGE: self._apply_location,
            EffectType.NPC_STATE_CHANGE: self._apply_npc_state,
        }
        missing = set(EffectType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for effect types: {sorted(m.value for m in missing)}")

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------
    def record_player_choice(
        self,
        text: str,
        description: str,
        alternatives: Sequence[str],
        context: Mapping[str, Any] | None,
        turn: int,
        state: StoryState,
        quest_id: Optional[str] = None,
        moral_tag: Optional[MoralTag] = None,
    ) -> PlayerChoice:
        """Build a choice record with a snapshot of the surrounding situation."""

        snapshot = ChoiceContext(
            location=state.current_location,
            npcs_present=tuple(npc.id for npc in state.tracked_npcs),
            time_of_day=state.time_of_day,
            stress_level=state.stress_level,
            available_resources=tuple(item.name for item in state.inventory),
            known_information=tuple(state.world_facts),
            pressure_level=calculate_pressure(state),
            extra=dict(context or {}),
        )
        choice_id = f"choice-{turn}-{len(state.player_choices) + 1}"
        choice = PlayerChoice(
            id=choice_id,
            turn=turn,
            choice_text=text,
            choice_description=description,
            context=snapshot,
            alternatives=[
                ChoiceAlternative(id=f"{choice_id}-alt-{index}", text=alt)
                for index, alt in enumerate(alternatives, start=1)
            ],
            moral_tag=moral_tag or determine_moral_tag(text),
            difficulty_level=choice_difficulty(text, alternatives),
            quest_id=quest_id,
        )
        logger.debug("Recorded choice %s tagged %s", choice.id, choice.moral_tag.value)
        return choice

    # ------------------------------------------------------------------
    # Consequences
    # ------------------------------------------------------------------
    def manifest_consequence(
        self,
        consequence: Consequence,
        choice: Optional[PlayerChoice],
        turn: int,
        state: StoryState,
    ) -> Tuple[StoryState, List[str]]:
        """Apply every effect of ``consequence`` and track it on ``choice``.

        Consequences with no originating choice, such as quest failures, pass
        ``None`` and are applied without tracking.

        Effects touching a locked target are skipped. An irreversible
        consequence locks the targets it touched once all its effects apply.
        """

        descriptions: List[str] = []
        touched: List[str] = []
        for effect in consequence.effects:
            key = _lock_key(effect)
            if key is not None and key in state.locked_targets:
                logger.warning(
                    "Skipping %s on locked target %s", effect.effect_type.value, key
                )
                continue
            state, line = self._handlers[effect.effect_type](effect, state, turn)
            descriptions.append(line)
            if key is not None:
                touched.append(key)

        if not consequence.reversible and touched:
            state = replace(state, locked_targets=state.locked_targets | frozenset(touched))

        if choice is None:
            return state, descriptions
        tracking = ChoiceConsequenceTracking(
            consequence_id=consequence.id,
            manifested_turn=turn,
            description=consequence.description,
            severity=consequence.severity,
            category=consequence.category,
            player_awareness=_AWARENESS[consequence.visibility],
            ongoing_effects=tuple(descriptions),
            reversible=consequence.reversible,
        )
        choices = [
            replace(recorded, consequences=recorded.consequences + [tracking])
            if recorded.id == choice.id
            else recorded
            for recorded in state.player_choices
        ]
        return replace(state, player_choices=choices), descriptions

    def _apply_stat(self, effect: StatChange, state: StoryState, turn: int) -> Tuple[StoryState, str]:
        character = state.character
        if effect.stat == "health":
            character = replace(
                character, health=clamp(character.health + effect.delta, 0, character.max_health)
            )
        elif effect.stat == "mana":
            character = replace(
                character, mana=clamp(character.mana + effect.delta, 0, character.max_mana)
            )
        elif effect.stat == "experience":
            character = replace(character, experience=character.experience + int(effect.delta))
        elif effect.stat == "currency":
            character = replace(character, currency=max(0, character.currency + int(effect.delta)))
        elif effect.stat == "level":
            character = replace(character, level=max(1, character.level + int(effect.delta)))
        else:
            attributes = dict(character.attributes)
            attributes[effect.stat] = attributes.get(effect.stat, 0) + effect.delta
            character = replace(character, attributes=attributes)
        return replace(state, character=character), f"Player {effect.description}"

    def _apply_relationship(
        self, effect: RelationshipChange, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        relationships = list(state.npc_relationships)
        index = next(
            (i for i, rel in enumerate(relationships) if rel.npc_id == effect.npc_id), None
        )
        if index is None:
            npc = next((n for n in state.tracked_npcs if n.id == effect.npc_id), None)
            name = effect.npc_name or (npc.name if npc else "")
            relationships.append(new_relationship(effect.npc_id, name))
            index = len(relationships) - 1

        current = relationships[index]
        impact = "positive" if effect.delta > 0 else "negative" if effect.delta < 0 else "neutral"
        event = RelationshipEvent(
            turn=turn,
            interaction_type="consequence",
            change=effect.delta,
            emotional_impact=impact,
            description=effect.description,
        )
        limit = self._settings.relationship_history_limit
        relationships[index] = replace(
            current,
            score=clamp(current.score + effect.delta, -100, 100),
            last_interaction_turn=turn,
            history=(current.history + [event])[-limit:],
        )
        return replace(state, npc_relationships=relationships), f"Relationship {effect.description}"

    def _apply_faction(
        self, effect: FactionChange, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        standings = list(state.faction_standings)
        index = next(
            (i for i, s in enumerate(standings) if s.faction_id == effect.faction_id), None
        )
        if index is None:
            standings.append(new_standing(effect.faction_id, effect.faction_name))
            index = len(standings) - 1

        current = standings[index]
        reputation = clamp(current.reputation + effect.delta, -100, 100)
        label = standing_label(reputation)
        event = ReputationEvent(
            turn=turn, action=effect.description, change=effect.delta, standing_level=label
        )
        limit = self._settings.standing_history_limit
        standings[index] = replace(
            current,
            reputation=reputation,
            standing_level=label,
            history=(current.history + [event])[-limit:],
        )
        return replace(state, faction_standings=standings), f"Faction standing {effect.description}"

    def _apply_world_fact(
        self, effect: WorldFactChange, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        facts = list(state.world_facts)
        if effect.operation == FactOperation.ADD:
            if effect.fact not in facts:
                facts.append(effect.fact)
        else:
            index = next((i for i, fact in enumerate(facts) if effect.fact in fact), None)
            if index is not None:
                del facts[index]
        return replace(state, world_facts=facts), f"World state {effect.description or effect.fact}"

    def _set_quest_status(
        self, state: StoryState, quest_id: str, status: QuestStatus, turn: int
    ) -> StoryState:
        quests = [
            replace(quest, status=status, updated_turn=turn) if quest.id == quest_id else quest
            for quest in state.quests
        ]
        return replace(state, quests=quests)

    def _apply_quest_unlock(
        self, effect: QuestUnlock, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        quest = state.quest(effect.quest_id)
        if quest is not None and quest.status == QuestStatus.FAILED:
            state = self._set_quest_status(state, quest.id, QuestStatus.NOT_STARTED, turn)
        return state, f"New quest available: {effect.description or effect.quest_id}"

    def _apply_quest_lock(
        self, effect: QuestLock, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        state = self._set_quest_status(state, effect.quest_id, QuestStatus.FAILED, turn)
        return state, f"Quest no longer available: {effect.description or effect.quest_id}"

    def _apply_item_gain(
        self, effect: ItemGain, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        inventory = list(state.inventory)
        index = next((i for i, item in enumerate(inventory) if item.id == effect.item.id), None)
        if index is None:
            inventory.append(replace(effect.item))
        else:
            held = inventory[index]
            inventory[index] = replace(held, quantity=held.quantity + effect.item.quantity)
        return replace(state, inventory=inventory), f"Gained item: {effect.description or effect.item.name}"

    def _apply_item_loss(
        self, effect: ItemLoss, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        inventory = [item for item in state.inventory if item.id != effect.item_id]
        equipped = {
            slot: (None if item is not None and item.id == effect.item_id else item)
            for slot, item in state.equipped.items()
        }
        return (
            replace(state, inventory=inventory, equipped=equipped),
            f"Lost item: {effect.description or effect.item_id}",
        )

    def _apply_location(
        self, effect: LocationChange, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        visited = list(state.visited_locations)
        if effect.location not in visited:
            visited.append(effect.location)
        return (
            replace(state, current_location=effect.location, visited_locations=visited),
            f"Location changed: {effect.description or effect.location}",
        )

    def _apply_npc_state(
        self, effect: NPCStateChange, state: StoryState, turn: int
    ) -> Tuple[StoryState, str]:
        npcs = [
            replace(npc, short_term_goal=effect.goal, updated_turn=turn)
            if npc.id == effect.npc_id
            else npc
            for npc in state.tracked_npcs
        ]
        return replace(state, tracked_npcs=npcs), f"NPC state changed: {effect.description or effect.goal}"

    # ------------------------------------------------------------------
    # Morality
    # ------------------------------------------------------------------
    def update_moral_profile(self, choice: PlayerChoice, state: StoryState) -> MoralProfile:
        profile = state.moral_profile or initial_moral_profile()
        shift = alignment_shift(choice)
        event = MoralAlignmentEvent(
            turn=choice.turn,
            choice_id=choice.id,
            previous_alignment=profile.alignment,
            new_alignment=next_alignment(profile.alignment, shift),
            alignment_shift=shift,
            triggering_action=choice.choice_text,
            moral_weight="major" if choice.moral_tag == MoralTag.COMPLEX else "moderate",
        )
        full_history = profile.history + [event]
        if event.new_alignment != event.previous_alignment:
            logger.info(
                "Alignment moved from %s to %s",
                event.previous_alignment.value,
                event.new_alignment.value,
            )
        return MoralProfile(
            alignment=event.new_alignment,
            history=full_history[-self._settings.moral_history_limit:],
            consistency_score=consistency_score(full_history),
        )


__all__ = [
    "ConsequencePropagator",
    "alignment_shift",
    "calculate_pressure",
    "choice_difficulty",
    "consistency_score",
    "determine_moral_tag",
    "initial_moral_profile",
    "new_relationship",
    "new_standing",
    "next_alignment",
]
