"""Score-to-label mappings for reputations and faction relationships."""

from __future__ import annotations

from typing import Tuple

# (lower bound, label) pairs, checked from the top down.
_STANDING_BANDS: Tuple[Tuple[float, str], ...] = (
    (75, "revered"),
    (25, "allied"),
    (0, "friendly"),
    (-25, "neutral"),
    (-75, "unfriendly"),
)

_RELATIONSHIP_BANDS: Tuple[Tuple[float, str], ...] = (
    (75, "allied"),
    (25, "friendly"),
    (-25, "neutral"),
    (-75, "rival"),
)

AT_WAR_THRESHOLD = -90


def standing_label(reputation: float) -> str:
    """Label a player's reputation with a faction."""

    for lower, label in _STANDING_BANDS:
        if reputation >= lower:
            return label
    return "hostile"


def relationship_label(score: float, *, active_conflict: bool = False) -> str:
    """Label one faction's view of another.

    Scores below ``AT_WAR_THRESHOLD`` read as ``at_war`` only while the two
    factions have an unresolved conflict; otherwise they stay ``hostile``.
    """

    for lower, label in _RELATIONSHIP_BANDS:
        if score >= lower:
            return label
    if active_conflict and score < AT_WAR_THRESHOLD:
        return "at_war"
    return "hostile"


__all__ = ["AT_WAR_THRESHOLD", "relationship_label", "standing_label"]
