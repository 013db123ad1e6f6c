"""Alternative approaches offered after a failed objective."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class AlternativePath:
    path: str
    description: str
    requirements: Tuple[str, ...]
    difficulty: str
    tradeoffs: Tuple[str, ...]
    objective: str = ""


def generate_alternative_paths(objective: str, reason: str) -> List[AlternativePath]:
    """Suggest other routes to ``objective`` based on why the first attempt failed.

    Reasons mentioning combat offer diplomatic and stealth routes; reasons
    mentioning resources offer substitution and collaboration. Other reasons
    yield no suggestions.
    """

    reason_lower = reason.lower()
    paths: List[AlternativePath] = []
    if "combat" in reason_lower:
        paths.append(
            AlternativePath(
                path="Diplomatic Solution",
                description="Negotiate instead of fighting",
                requirements=("Good social skills", "Understanding of opponent motivations"),
                difficulty="easier",
                tradeoffs=("May take longer", "Requires compromise"),
                objective=objective,
            )
        )
        paths.append(
            AlternativePath(
                path="Stealth Approach",
                description="Avoid direct confrontation through stealth",
                requirements=("Stealth abilities", "Knowledge of area layout"),
                difficulty="similar",
                tradeoffs=("Higher risk if discovered", "Limited options if caught"),
                objective=objective,
            )
        )
    if "resource" in reason_lower:
        paths.append(
            AlternativePath(
                path="Resource Substitution",
                description="Use alternative resources or methods",
                requirements=("Creative problem-solving", "Knowledge of alternatives"),
                difficulty="similar",
                tradeoffs=("May be less efficient", "Could have different side effects"),
                objective=objective,
            )
        )
        paths.append(
            AlternativePath(
                path="Collaborative Effort",
                description="Partner with others to share resource burden",
                requirements=("Good relationships", "Negotiation skills"),
                difficulty="easier",
                tradeoffs=("Must share rewards", "Dependent on others"),
                objective=objective,
            )
        )
    return paths


__all__ = ["AlternativePath", "generate_alternative_paths"]
