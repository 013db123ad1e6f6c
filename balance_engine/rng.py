"""Deterministic random utilities."""

from __future__ import annotations

import random


class DeterministicRNG:
    """Wraps :mod:`random` with deterministic replay support.

    Every probabilistic rule in the engine draws from an instance of this
    class (or any object exposing the same methods), never from the
    module-level :mod:`random` functions.
    """

    def __init__(self, seed: int) -> None:
        self._seed = seed & 0xFFFFFFFF
        # nosec B311 - deterministic pseudo-RNG acceptable for game mechanics
        self._random = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def random(self) -> float:
        return self._random.random()

    def chance(self, probability: float) -> bool:
        """Return True with the given probability (0.0 - 1.0)."""

        return self.random() < probability

    def choice(self, seq):
        return self._random.choice(seq)


__all__ = ["DeterministicRNG"]
