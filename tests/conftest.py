"""Shared fixtures for the balance engine tests."""
from __future__ import annotations

from typing import Iterable

import pytest

from balance_engine.catalog import Catalog
from balance_engine.config import Settings
from balance_engine.models import Character, StoryState
from balance_engine.rng import DeterministicRNG


class ScriptedRNG(DeterministicRNG):
    """Returns queued ``random()`` values before falling back to the seed."""

    def __init__(self, values: Iterable[float] = (), seed: int = 0) -> None:
        super().__init__(seed)
        self._queued = list(values)

    def random(self) -> float:
        if self._queued:
            return self._queued.pop(0)
        return super().random()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return Catalog()


@pytest.fixture
def scripted_rng():
    def _build(*values: float) -> ScriptedRNG:
        return ScriptedRNG(values)

    return _build


@pytest.fixture
def make_state():
    def _build(**overrides) -> StoryState:
        character = overrides.pop(
            "character",
            Character(name="Mira", level=5, health=100, max_health=100, currency=200),
        )
        return StoryState(character=character, **overrides)

    return _build
