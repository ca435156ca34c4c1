"""Pytest configuration and fixtures."""
from __future__ import annotations

import random
from typing import Any, Callable

import pytest

from cuescore.core.clock import VirtualClock
from cuescore.core.engine import ScoreEngine
from cuescore.core.events import EngineEvent
from cuescore.models.piece import PerformerState, PieceSettings


def pytest_configure(config):
    """Ensure asyncio_mode is auto so async tests run without markers (e.g. when pyproject is not in cwd)."""
    if hasattr(config.option, "asyncio_mode") and config.option.asyncio_mode is None:
        config.option.asyncio_mode = "auto"


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so probabilistic tests are repeatable."""
    return random.Random(1234)


@pytest.fixture
def make_settings() -> Callable[..., PieceSettings]:
    """Factory for PieceSettings with test-friendly defaults."""

    def _make(**overrides: Any) -> PieceSettings:
        values: dict[str, Any] = {
            "duration_min": 2.0,
            "interval": (10.0, 30.0),
            "contrast": 0.5,
            "num_players": 6,
        }
        values.update(overrides)
        return PieceSettings(**values)

    return _make


@pytest.fixture
def performers() -> Callable[[int], list[PerformerState]]:
    """Factory for a fresh roster of PerformerState."""

    def _make(n: int) -> list[PerformerState]:
        return [PerformerState() for _ in range(n)]

    return _make


@pytest.fixture
def virtual_clock() -> VirtualClock:
    return VirtualClock(start=1000.0)


@pytest.fixture
def recorded_engine(virtual_clock: VirtualClock, rng: random.Random) -> tuple[ScoreEngine, list[EngineEvent]]:
    """A ScoreEngine on a virtual clock whose events land in a list."""
    events: list[EngineEvent] = []
    engine = ScoreEngine(sink=events.append, clock=virtual_clock, rng=rng)
    return engine, events
