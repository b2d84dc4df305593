"""Shared test fixtures for the cellnet test suite."""

from __future__ import annotations

import random

import pytest

from cellnet.cells.registry import CellRegistry
from cellnet.config import NetworkConfig
from cellnet.network import CellNetwork
from cellnet.reasoning.local import (
    KeywordHelpInterpreter,
    ShortestPathPlanner,
    StaticPurposeInterpreter,
)
from tests.helpers import FakeClock


@pytest.fixture
def config() -> NetworkConfig:
    """Seeded config with every random lifecycle event switched off."""
    return NetworkConfig(
        seed=42,
        sleep_probability=0.0,
        wake_probability=0.0,
        self_check_probability=0.0,
        clone_probability=0.0,
        drift_magnitude=0.0,
        message_ttl_seconds=60.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def registry(config: NetworkConfig, rng: random.Random, clock: FakeClock) -> CellRegistry:
    """A fresh, empty registry."""
    return CellRegistry(config, rng, clock)


@pytest.fixture
def network(config: NetworkConfig, rng: random.Random, clock: FakeClock) -> CellNetwork:
    """A network wired to the deterministic local collaborators."""
    return CellNetwork(
        config,
        planner=ShortestPathPlanner(),
        help_interpreter=KeywordHelpInterpreter(),
        purpose_interpreter=StaticPurposeInterpreter(),
        rng=rng,
        clock=clock,
    )
