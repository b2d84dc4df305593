"""Tests for the movement model."""

from __future__ import annotations

import math
import random

from cellnet.cells.registry import CellRegistry
from cellnet.config import NetworkConfig
from cellnet.simulation.movement import MovementModel
from tests.helpers import place_cell


def _model(config: NetworkConfig) -> MovementModel:
    return MovementModel(config, random.Random(7))


class TestForces:
    def test_attraction_toward_liked_peer(self, registry: CellRegistry, config: NetworkConfig):
        """A cell moves toward the centroid of its liked, active peers."""
        a = place_cell(registry, "Data Analyzer", 100, 100)
        b = place_cell(registry, "Task Router", 200, 100)
        a.like(b.id)

        _model(config).move(a, registry, tick=5)

        assert a.position.x > 100
        assert math.isclose(a.position.y, 100)
        assert a.last_active_tick == 5

    def test_no_attraction_to_sleeping_peer(self, registry: CellRegistry, config: NetworkConfig):
        a = place_cell(registry, "Data Analyzer", 100, 100)
        b = place_cell(registry, "Task Router", 200, 100)
        a.like(b.id)
        b.fall_asleep("tired")

        moved = _model(config).move(a, registry, tick=5)

        assert not moved
        assert a.last_active_tick == 0

    def test_repulsion_pushes_apart(self, registry: CellRegistry, config: NetworkConfig):
        a = place_cell(registry, "Data Analyzer", 100, 100)
        place_cell(registry, "Task Router", 120, 100)

        _model(config).move(a, registry, tick=3)

        assert a.position.x < 100
        assert a.last_active_tick == 3

    def test_exact_overlap_is_skipped(self, registry: CellRegistry, config: NetworkConfig):
        """Zero distance produces no force instead of a division error."""
        a = place_cell(registry, "Data Analyzer", 100, 100)
        place_cell(registry, "Task Router", 100, 100)
        assert not _model(config).move(a, registry, tick=1)

    def test_step_is_clamped(self, registry: CellRegistry, config: NetworkConfig):
        """Displacement never exceeds move_step."""
        a = place_cell(registry, "Data Analyzer", 100, 100)
        place_cell(registry, "Task Router", 101, 100)
        _model(config).move(a, registry, tick=1)
        assert 100 - a.position.x <= config.move_step + 1e-9


class TestDrift:
    def test_drift_does_not_count_as_activity(self, registry: CellRegistry):
        """A lone drifting cell moves but stays idle."""
        config = NetworkConfig(seed=1, drift_magnitude=1.0)
        a = place_cell(registry, "Data Analyzer", 250, 250)

        assert _model(config).move(a, registry, tick=9)

        assert a.position.as_tuple() != (250, 250)
        assert a.last_active_tick == 0
        assert len(a.position_history) == 2

    def test_positions_stay_in_bounds(self, registry: CellRegistry):
        config = NetworkConfig(seed=1, drift_magnitude=5.0)
        a = place_cell(registry, "Data Analyzer", 10, 10)
        model = _model(config)
        for tick in range(50):
            model.move(a, registry, tick)
            assert config.edge_margin <= a.position.x <= config.grid_size - config.edge_margin
            assert config.edge_margin <= a.position.y <= config.grid_size - config.edge_margin


def test_step_moves_only_active_cells(registry: CellRegistry):
    config = NetworkConfig(seed=1, drift_magnitude=1.0)
    a = place_cell(registry, "Data Analyzer", 100, 100)
    b = place_cell(registry, "Task Router", 300, 300)
    c = place_cell(registry, "Security Monitor", 400, 100)
    b.fall_asleep("tired")
    c.die("gone")

    moved = _model(config).step(registry, tick=1)

    assert moved == 1
    assert a.position.as_tuple() != (100, 100)
    assert b.position.as_tuple() == (300, 300)
    assert c.position.as_tuple() == (400, 100)
