"""Spatial layout: bounded 2D arena, spaced placement and clamping."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """A point in the arena."""

    x: float
    y: float

    def distance_to(self, other: Position) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_position(pos: Position, grid_size: float, margin: float = 0.0) -> Position:
    """Clamp a position into [margin, grid_size - margin] on both axes."""
    return Position(
        clamp(pos.x, margin, grid_size - margin),
        clamp(pos.y, margin, grid_size - margin),
    )


def is_spaced(candidate: Position, existing: Iterable[Position], min_distance: float) -> bool:
    """True if candidate keeps at least min_distance from every existing point."""
    return all(candidate.distance_to(p) >= min_distance for p in existing)


def random_position(
    existing: list[Position],
    rng: random.Random,
    grid_size: float = 500.0,
    margin: float = 30.0,
    attempts: int = 10,
) -> Position:
    """Pick a position at least `margin` away from every existing cell.

    After `attempts` failed tries the last candidate is used anyway.
    """
    candidate = Position(grid_size / 2, grid_size / 2)
    for _ in range(max(1, attempts)):
        candidate = Position(
            rng.uniform(margin, grid_size - margin),
            rng.uniform(margin, grid_size - margin),
        )
        if is_spaced(candidate, existing, margin):
            return candidate
    logger.warning("Max attempts reached for finding a spaced position, placing randomly")
    return candidate


def clone_position(
    parent: Position,
    existing: list[Position],
    rng: random.Random,
    grid_size: float = 500.0,
    distance: float = 50.0,
    jitter: float = 20.0,
    edge_margin: float = 10.0,
    attempts: int = 20,
) -> Position:
    """Place a clone on a ring around its parent, avoiding heavy overlap."""
    for _ in range(max(1, attempts)):
        angle = rng.uniform(0.0, 2 * math.pi)
        radius = distance + rng.uniform(0.0, jitter)
        candidate = clamp_position(
            Position(parent.x + math.cos(angle) * radius, parent.y + math.sin(angle) * radius),
            grid_size,
            edge_margin,
        )
        if is_spaced(candidate, existing, distance / 2):
            return candidate
    logger.warning("Could not find suitable clone position, placing near parent")
    return clamp_position(Position(parent.x + 5, parent.y + 5), grid_size, edge_margin)
