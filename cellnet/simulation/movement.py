"""Movement model: social attraction, local repulsion and random drift.

A simple n-body style heuristic, not a physical simulation. The only hard
guarantee is that positions stay inside the arena.
"""

from __future__ import annotations

import logging
import math
import random

from cellnet.cells.entities import Cell
from cellnet.cells.registry import CellRegistry
from cellnet.config import NetworkConfig
from cellnet.spatial.layout import Position, clamp_position

logger = logging.getLogger(__name__)


class MovementModel:
    """Computes and applies one movement step per active cell."""

    def __init__(self, config: NetworkConfig | None = None, rng: random.Random | None = None):
        self.config = config or NetworkConfig()
        self._rng = rng or random.Random(self.config.seed)

    def step(self, registry: CellRegistry, tick: int) -> int:
        """Move every alive, active cell once. Returns how many cells moved."""
        moved = 0
        for cell in registry.alive_cells():
            if not cell.is_active:
                continue
            if self.move(cell, registry, tick):
                moved += 1
        return moved

    def displacement(self, cell: Cell, registry: CellRegistry) -> tuple[float, float, bool]:
        """Raw displacement vector for `cell` plus whether a social force acted."""
        cfg = self.config
        dx = dy = 0.0
        social = False

        liked = [registry.get(cid) for cid in cell.liked_cells]
        peers = [p for p in liked if p is not None and p.is_active]
        if peers:
            cx = sum(p.position.x for p in peers) / len(peers)
            cy = sum(p.position.y for p in peers) / len(peers)
            dist = math.hypot(cx - cell.position.x, cy - cell.position.y)
            if dist > cfg.move_step / 2:
                scale = cfg.move_step * cfg.attraction_fraction / dist
                dx += (cx - cell.position.x) * scale
                dy += (cy - cell.position.y) * scale
                social = True

        for other in registry.alive_cells():
            if other.id == cell.id or not other.is_active:
                continue
            ox = cell.position.x - other.position.x
            oy = cell.position.y - other.position.y
            dist = math.hypot(ox, oy)
            if dist == 0 or dist >= cfg.repulsion_radius:
                continue
            force = cfg.repulsion_strength * (cfg.repulsion_radius - dist) / dist
            dx += ox * force
            dy += oy * force
            social = True

        angle = self._rng.uniform(0, 2 * math.pi)
        dx += math.cos(angle) * cfg.drift_magnitude
        dy += math.sin(angle) * cfg.drift_magnitude

        magnitude = math.hypot(dx, dy)
        if magnitude > cfg.move_step:
            dx *= cfg.move_step / magnitude
            dy *= cfg.move_step / magnitude
        return dx, dy, social

    def move(self, cell: Cell, registry: CellRegistry, tick: int) -> bool:
        """Apply one step to `cell`. Returns True if its position changed."""
        dx, dy, social = self.displacement(cell, registry)
        target = clamp_position(
            Position(cell.position.x + dx, cell.position.y + dy),
            self.config.grid_size,
            self.config.edge_margin,
        )
        if target == cell.position:
            return False
        cell.move_to(target)
        # Drift alone never counts as activity
        if social:
            cell.mark_active(tick)
        return True
