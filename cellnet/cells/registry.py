"""Cell registry: manages cell lifecycle (create, removal, lookup, adjacency)."""

from __future__ import annotations

import logging
import random
import time
from collections import deque
from collections.abc import Callable

from cellnet.cells.entities import Cell
from cellnet.cells.history import HistoryLog, HistoryType
from cellnet.cells.identity import new_cell_id
from cellnet.cells.roles import Role, least_represented_role
from cellnet.config import NetworkConfig
from cellnet.spatial.layout import Position, clone_position, random_position

logger = logging.getLogger(__name__)


class CellRegistry:
    """Manages cell lifecycle: create, removal, lookup.

    Single source of truth for all cells in the network, dead or alive.
    Iteration order is creation order.
    """

    def __init__(
        self,
        config: NetworkConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or NetworkConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock
        self._cells: dict[str, Cell] = {}

    def create(
        self,
        role: Role | None = None,
        parent_id: str | None = None,
        tick: int = 0,
    ) -> Cell | None:
        """Create a cell, or a clone of `parent_id`.

        Returns None when the population cap is reached or the parent
        cannot be cloned; capacity exhaustion is not an error.
        """
        if len(self._cells) >= self.config.max_cells:
            logger.warning(f"Max cell limit ({self.config.max_cells}) reached, cannot add cell")
            return None

        parent = None
        if parent_id is not None:
            parent = self._cells.get(parent_id)
            if parent is None:
                logger.warning(f"Parent cell {parent_id} not found, cannot clone")
                return None
            if not parent.is_alive:
                logger.warning(f"Parent cell {parent_id} is dead, cannot clone")
                return None

        existing = [c.position for c in self._cells.values()]
        if parent is not None:
            position = clone_position(
                parent.position,
                existing,
                self._rng,
                grid_size=self.config.grid_size,
                distance=self.config.clone_distance,
                jitter=self.config.clone_jitter,
                edge_margin=self.config.edge_margin,
                attempts=self.config.clone_attempts,
            )
            role = Role(parent.expertise, parent.goal)
        else:
            position = random_position(
                existing,
                self._rng,
                grid_size=self.config.grid_size,
                margin=self.config.spawn_margin,
                attempts=self.config.spawn_attempts,
            )
            if role is None:
                role = least_represented_role(self.role_counts())

        cell_id = new_cell_id()
        while cell_id in self._cells:
            cell_id = new_cell_id()

        cell = Cell(
            id=cell_id,
            expertise=role.expertise,
            goal=role.goal,
            position=position,
            last_active_tick=tick,
            history=HistoryLog(self.config.history_max_entries, clock=self._clock),
            position_history=deque(maxlen=self.config.position_trail_length),
            parent_id=parent.id if parent else None,
        )

        if parent is not None:
            cell.liked_cells.append(parent.id)
            cell.record(
                HistoryType.CLONE,
                f"Cloned from Cell {parent.id}. Inherited Expertise: {cell.expertise}, "
                f"Goal: {cell.goal}",
            )
            parent.record(HistoryType.CLONE, f"Cloned itself. New cell ID: {cell.id}")
            parent.like(cell.id)
        else:
            cell.record(
                HistoryType.INIT,
                f"Initialized with Expertise: {cell.expertise}, Goal: {cell.goal}",
            )

        self._cells[cell.id] = cell
        logger.info(
            f"Added cell {cell.id} with role {cell.expertise}"
            + (f" (cloned from {parent.id})" if parent else "")
        )
        return cell

    def remove(self, cell_id: str) -> bool:
        """Hard delete: drop the cell and purge it from every liked list."""
        if self._cells.pop(cell_id, None) is None:
            return False
        for cell in self._cells.values():
            if cell_id in cell.liked_cells:
                cell.prune_liked(self._cells.keys())
        logger.info(f"Removed cell {cell_id}")
        return True

    def clear(self) -> None:
        self._cells.clear()

    def get(self, cell_id: str) -> Cell | None:
        """Look up a cell (dead or alive) by ID."""
        return self._cells.get(cell_id)

    def is_alive(self, cell_id: str) -> bool:
        cell = self._cells.get(cell_id)
        return cell is not None and cell.is_alive

    def all_cells(self) -> list[Cell]:
        """All cells including dead ones, in creation order."""
        return list(self._cells.values())

    def alive_cells(self) -> list[Cell]:
        return [c for c in self._cells.values() if c.is_alive]

    def ids(self) -> list[str]:
        return list(self._cells.keys())

    def neighbors(self, cell_id: str, radius: float) -> list[Cell]:
        """All other cells (any status) within Euclidean `radius` of `cell_id`."""
        cell = self._cells.get(cell_id)
        if cell is None:
            return []
        return [
            other
            for other in self._cells.values()
            if other.id != cell_id and cell.position.distance_to(other.position) <= radius
        ]

    def connections(self, radius: float) -> dict[str, list[str]]:
        """Adjacency map restricted to alive cells."""
        result: dict[str, list[str]] = {}
        for cell in self._cells.values():
            if not cell.is_alive:
                continue
            result[cell.id] = [n.id for n in self.neighbors(cell.id, radius) if n.is_alive]
        return result

    def expertise_map(self) -> dict[str, str]:
        """cell id -> expertise, alive cells only."""
        return {c.id: c.expertise for c in self._cells.values() if c.is_alive}

    def positions(self) -> dict[str, Position]:
        return {c.id: c.position for c in self._cells.values()}

    def role_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for cell in self._cells.values():
            counts[cell.expertise] = counts.get(cell.expertise, 0) + 1
        return counts

    def prune_liked(self) -> int:
        """Drop liked ids no longer present in the registry. Returns total removed."""
        present = self._cells.keys()
        return sum(cell.prune_liked(present) for cell in self._cells.values())

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._cells

    @property
    def count_living(self) -> int:
        return sum(1 for c in self._cells.values() if c.is_alive)

    @property
    def count_dead(self) -> int:
        return len(self._cells) - self.count_living
