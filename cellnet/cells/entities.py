"""The Cell entity: identity, lifecycle, spatial and social state.

Every observable mutation goes through a method on Cell that bumps
`version`, and every state transition worth remembering goes through
`record()`, which also appends to the history. Once a cell is dead its
mutators become no-ops; only pruning of dangling liked ids still applies.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from cellnet.cells.history import HistoryEntry, HistoryLog, HistoryType
from cellnet.spatial.layout import Position

logger = logging.getLogger(__name__)


class CellStatus(Enum):
    """Activity status, meaningful only while alive."""

    ACTIVE = "active"
    SLEEPING = "sleeping"


@dataclass
class Cell:
    """An autonomous simulated agent in the network."""

    id: str
    expertise: str
    goal: str
    position: Position
    age: int = 0
    is_alive: bool = True
    status: CellStatus = CellStatus.ACTIVE
    last_active_tick: int = 0
    version: int = 0
    liked_cells: list[str] = field(default_factory=list)
    history: HistoryLog = field(default_factory=HistoryLog)
    position_history: deque[Position] = field(default_factory=lambda: deque(maxlen=20))
    indicator_color: str | None = None
    parent_id: str | None = None

    def __post_init__(self):
        if not self.position_history:
            self.position_history.append(self.position)

    # -- primitives --

    def _bump(self) -> None:
        self.version += 1

    def record(self, entry_type: HistoryType, text: str) -> HistoryEntry | None:
        """Append a history entry and bump the version.

        Returns None (and changes nothing) on a dead cell.
        """
        if not self.is_alive:
            logger.debug(f"Ignored {entry_type.value} entry on dead cell {self.id}")
            return None
        entry = self.history.append(entry_type, self.age, text)
        self._bump()
        return entry

    # -- lifecycle --

    def grow_older(self) -> int:
        """Advance age by one tick. Returns the new age."""
        if self.is_alive:
            self.age += 1
            self._bump()
        return self.age

    def die(self, reason: str) -> None:
        """Terminal transition: record the death, then freeze."""
        if not self.is_alive:
            return
        self.record(HistoryType.DEATH, reason)
        self.is_alive = False
        self.status = CellStatus.SLEEPING
        self._bump()

    def fall_asleep(self, reason: str) -> None:
        if not self.is_alive or self.status == CellStatus.SLEEPING:
            return
        self.status = CellStatus.SLEEPING
        self.record(HistoryType.SLEEP, reason)

    def wake(self, tick: int, reason: str) -> bool:
        """Wake a sleeping cell. Returns True if the cell was asleep."""
        if not self.is_alive or self.status != CellStatus.SLEEPING:
            return False
        self.status = CellStatus.ACTIVE
        self.last_active_tick = tick
        self.record(HistoryType.WAKE, reason)
        return True

    def mark_active(self, tick: int) -> None:
        if self.is_alive and tick > self.last_active_tick:
            self.last_active_tick = tick
            self._bump()

    # -- spatial --

    def move_to(self, position: Position) -> None:
        if not self.is_alive:
            return
        self.position = position
        self.position_history.append(position)
        self._bump()

    # -- social --

    def like(self, cell_id: str) -> bool:
        """Add a liked peer. Returns True if it was not liked before."""
        if not self.is_alive or cell_id == self.id or cell_id in self.liked_cells:
            return False
        self.liked_cells.append(cell_id)
        self._bump()
        return True

    def unlike(self, cell_id: str) -> bool:
        if not self.is_alive or cell_id not in self.liked_cells:
            return False
        self.liked_cells.remove(cell_id)
        self._bump()
        return True

    def prune_liked(self, present_ids) -> int:
        """Drop liked ids absent from `present_ids`. Applies to dead cells too."""
        kept = [cid for cid in self.liked_cells if cid in present_ids]
        removed = len(self.liked_cells) - len(kept)
        if removed:
            self.liked_cells = kept
            self._bump()
        return removed

    # -- display --

    def set_indicator(self, color: str | None) -> None:
        if not self.is_alive or self.indicator_color == color:
            return
        self.indicator_color = color
        self._bump()

    @property
    def is_active(self) -> bool:
        return self.is_alive and self.status == CellStatus.ACTIVE

    def snapshot(self) -> CellSnapshot:
        """Read-only copy for collaborators outside the engine."""
        return CellSnapshot(
            id=self.id,
            age=self.age,
            expertise=self.expertise,
            goal=self.goal,
            position=self.position,
            position_history=tuple(self.position_history),
            is_alive=self.is_alive,
            status=self.status,
            last_active_tick=self.last_active_tick,
            version=self.version,
            liked_cells=tuple(self.liked_cells),
            history=self.history.entries(),
            indicator_color=self.indicator_color,
            parent_id=self.parent_id,
        )


@dataclass(frozen=True)
class CellSnapshot:
    """Immutable view of a Cell at one point in time."""

    id: str
    age: int
    expertise: str
    goal: str
    position: Position
    position_history: tuple[Position, ...]
    is_alive: bool
    status: CellStatus
    last_active_tick: int
    version: int
    liked_cells: tuple[str, ...]
    history: tuple[HistoryEntry, ...]
    indicator_color: str | None
    parent_id: str | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "age": self.age,
            "expertise": self.expertise,
            "goal": self.goal,
            "position": {"x": self.position.x, "y": self.position.y},
            "position_history": [{"x": p.x, "y": p.y} for p in self.position_history],
            "is_alive": self.is_alive,
            "status": self.status.value,
            "last_active_tick": self.last_active_tick,
            "version": self.version,
            "liked_cells": list(self.liked_cells),
            "history": [e.to_dict() for e in self.history],
            "indicator_color": self.indicator_color,
            "parent_id": self.parent_id,
        }
