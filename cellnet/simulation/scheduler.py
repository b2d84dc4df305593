"""Lifecycle scheduler: the tick loop.

Per tick, each cell (in registry order) ages, may die, wake, fall asleep,
run a self-check or clone. Effects of one cell's step are visible to cells
processed later in the same tick. After the per-cell pass the message log
is trimmed, cells move, dangling likes are pruned and due deferred tasks
run.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from cellnet.cells.entities import Cell, CellStatus
from cellnet.cells.history import HistoryLog, HistoryType, awaiting_reply
from cellnet.cells.registry import CellRegistry
from cellnet.cells.roles import is_critical
from cellnet.communication.log import MessageLog
from cellnet.config import NetworkConfig
from cellnet.errors import EngineStateError
from cellnet.simulation.movement import MovementModel
from cellnet.simulation.tasks import DeferredTaskQueue

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What happened during one tick."""

    tick: int
    deaths: list[str] = field(default_factory=list)
    clones: list[tuple[str, str]] = field(default_factory=list)  # (parent, child)
    slept: list[str] = field(default_factory=list)
    woke: list[str] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)
    moved: int = 0
    tasks_run: int = 0

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "deaths": list(self.deaths),
            "clones": [{"parent": p, "child": c} for p, c in self.clones],
            "slept": list(self.slept),
            "woke": list(self.woke),
            "repaired": list(self.repaired),
            "moved": self.moved,
            "tasks_run": self.tasks_run,
        }


class TickEngine:
    """Advances the whole network by one discrete step."""

    def __init__(
        self,
        registry: CellRegistry,
        messages: MessageLog,
        tasks: DeferredTaskQueue,
        config: NetworkConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        movement: MovementModel | None = None,
    ):
        self.registry = registry
        self.messages = messages
        self.tasks = tasks
        self.config = config or NetworkConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock
        self.movement = movement or MovementModel(self.config, self._rng)
        self.tick_count = 0
        self._running = False

    def tick(self) -> TickReport:
        """Run one tick.

        Raises:
            EngineStateError: If called while a tick is already in progress
        """
        if self._running:
            raise EngineStateError("tick() called while a tick is already in progress")
        self._running = True
        try:
            return self._run_tick()
        finally:
            self._running = False

    def _run_tick(self) -> TickReport:
        self.tick_count += 1
        now = self.tick_count
        report = TickReport(tick=now)

        for cell_id in self.registry.ids():
            cell = self.registry.get(cell_id)
            if cell is None or not cell.is_alive:
                continue
            try:
                self._step_cell(cell, now, report)
            except Exception as e:
                logger.warning(f"Error in tick for cell {cell_id}: {e}", exc_info=True)
                self._repair_history(cell)
                report.repaired.append(cell_id)

        self.messages.purge_expired(self._clock())
        self.messages.truncate()

        report.moved = self.movement.step(self.registry, now)
        self.registry.prune_liked()
        report.tasks_run = self.tasks.drain(now, self.config.max_tasks_per_drain)

        logger.debug(
            f"Tick {now}: {len(report.deaths)} deaths, {len(report.clones)} clones, "
            f"{len(report.slept)} slept, {len(report.woke)} woke"
        )
        return report

    def _step_cell(self, cell: Cell, now: int, report: TickReport) -> None:
        cfg = self.config

        cell.grow_older()
        if cell.age > cfg.max_age:
            cell.die(f"Died of old age ({cell.age}).")
            report.deaths.append(cell.id)
            logger.info(f"Cell {cell.id} died of old age at {cell.age}")
            return

        if cell.status == CellStatus.SLEEPING:
            if self._rng.random() < cfg.wake_probability:
                cell.wake(now, "Woke up spontaneously.")
                report.woke.append(cell.id)
            else:
                return

        if now - cell.last_active_tick > cfg.idle_ticks_before_sleep:
            if self._rng.random() < cfg.sleep_probability:
                if self._apply_sleep_policy(cell, now):
                    report.slept.append(cell.id)
                    return

        if now % cfg.self_check_interval == 0 and self._rng.random() < cfg.self_check_probability:
            cell.record(HistoryType.DECISION, f"Internal check at age {cell.age}. Status: OK.")

        if (
            cell.age > cfg.clone_min_age
            and cell.age % cfg.clone_age_modulo == 0
            and len(self.registry) < cfg.max_cells
            and self._rng.random() < cfg.clone_probability
        ):
            child = self.registry.create(parent_id=cell.id, tick=now)
            if child is not None:
                report.clones.append((cell.id, child.id))

    def _repair_history(self, cell: Cell) -> None:
        """Rebuild a cell's history container in place, salvaging what it can."""
        size = self.config.history_max_entries
        try:
            if isinstance(cell.history, HistoryLog):
                cell.history.repair()
            else:
                logger.warning(f"Cell {cell.id} history store was replaced, rebuilding")
                cell.history = HistoryLog.salvage(cell.history, size, self._clock)
        except Exception as e:
            logger.error(f"History repair failed for cell {cell.id}, starting fresh: {e}")
            cell.history = HistoryLog(size, self._clock)

    def _apply_sleep_policy(self, cell: Cell, now: int) -> bool:
        """Decide whether an idle cell falls asleep. Returns True if it did."""
        if awaiting_reply(cell.history.recent(self.config.conversation_window)):
            cell.record(HistoryType.DECISION, "Stayed awake: awaiting a reply.")
            cell.mark_active(now)
            return False
        if is_critical(cell.expertise, cell.goal):
            cell.record(HistoryType.DECISION, "Stayed awake: critical duty.")
            cell.mark_active(now)
            return False
        cell.fall_asleep("Fell asleep due to inactivity.")
        return True
