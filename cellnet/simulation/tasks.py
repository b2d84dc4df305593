"""Deferred task queue drained by the single-writer scheduler.

Replies and simulated follow-up work are never run inline or on a
separate thread: they are queued here with a due tick and executed by the
network after the operation that triggered them, in (due tick, enqueue
order) order.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(order=True)
class DeferredTask:
    """A unit of deferred work."""

    due_tick: int
    seq: int
    label: str = field(compare=False)
    action: Callable[[], None] = field(compare=False, repr=False)


class DeferredTaskQueue:
    """Min-heap of deferred tasks keyed by (due tick, sequence)."""

    def __init__(self):
        self._heap: list[DeferredTask] = []
        self._counter = itertools.count()
        self._executed = 0
        self._failed = 0

    def schedule(self, due_tick: int, label: str, action: Callable[[], None]) -> DeferredTask:
        """Queue `action` to run once the clock reaches `due_tick`."""
        task = DeferredTask(due_tick=due_tick, seq=next(self._counter), label=label, action=action)
        heapq.heappush(self._heap, task)
        logger.debug(f"Scheduled '{label}' for tick {due_tick}")
        return task

    def drain(self, current_tick: int, limit: int = 100) -> int:
        """Run due tasks in order, including tasks they enqueue that are also due.

        A failing task is logged and skipped; it never blocks the queue.
        Returns the number of tasks run.
        """
        ran = 0
        while self._heap and self._heap[0].due_tick <= current_tick and ran < limit:
            task = heapq.heappop(self._heap)
            ran += 1
            try:
                task.action()
                self._executed += 1
            except Exception as e:
                self._failed += 1
                logger.warning(f"Deferred task '{task.label}' failed: {e}", exc_info=True)
        if ran >= limit and self.due_count(current_tick):
            logger.info(f"Drain limit {limit} reached, {self.due_count(current_tick)} tasks left")
        return ran

    def due_count(self, current_tick: int) -> int:
        return sum(1 for t in self._heap if t.due_tick <= current_tick)

    def pending(self) -> list[DeferredTask]:
        """Pending tasks in execution order."""
        return sorted(self._heap)

    def clear(self) -> None:
        self._heap.clear()

    @property
    def pending_count(self) -> int:
        return len(self._heap)

    @property
    def executed_count(self) -> int:
        return self._executed

    @property
    def failed_count(self) -> int:
        return self._failed
