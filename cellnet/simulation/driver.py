"""Fixed-interval tick driver running in a daemon thread."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cellnet.network import CellNetwork
    from cellnet.simulation.scheduler import TickReport

logger = logging.getLogger(__name__)


class DriverState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class TickDriver:
    """Calls `network.tick()` every `interval` seconds.

    Pausing only stops new ticks; deferred tasks already queued still run on
    the next tick. An unexpected tick error stops the driver.

    Usage:
        driver = TickDriver(network)
        driver.start()
        ...
        driver.stop()
    """

    def __init__(
        self,
        network: CellNetwork,
        interval: float | None = None,
        on_tick: Callable[[TickReport], None] | None = None,
    ):
        self.network = network
        self.interval = network.config.tick_interval_seconds if interval is None else interval
        self.on_tick = on_tick
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._resume = threading.Event()
        self._resume.set()
        self.last_error: Exception | None = None
        self.ticks_run = 0

    @property
    def state(self) -> DriverState:
        if self._thread is None:
            return DriverState.IDLE
        if not self._thread.is_alive():
            return DriverState.STOPPED
        return DriverState.RUNNING if self._resume.is_set() else DriverState.PAUSED

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking. No-op if already running."""
        if self.is_running:
            return
        self._stop.clear()
        self._resume.set()
        self.last_error = None
        self._thread = threading.Thread(target=self._run, name="cellnet-driver", daemon=True)
        self._thread.start()
        logger.info(f"Tick driver started (interval {self.interval}s)")

    def pause(self) -> None:
        self._resume.clear()
        logger.info("Tick driver paused")

    def resume(self) -> None:
        self._resume.set()
        logger.info("Tick driver resumed")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the driver and wait for the thread to exit."""
        self._stop.set()
        self._resume.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        logger.info("Tick driver stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            self._resume.wait()
            if self._stop.is_set():
                break
            try:
                report = self.network.tick()
            except Exception as e:
                self.last_error = e
                logger.error(f"Tick failed, stopping driver: {e}", exc_info=True)
                self._stop.set()
                break
            self.ticks_run += 1
            if self.on_tick is not None:
                self.on_tick(report)
            self._stop.wait(self.interval)
