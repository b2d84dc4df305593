"""CellNetwork: the single entry point for driving the simulation.

Every operation runs under one re-entrant lock, so the registry and the
message log have a single writer even when a driver thread and an HTTP
server share the network. Zero-delay deferred tasks (replies) are drained
when the outermost operation finishes.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum

from cellnet.cells.entities import CellSnapshot
from cellnet.cells.history import HELP_REQUEST_PREFIX, SENT_PREFIX, HistoryType
from cellnet.cells.identity import BROADCAST, USER
from cellnet.cells.registry import CellRegistry
from cellnet.cells.roles import role_for_expertise
from cellnet.communication.delivery import DeliveryPipeline
from cellnet.communication.log import MessageLog
from cellnet.communication.protocol import Message, create_message
from cellnet.communication.router import MessageRouter, NetworkGraph
from cellnet.config import NetworkConfig
from cellnet.errors import HelpRequestError, PurposeError, ValidationError
from cellnet.reasoning import build_collaborators
from cellnet.reasoning.protocols import (
    ExpertiseRef,
    HelpInterpreter,
    PurposeInterpreter,
    RoutePlanner,
)
from cellnet.simulation.scheduler import TickEngine, TickReport
from cellnet.simulation.tasks import DeferredTaskQueue

logger = logging.getLogger(__name__)

NO_GUIDANCE = "No specific guidance available."


class SendMode(Enum):
    """How a message was (or wasn't) delivered."""

    ROUTED = "routed"
    DIRECT = "direct"
    BROADCAST = "broadcast"
    USER = "user"
    UNREACHABLE = "unreachable"


class HelpOutcome(Enum):
    TARGETED = "targeted"
    BROADCAST = "broadcast"
    NO_NEIGHBORS = "no_neighbors"
    UNAVAILABLE = "unavailable"


@dataclass
class SendResult:
    """Outcome of send_message. `path == [source]` means unreachable."""

    message: Message | None
    path: list[str]
    rationale: str
    mode: SendMode
    degraded: bool = False
    recipients: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "message": self.message.to_dict() if self.message else None,
            "path": list(self.path),
            "rationale": self.rationale,
            "mode": self.mode.value,
            "degraded": self.degraded,
            "recipients": list(self.recipients),
        }


@dataclass
class HelpResult:
    """Outcome of ask_for_help."""

    outcome: HelpOutcome
    targets: list[str] = field(default_factory=list)
    rationale: str = ""
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "targets": list(self.targets),
            "rationale": self.rationale,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class NetworkSnapshot:
    """Read-only view of the whole network."""

    cells: dict[str, CellSnapshot]
    messages: tuple[Message, ...]
    tick_count: int
    purpose: str | None
    guidance: str | None = None

    def to_dict(self) -> dict:
        return {
            "cells": {cid: c.to_dict() for cid, c in self.cells.items()},
            "messages": [m.to_dict() for m in self.messages],
            "tick_count": self.tick_count,
            "purpose": self.purpose,
            "guidance": self.guidance,
        }


class CellNetwork:
    """Facade over registry, tick engine, router and delivery."""

    def __init__(
        self,
        config: NetworkConfig | None = None,
        planner: RoutePlanner | None = None,
        help_interpreter: HelpInterpreter | None = None,
        purpose_interpreter: PurposeInterpreter | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or NetworkConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock

        if planner is None or help_interpreter is None or purpose_interpreter is None:
            default_planner, default_help, default_purpose = build_collaborators(self.config)
            planner = planner or default_planner
            help_interpreter = help_interpreter or default_help
            purpose_interpreter = purpose_interpreter or default_purpose
        self.help_interpreter = help_interpreter
        self.purpose_interpreter = purpose_interpreter

        self.registry = CellRegistry(self.config, self._rng, clock)
        self.messages = MessageLog(self.config.max_messages, self.config.message_ttl_seconds)
        self.tasks = DeferredTaskQueue()
        self.engine = TickEngine(
            self.registry, self.messages, self.tasks, self.config, self._rng, clock
        )
        self.router = MessageRouter(planner, self.config)
        self.delivery = DeliveryPipeline(
            self.registry,
            self.tasks,
            send=self.send_message,
            tick_source=lambda: self.engine.tick_count,
            config=self.config,
            rng=self._rng,
        )

        self.purpose: str | None = None
        self.guidance: str | None = None
        self._lock = threading.RLock()
        self._depth = 0
        self._draining = False

    @contextmanager
    def _operation(self) -> Iterator[None]:
        """Serialize an operation; drain zero-delay tasks when the outermost one ends."""
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            if self._depth == 0 and not self._draining:
                self._drain()

    def _drain(self) -> int:
        self._draining = True
        try:
            return self.tasks.drain(self.engine.tick_count, self.config.max_tasks_per_drain)
        finally:
            self._draining = False

    @property
    def tick_count(self) -> int:
        return self.engine.tick_count

    # -- lifecycle --

    def initialize_network(self, count: int) -> list[CellSnapshot]:
        """Discard the current network and create `count` fresh cells."""
        if count < 0:
            raise ValidationError(f"Cell count must be non-negative, got {count}")
        with self._operation():
            self.registry.clear()
            self.messages.clear()
            self.tasks.clear()
            self.engine.tick_count = 0
            created = []
            for _ in range(count):
                cell = self.registry.create(tick=0)
                if cell is None:
                    break
                created.append(cell.snapshot())
            self.purpose = (
                f"Network initialized with {len(created)} specialized cells "
                "working towards various goals."
            )
            self.guidance = None
            logger.info(f"Initialized network with {len(created)} cells")
            return created

    def set_purpose(self, text: str) -> str:
        """Set the network purpose and ask the interpreter for guidance.

        Raises:
            ValidationError: If the purpose is blank
            PurposeError: If the interpreter failed; the purpose is still set
                and guidance falls back to a "no guidance" message
        """
        if not text or not text.strip():
            raise ValidationError("Purpose must not be empty")
        with self._operation():
            self.purpose = text.strip()
            try:
                guidance = self.purpose_interpreter.interpret(self.purpose)
            except Exception as e:
                logger.warning(f"Purpose interpreter failed: {e}")
                self.guidance = NO_GUIDANCE
                raise PurposeError(f"Could not interpret purpose: {e}") from e
            self.guidance = guidance or NO_GUIDANCE
            alive = self.registry.alive_cells()
            if alive:
                summary = self.guidance[:100] + ("..." if len(self.guidance) > 100 else "")
                alive[0].record(
                    HistoryType.DECISION, f"Network purpose updated. Guidance: {summary}"
                )
            logger.info(f"Purpose set: {self.purpose!r}. Guidance: {self.guidance}")
            return self.guidance

    def tick(self) -> TickReport:
        with self._operation():
            return self.engine.tick()

    def add_cell(
        self, parent_id: str | None = None, expertise: str | None = None
    ) -> CellSnapshot | None:
        """Add a cell (or clone `parent_id`). Returns None at capacity."""
        with self._operation():
            role = role_for_expertise(expertise) if expertise and expertise.strip() else None
            cell = self.registry.create(role=role, parent_id=parent_id, tick=self.tick_count)
            return cell.snapshot() if cell else None

    def remove_cell(self, cell_id: str) -> bool:
        with self._operation():
            return self.registry.remove(cell_id)

    # -- messaging --

    def send_message(
        self, source_id: str, target_id: str, content: str, direct: bool = False
    ) -> SendResult:
        """Send a message from a cell (or the user) to a cell, the user or everyone.

        Liveness problems never raise: they come back as an UNREACHABLE or
        degraded result and are recorded in the sender's history.

        Raises:
            ValidationError: If content is blank or the source is "broadcast"
        """
        if not content or not content.strip():
            raise ValidationError("Message content must not be empty")
        if source_id == BROADCAST:
            raise ValidationError("'broadcast' cannot be a message source")

        with self._operation():
            now = self.tick_count
            sender = None
            if source_id != USER:
                sender = self.registry.get(source_id)
                if sender is None or not sender.is_alive:
                    logger.info(f"Message from {source_id} dropped: sender not found or dead")
                    return SendResult(
                        None,
                        [source_id],
                        f"Source cell {source_id} is not alive.",
                        SendMode.UNREACHABLE,
                        degraded=True,
                    )
                sender.record(HistoryType.MESSAGE, f'{SENT_PREFIX} to {target_id}: "{content}"')
                sender.mark_active(now)

            if target_id == BROADCAST:
                message = self._log(source_id, target_id, content)
                report = self.delivery.deliver_broadcast(source_id, content)
                return SendResult(
                    message,
                    [source_id],
                    f"Broadcast to {len(report.recipients)} cells.",
                    SendMode.BROADCAST,
                    recipients=report.recipients,
                )

            if target_id == USER:
                message = self._log(source_id, target_id, content)
                return SendResult(message, [source_id, USER], "Delivered to user.", SendMode.USER)

            return self._send_to_cell(source_id, target_id, content, direct)

    def _send_to_cell(
        self, source_id: str, target_id: str, content: str, direct: bool
    ) -> SendResult:
        entry_id = source_id
        if source_id == USER:
            alive = self.registry.alive_cells()
            if not alive:
                return SendResult(
                    None, [USER], "No alive cells to receive the message.", SendMode.UNREACHABLE,
                    degraded=True,
                )
            entry_id = alive[0].id

        target = self.registry.get(target_id)
        target_alive = target is not None and target.is_alive
        use_router = not direct and (
            not target_alive
            or self.router.should_route(
                source_id, target_id, content, target.status if target else None
            )
        )

        if not use_router or entry_id == target_id:
            report = self.delivery.deliver_direct(source_id, target_id, content)
            if not report.delivered:
                return SendResult(
                    None,
                    [source_id],
                    f"Target cell {target_id} is unreachable: not found or dead.",
                    SendMode.UNREACHABLE,
                    degraded=True,
                )
            message = self._log(source_id, target_id, content)
            return SendResult(
                message,
                [source_id, target_id],
                "Direct delivery.",
                SendMode.DIRECT,
                recipients=report.recipients,
            )

        graph = NetworkGraph.from_registry(self.registry, self.config.connection_radius)
        result = self.router.route(
            entry_id, target_id, content, graph, condition=self.config.network_condition
        )
        if not result.reachable:
            sender = self.registry.get(source_id)
            if sender is not None:
                sender.record(
                    HistoryType.DECISION,
                    f"Could not route message to {target_id}: {result.rationale}",
                )
            logger.info(f"Message {source_id}->{target_id} unreachable: {result.rationale}")
            return SendResult(None, result.path, result.rationale, SendMode.UNREACHABLE, degraded=True)

        message = self._log(source_id, result.target_id, content, route=result.path)
        report = self.delivery.deliver_route(result.path, source_id, content)
        degraded = result.degraded or report.broken_at is not None
        rationale = result.rationale
        if report.broken_at is not None:
            rationale = f"{rationale} Delivery stopped at {report.broken_at}.".strip()
        return SendResult(
            message, result.path, rationale, SendMode.ROUTED, degraded, report.recipients
        )

    def _log(
        self, source_id: str, target_id: str, content: str, route: list[str] | None = None
    ) -> Message:
        message = create_message(source_id, target_id, content, route, timestamp=self._clock())
        self.messages.append(message)
        return message

    def ask_for_help(self, cell_id: str, text: str) -> HelpResult:
        """Ask neighbors for help, targeted where the interpreter finds experts.

        Raises:
            ValidationError: If the request text is blank
            HelpRequestError: If even the broadcast fallback failed
        """
        if not text or not text.strip():
            raise ValidationError("Help request must not be empty")

        with self._operation():
            cell = self.registry.get(cell_id)
            if cell is None or not cell.is_alive:
                return HelpResult(
                    HelpOutcome.UNAVAILABLE,
                    rationale=f"Cell {cell_id} is not alive.",
                    degraded=True,
                )

            neighbors = [
                n for n in self.registry.neighbors(cell_id, self.config.help_radius) if n.is_alive
            ]
            if not neighbors:
                cell.record(
                    HistoryType.DECISION,
                    f"Tried to ask for help with '{text}' but no neighbors found.",
                )
                return HelpResult(HelpOutcome.NO_NEIGHBORS, rationale="No neighbors in range.")

            cell.record(HistoryType.MESSAGE, f"{HELP_REQUEST_PREFIX}: {text}")
            cell.mark_active(self.tick_count)

            refs = [ExpertiseRef(n.id, n.expertise) for n in neighbors]
            neighbor_ids = {n.id for n in neighbors}
            degraded = False
            try:
                suggestion = self.help_interpreter.interpret(cell_id, text, refs)
                relevant = [r for r in suggestion.relevant if r.cell_id in neighbor_ids]
                rationale = suggestion.rationale
            except Exception as e:
                logger.warning(f"Help interpreter failed for {cell_id}: {e}")
                relevant = []
                rationale = f"Help interpreter failed: {e}. Broadcasting instead."
                degraded = True

            if relevant:
                targets = []
                for ref in relevant:
                    self.send_message(
                        cell_id,
                        ref.cell_id,
                        f"Need help with: {text}. Your expertise in '{ref.expertise}' might be relevant.",
                        direct=True,
                    )
                    cell.like(ref.cell_id)
                    targets.append(ref.cell_id)
                return HelpResult(HelpOutcome.TARGETED, targets, rationale, degraded)

            try:
                result = self.send_message(cell_id, BROADCAST, f"Help needed: {text}")
            except Exception as e:
                raise HelpRequestError(f"Broadcast help request from {cell_id} failed: {e}") from e
            return HelpResult(HelpOutcome.BROADCAST, result.recipients, rationale, degraded)

    # -- queries --

    def get_cell_by_id(self, cell_id: str) -> CellSnapshot | None:
        with self._lock:
            cell = self.registry.get(cell_id)
            return cell.snapshot() if cell else None

    def get_neighbors(self, cell_id: str, radius: float | None = None) -> list[CellSnapshot]:
        with self._lock:
            r = self.config.neighbor_radius if radius is None else radius
            return [c.snapshot() for c in self.registry.neighbors(cell_id, r)]

    def get_cell_connections(self) -> dict[str, list[str]]:
        with self._lock:
            return self.registry.connections(self.config.connection_radius)

    def snapshot(self) -> NetworkSnapshot:
        with self._lock:
            self.messages.purge_expired(self._clock())
            return NetworkSnapshot(
                cells={c.id: c.snapshot() for c in self.registry.all_cells()},
                messages=tuple(self.messages.all()),
                tick_count=self.tick_count,
                purpose=self.purpose,
                guidance=self.guidance,
            )

    def clear_messages(self) -> None:
        with self._lock:
            self.messages.clear()

    def run_pending_tasks(self) -> int:
        """Run deferred tasks that are due now. Returns how many ran."""
        with self._lock:
            if self._draining:
                return 0
            return self._drain()
