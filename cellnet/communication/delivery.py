"""Message delivery pipeline: hop-by-hop reception and final-hop reactions.

Reception wakes the recipient and records the message. Only the final hop
reacts to content. Every reply or follow-up is queued as a deferred task
that re-enters the network through `send`, so handling never recurses
synchronously.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from cellnet.cells.entities import Cell
from cellnet.cells.history import RECEIVED_PREFIX, HistoryType
from cellnet.cells.identity import USER
from cellnet.cells.registry import CellRegistry
from cellnet.cells.roles import expertise_matches, is_critical, singular_role_suffix
from cellnet.config import NetworkConfig
from cellnet.reasoning.local import stems
from cellnet.simulation.tasks import DeferredTaskQueue

logger = logging.getLogger(__name__)

COLOR_COMMAND = re.compile(r"^colou?r all (\w+) (\w+)$")
RESET_COMMAND = re.compile(r"^reset all (\w+?)(?: colou?rs?)?$")
PURPOSE_QUERY = "purpose?"
HELP_REQUEST = re.compile(
    r"^need help with:\s*(?P<request>.*?)"
    r"(?:\.\s*your expertise in '(?P<expertise>[^']+)' might be relevant\.?)?$",
    re.IGNORECASE | re.DOTALL,
)
POSITIVE_WORDS = ("thank", "helpful", "good job")
NEGATIVE_WORDS = ("error", "failed", "bad")

SendFn = Callable[[str, str, str], object]


@dataclass
class DeliveryReport:
    """Which cells received a message, and where propagation stopped."""

    recipients: list[str] = field(default_factory=list)
    broken_at: str | None = None
    final_recipient: str | None = None

    @property
    def delivered(self) -> bool:
        return self.final_recipient is not None


class DeliveryPipeline:
    """Applies delivered messages to receiving cells."""

    def __init__(
        self,
        registry: CellRegistry,
        tasks: DeferredTaskQueue,
        send: SendFn,
        tick_source: Callable[[], int],
        config: NetworkConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.registry = registry
        self.tasks = tasks
        self.send = send
        self._tick = tick_source
        self.config = config or NetworkConfig()
        self._rng = rng or random.Random(self.config.seed)

    # -- delivery modes --

    def deliver_route(self, path: list[str], source_id: str, content: str) -> DeliveryReport:
        """Walk a resolved path hop by hop.

        Each hop requires its recipient to be alive at that moment; the first
        dead hop stops propagation and the predecessor records the break.
        """
        report = DeliveryReport()
        for i in range(len(path) - 1):
            hop_source, hop_target = path[i], path[i + 1]
            recipient = self.registry.get(hop_target)
            if recipient is None or not recipient.is_alive:
                report.broken_at = hop_target
                predecessor = self.registry.get(hop_source)
                if predecessor is not None:
                    predecessor.record(
                        HistoryType.DECISION,
                        f"Route broken: {hop_target} is unavailable. "
                        f"Message from {source_id} stopped here.",
                    )
                logger.warning(f"Route broken at hop {hop_source}->{hop_target}")
                return report
            self.receive(
                recipient,
                f'{RECEIVED_PREFIX} message "{_preview(content)}" from {hop_source}',
            )
            report.recipients.append(hop_target)
            if i == len(path) - 2:
                report.final_recipient = hop_target
                self.react(recipient, source_id, content)
        return report

    def deliver_direct(self, source_id: str, target_id: str, content: str) -> DeliveryReport:
        """Single-hop delivery with no connectivity requirement."""
        report = DeliveryReport()
        target = self.registry.get(target_id)
        if target is None or not target.is_alive:
            sender = self.registry.get(source_id)
            if sender is not None:
                sender.record(
                    HistoryType.DECISION,
                    f"Message to {target_id} could not be delivered: recipient unavailable.",
                )
            report.broken_at = target_id
            return report
        self.receive(target, f'{RECEIVED_PREFIX} from {source_id}: "{content}"')
        report.recipients.append(target_id)
        report.final_recipient = target_id
        self.react(target, source_id, content)
        return report

    def deliver_broadcast(self, source_id: str, content: str) -> DeliveryReport:
        """Every alive cell except the sender receives and reacts independently."""
        report = DeliveryReport()
        for cell in self.registry.alive_cells():
            if cell.id == source_id:
                continue
            self.receive(cell, f'{RECEIVED_PREFIX} broadcast from {source_id}: "{content}"')
            report.recipients.append(cell.id)
            self.react(cell, source_id, content)
        if report.recipients:
            report.final_recipient = report.recipients[-1]
        return report

    # -- reception --

    def receive(self, cell: Cell, text: str) -> None:
        now = self._tick()
        if cell.wake(now, "Woken up by an incoming message."):
            logger.debug(f"Cell {cell.id} woken by message")
        cell.record(HistoryType.MESSAGE, text)
        cell.mark_active(now)

    # -- reactions (final hop only) --

    def react(self, cell: Cell, sender_id: str, content: str) -> None:
        """Content-driven reactions, in priority order."""
        normalized = content.strip().lower()
        is_self = sender_id == cell.id

        if self._handle_command(cell, normalized):
            return

        if normalized == PURPOSE_QUERY:
            cell.record(HistoryType.DECISION, f"Responding to purpose query from {sender_id}.")
            if not is_self:
                self._reply(
                    cell,
                    sender_id,
                    f"My purpose is: {cell.goal}. My expertise is in: {cell.expertise}.",
                )
            return

        help_match = HELP_REQUEST.match(content.strip())
        if help_match:
            if not is_self:
                self._handle_help_request(cell, sender_id, help_match)
            return

        if not is_self and sender_id in self.registry:
            if any(word in normalized for word in POSITIVE_WORDS):
                if cell.like(sender_id):
                    cell.record(
                        HistoryType.DECISION, f"Liked cell {sender_id} due to positive message."
                    )
            elif any(word in normalized for word in NEGATIVE_WORDS):
                if cell.unlike(sender_id):
                    cell.record(
                        HistoryType.DECISION, f"Disliked cell {sender_id} due to negative message."
                    )

        self._schedule_role_work(cell, sender_id, content)

    def _handle_command(self, cell: Cell, normalized: str) -> bool:
        """Administrative color commands. Returns True if content was a command."""
        match = COLOR_COMMAND.match(normalized)
        if match:
            suffix = singular_role_suffix(match.group(1))
            color = match.group(2)
            if cell.expertise.lower().endswith(suffix):
                cell.set_indicator(color)
                cell.record(HistoryType.DECISION, f"Indicator color set to {color}.")
            return True
        match = RESET_COMMAND.match(normalized)
        if match:
            suffix = singular_role_suffix(match.group(1))
            if cell.expertise.lower().endswith(suffix) and cell.indicator_color is not None:
                cell.set_indicator(None)
                cell.record(HistoryType.DECISION, "Indicator color reset.")
            return True
        return False

    def _handle_help_request(self, cell: Cell, sender_id: str, match: re.Match) -> None:
        request = match.group("request").strip()
        wanted = match.group("expertise")
        if not wanted or not expertise_matches(cell.expertise, wanted):
            return
        exact = cell.expertise.strip().lower() == wanted.strip().lower()
        if is_critical(cell.expertise, cell.goal) and not exact:
            cell.record(
                HistoryType.DECISION,
                f"Declined help request from {sender_id}: bound to critical duty.",
            )
            return
        cell.record(HistoryType.DECISION, f"Offering help to {sender_id} with: {request}")
        self._reply(cell, sender_id, f"I can help with: {request}. My expertise: {cell.expertise}.")

    def _schedule_role_work(self, cell: Cell, sender_id: str, content: str) -> None:
        """Role-specific simulated work, completed after a randomized delay."""
        if sender_id == cell.id:
            return
        expertise = cell.expertise.lower()
        if expertise == "data analyzer" and "Analyze:" in content:
            cell.record(
                HistoryType.DECISION, f"Received analysis request from {sender_id}. Processing..."
            )
            self._defer(cell, f"analysis:{cell.id}", lambda: self._finish_analysis(cell, sender_id))
        elif expertise == "task router" and "Task:" in content:
            task = content.split("Task:", 1)[1].strip()
            cell.record(HistoryType.DECISION, f"Received task from {sender_id}. Finding specialist...")
            self._defer(
                cell, f"task:{cell.id}", lambda: self._finish_task_routing(cell, sender_id, task)
            )
        elif expertise.endswith("sensor") and "status?" in content.lower():
            cell.record(HistoryType.DECISION, f"Sensor status requested by {sender_id}.")
            self._defer(cell, f"sensor:{cell.id}", lambda: self._finish_sensor_status(cell, sender_id))

    def _finish_analysis(self, cell: Cell, sender_id: str) -> None:
        if not cell.is_alive:
            return
        result = f"Analysis complete for data from {sender_id}. Result: Pattern detected."
        cell.record(HistoryType.DECISION, result)
        self._send_if_reachable(cell, sender_id, result)

    def _finish_task_routing(self, cell: Cell, sender_id: str, task: str) -> None:
        if not cell.is_alive:
            return
        specialist = self._best_specialist(task, exclude={cell.id, sender_id})
        if specialist is None:
            cell.record(HistoryType.DECISION, f"No specialist available for task: {task}")
            self._send_if_reachable(cell, sender_id, f"No specialist available for task: {task}")
            return
        cell.record(
            HistoryType.DECISION, f"Forwarding task to {specialist.id} ({specialist.expertise})."
        )
        self.send(cell.id, specialist.id, f"Forwarded task: {task}")
        self._send_if_reachable(
            cell, sender_id, f"Task routed to {specialist.id} ({specialist.expertise})."
        )

    def _finish_sensor_status(self, cell: Cell, sender_id: str) -> None:
        if not cell.is_alive:
            return
        self._send_if_reachable(
            cell,
            sender_id,
            f"Sensor status: {cell.expertise} reading nominal at age {cell.age}.",
        )

    def _best_specialist(self, task: str, exclude: set[str]) -> Cell | None:
        wanted = stems(task)
        best, best_score = None, 0
        for other in self.registry.alive_cells():
            if other.id in exclude or other.expertise.lower() == "task router":
                continue
            score = len(wanted & stems(f"{other.expertise} {other.goal}"))
            if score > best_score:
                best, best_score = other, score
        return best

    # -- replies --

    def _reply(self, cell: Cell, to_id: str, content: str) -> None:
        """Queue a zero-delay reply; it runs once the current operation finishes."""
        self.tasks.schedule(
            self._tick(),
            f"reply:{cell.id}->{to_id}",
            lambda: self._send_if_reachable(cell, to_id, content),
        )

    def _defer(self, cell: Cell, label: str, action: Callable[[], None]) -> None:
        low = self.config.work_delay_min_ticks
        high = max(low, self.config.work_delay_max_ticks)
        self.tasks.schedule(self._tick() + self._rng.randint(low, high), label, action)

    def _send_if_reachable(self, cell: Cell, to_id: str, content: str) -> None:
        if not cell.is_alive:
            return
        if to_id == USER or self.registry.is_alive(to_id):
            self.send(cell.id, to_id, content)
        else:
            logger.info(f"Reply from {cell.id} dropped: {to_id} not found or dead")


def _preview(content: str, length: int = 20) -> str:
    return content if len(content) <= length else content[:length] + "..."
