"""Per-cell bounded history log.

Append-only record of state transitions. Sequence numbers are strictly
increasing and never reused, even after the oldest entries are evicted or
the container is rebuilt.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# Text prefixes the sleep policy reads back when looking for open conversations.
SENT_PREFIX = "Sent"
RECEIVED_PREFIX = "Received"
HELP_REQUEST_PREFIX = "Asking neighbors for help"


class HistoryType(Enum):
    """Kinds of history entries."""

    INIT = "init"
    CLONE = "clone"
    DECISION = "decision"
    MESSAGE = "message"
    DEATH = "death"
    SLEEP = "sleep"
    WAKE = "wake"


@dataclass(frozen=True)
class HistoryEntry:
    """One immutable, sequenced event in a cell's life."""

    seq: int
    type: HistoryType
    age: int
    text: str
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "type": self.type.value,
            "age": self.age,
            "text": self.text,
            "timestamp": self.timestamp,
        }


class HistoryLog:
    """Bounded, append-only, sequenced event record.

    Oldest entries are evicted first once max_entries is reached.
    """

    def __init__(self, max_entries: int = 100, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)
        self._next_seq = 0

    def append(self, entry_type: HistoryType, age: int, text: str) -> HistoryEntry:
        """Append a new entry and return it."""
        entry = HistoryEntry(
            seq=self._next_seq,
            type=entry_type,
            age=age,
            text=text,
            timestamp=self._clock(),
        )
        self._entries.append(entry)
        self._next_seq += 1
        return entry

    def repair(self) -> int:
        """Rebuild the entry container in place.

        Keeps every salvageable entry (well-formed, strictly increasing seq)
        and drops the rest. Returns the number of entries dropped.
        """
        kept: list[HistoryEntry] = []
        dropped = 0
        try:
            candidates = list(self._entries)
        except Exception:
            candidates = []
        last_seq = -1
        for item in candidates:
            if isinstance(item, HistoryEntry) and item.seq > last_seq:
                kept.append(item)
                last_seq = item.seq
            else:
                dropped += 1
        self._entries = deque(kept[-self.max_entries :], maxlen=self.max_entries)
        self._next_seq = max(self._next_seq, last_seq + 1)
        if dropped:
            logger.warning(f"History repaired: dropped {dropped} malformed entries")
        return dropped

    @classmethod
    def salvage(
        cls,
        store: object,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> HistoryLog:
        """Build a fresh log from whatever well-formed entries `store` still holds.

        The seq counter continues after the highest salvaged seq.
        """
        log = cls(max_entries, clock)
        try:
            log._entries = deque(list(store), maxlen=max_entries)
        except TypeError:
            logger.warning(f"History store of type {type(store).__name__} is not iterable")
        log.repair()
        return log

    def entries(self) -> tuple[HistoryEntry, ...]:
        """All retained entries, oldest first."""
        return tuple(self._entries)

    def recent(self, n: int = 10) -> list[HistoryEntry]:
        """Last N entries."""
        return list(self._entries)[-n:]

    def last(self) -> HistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def count(self, entry_type: HistoryType) -> int:
        return sum(1 for e in self._entries if e.type == entry_type)

    @property
    def next_seq(self) -> int:
        return self._next_seq

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))


def awaiting_reply(entries: list[HistoryEntry]) -> bool:
    """True if the newest conversational entry is an outgoing one.

    A cell is mid-conversation when it sent a message (or asked for help)
    and has not received anything since.
    """
    for entry in reversed(entries):
        if entry.type != HistoryType.MESSAGE:
            continue
        if entry.text.startswith(RECEIVED_PREFIX):
            return False
        if entry.text.startswith(SENT_PREFIX) or entry.text.startswith(HELP_REQUEST_PREFIX):
            return True
    return False
