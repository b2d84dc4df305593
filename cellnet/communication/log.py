"""Transient message log: recent messages for display, time-boxed."""

from __future__ import annotations

import logging

from cellnet.communication.protocol import Message

logger = logging.getLogger(__name__)


class MessageLog:
    """Recent messages, oldest first.

    Messages expire after `ttl_seconds` and the log is periodically
    truncated to the newest `max_messages`.
    """

    def __init__(self, max_messages: int = 50, ttl_seconds: float = 3.0):
        self.max_messages = max_messages
        self.ttl_seconds = ttl_seconds
        self._messages: list[Message] = []
        self._total = 0

    def append(self, message: Message) -> None:
        self._messages.append(message)
        self._total += 1

    def truncate(self, n: int | None = None) -> int:
        """Keep only the newest n messages. Returns number dropped."""
        limit = self.max_messages if n is None else n
        excess = len(self._messages) - limit
        if excess <= 0:
            return 0
        self._messages = self._messages[-limit:] if limit > 0 else []
        return excess

    def purge_expired(self, now: float) -> int:
        """Drop messages older than the TTL. Returns number dropped."""
        before = len(self._messages)
        self._messages = [m for m in self._messages if now - m.timestamp < self.ttl_seconds]
        dropped = before - len(self._messages)
        if dropped:
            logger.debug(f"Purged {dropped} expired messages")
        return dropped

    def clear(self) -> None:
        self._messages.clear()

    def recent(self, n: int = 10) -> list[Message]:
        """Last N messages."""
        return self._messages[-n:]

    def all(self) -> list[Message]:
        return list(self._messages)

    @property
    def total_messages(self) -> int:
        """Total messages ever logged."""
        return self._total

    def __len__(self) -> int:
        return len(self._messages)
