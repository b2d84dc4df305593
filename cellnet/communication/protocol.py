"""Message protocol: the transient records shown in the chat-like log."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    """A message between cells (or the user). Immutable after creation."""

    id: str
    source_id: str  # cell id | "user"
    target_id: str  # cell id | "broadcast" | "user"
    content: str
    timestamp: float
    route: tuple[str, ...] | None = None  # path taken, when routed

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "content": self.content,
            "timestamp": self.timestamp,
            "route": list(self.route) if self.route else None,
        }


def create_message(
    source_id: str,
    target_id: str,
    content: str,
    route: list[str] | tuple[str, ...] | None = None,
    timestamp: float | None = None,
) -> Message:
    """Factory for creating messages with auto-generated IDs."""
    return Message(
        id=uuid.uuid4().hex[:12],
        source_id=source_id,
        target_id=target_id,
        content=content,
        timestamp=time.time() if timestamp is None else timestamp,
        route=tuple(route) if route else None,
    )
