"""Cell identity: short opaque identifiers."""

from __future__ import annotations

import uuid

# Pseudo-ids that may appear as message endpoints but never name a cell.
USER = "user"
BROADCAST = "broadcast"
SELF = "self"

RESERVED_IDS = frozenset({USER, BROADCAST, SELF})


def new_cell_id(length: int = 8) -> str:
    """Return a fresh short identifier wrapping a UUID4."""
    value = uuid.uuid4().hex[:length]
    # Vanishingly unlikely, but a cell must never shadow a pseudo-id.
    while value in RESERVED_IDS:
        value = uuid.uuid4().hex[:length]
    return value


def is_cell_id(value: str) -> bool:
    """True if value could name a cell (i.e. is not a reserved endpoint)."""
    return bool(value) and value not in RESERVED_IDS
