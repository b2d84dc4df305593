"""cellnet: a tick-driven simulation of autonomous cell agents."""

from cellnet.config import NetworkConfig
from cellnet.network import (
    CellNetwork,
    HelpOutcome,
    HelpResult,
    NetworkSnapshot,
    SendMode,
    SendResult,
)

__version__ = "0.1.0"

__all__ = [
    "CellNetwork",
    "HelpOutcome",
    "HelpResult",
    "NetworkConfig",
    "NetworkSnapshot",
    "SendMode",
    "SendResult",
]
