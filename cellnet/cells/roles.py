"""Predefined cell roles and role classification helpers.

Roles are informational labels (expertise + goal). They drive routing
preferences, message reactions and the sleep policy, never the structure
of the network.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Role:
    """An expertise label and the goal that comes with it."""

    expertise: str
    goal: str


PREDEFINED_ROLES: tuple[Role, ...] = (
    Role("Data Collector", "Gather information from sensors and network messages"),
    Role("Data Analyzer", "Process raw data to find patterns and anomalies"),
    Role("Task Router", "Direct incoming tasks to the appropriate specialist cell"),
    Role("Network Communicator", "Relay important findings between cell groups"),
    Role("Long-Term Memory", "Store and retrieve historical data for context"),
    Role("System Coordinator", "Oversee network health and resource allocation"),
    Role("Security Monitor", "Detect and report potential intrusions or malfunctions"),
    Role("Resource Allocator", "Distribute energy or computational resources efficiently"),
    Role("Predictive Modeler", "Forecast future network states based on current trends"),
    Role("User Interface Liaison", "Format data and responses for user interaction"),
    Role("Temperature Sensor", "Monitor ambient temperature and alert on anomalies"),
    Role("Motion Sensor", "Report movement events to the analyzers"),
)

CRITICAL_KEYWORDS = ("monitor", "security", "alert", "coordinat")
GENERIC_KEYWORDS = ("general", "generic", "basic", "assist", "misc")


def role_for_expertise(expertise: str) -> Role:
    """Return the predefined role for an expertise, or a generic one."""
    wanted = expertise.strip().lower()
    for role in PREDEFINED_ROLES:
        if role.expertise.lower() == wanted:
            return role
    return Role(expertise.strip(), f"Support the network as a {expertise.strip()}")


def least_represented_role(counts: dict[str, int]) -> Role:
    """Pick the predefined role with the fewest cells.

    Ties are broken by declaration order.
    """
    best = PREDEFINED_ROLES[0]
    best_count = counts.get(best.expertise, 0)
    for role in PREDEFINED_ROLES[1:]:
        count = counts.get(role.expertise, 0)
        if count < best_count:
            best, best_count = role, count
    return best


def is_critical(expertise: str, goal: str) -> bool:
    """Critical duty: a monitoring/security/alerting/coordinating role that is not generic."""
    text = f"{expertise} {goal}".lower()
    if not any(k in text for k in CRITICAL_KEYWORDS):
        return False
    return not any(k in text for k in GENERIC_KEYWORDS)


def expertise_matches(expertise: str, wanted: str) -> bool:
    """Loose match between a cell's expertise and a requested expertise token."""
    have = expertise.strip().lower()
    want = wanted.strip().lower()
    if not have or not want:
        return False
    return have == want or want in have or have in want


def singular_role_suffix(word: str) -> str:
    """'sensors' -> 'sensor'; used by the color commands."""
    word = word.strip().lower()
    if word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word
