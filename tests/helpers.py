"""Shared test doubles for the cellnet test suite.

Deterministic stand-ins for the reasoning collaborators and the wall
clock, plus a helper to place cells at exact coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cellnet.cells.entities import Cell
from cellnet.cells.registry import CellRegistry
from cellnet.cells.roles import role_for_expertise
from cellnet.errors import InterpreterError, PlannerError
from cellnet.reasoning.protocols import ExpertiseRef, HelpSuggestion, RoutePlan
from cellnet.spatial.layout import Position


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FixedPlanner:
    """Returns a canned path and records every call."""

    path: list[str] = field(default_factory=list)
    rationale: str = "fixed"
    calls: list[tuple[str, str]] = field(default_factory=list)

    def plan(self, message, source_id, target_id, expertise, connections, condition=None):
        self.calls.append((source_id, target_id))
        return RoutePlan(list(self.path), self.rationale)


class FailingPlanner:
    """Always raises, like an unreachable planning service."""

    def plan(self, message, source_id, target_id, expertise, connections, condition=None):
        raise PlannerError("planner offline")


@dataclass
class FixedHelpInterpreter:
    """Marks the given cell ids as relevant."""

    relevant_ids: list[str] = field(default_factory=list)

    def interpret(self, cell_id, request_text, neighbor_expertise):
        relevant = [ref for ref in neighbor_expertise if ref.cell_id in self.relevant_ids]
        return HelpSuggestion(relevant=relevant, rationale="fixed")


class FailingHelpInterpreter:
    def interpret(self, cell_id, request_text, neighbor_expertise):
        raise InterpreterError("interpreter offline")


class FailingPurposeInterpreter:
    def interpret(self, purpose):
        raise InterpreterError("interpreter offline")


def place_cell(registry: CellRegistry, expertise: str, x: float, y: float) -> Cell:
    """Create a cell with the given expertise and pin it at (x, y)."""
    cell = registry.create(role=role_for_expertise(expertise))
    assert cell is not None
    cell.position = Position(x, y)
    cell.position_history.clear()
    cell.position_history.append(cell.position)
    return cell


def refs(*cells: Cell) -> list[ExpertiseRef]:
    return [ExpertiseRef(c.id, c.expertise) for c in cells]
