"""Contracts for the external reasoning collaborators.

The engine consumes these through narrow interfaces and treats every call
as failable. Implementations live in `cellnet.reasoning.local` (deterministic)
and `cellnet.reasoning.llm` (OpenAI-compatible endpoint).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ExpertiseRef:
    """A cell and its stated expertise."""

    cell_id: str
    expertise: str


@dataclass
class RoutePlan:
    """A planner's proposed path. Untrusted until post-validated."""

    path: list[str] = field(default_factory=list)
    rationale: str = ""


@dataclass
class HelpSuggestion:
    """Which neighbors should receive a targeted help message."""

    relevant: list[ExpertiseRef] = field(default_factory=list)
    rationale: str = ""


@runtime_checkable
class RoutePlanner(Protocol):
    def plan(
        self,
        message: str,
        source_id: str,
        target_id: str,
        expertise: dict[str, str],
        connections: dict[str, list[str]],
        condition: str | None = None,
    ) -> RoutePlan: ...


@runtime_checkable
class HelpInterpreter(Protocol):
    def interpret(
        self,
        cell_id: str,
        request_text: str,
        neighbor_expertise: list[ExpertiseRef],
    ) -> HelpSuggestion: ...


@runtime_checkable
class PurposeInterpreter(Protocol):
    def interpret(self, purpose: str) -> str: ...
