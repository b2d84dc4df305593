"""Deterministic local reasoning collaborators.

Used when no LLM endpoint is configured, and as reproducible stand-ins in
tests. They honor the same contracts as the LLM-backed implementations.
"""

from __future__ import annotations

import re
from collections import deque

from cellnet.cells.roles import PREDEFINED_ROLES
from cellnet.reasoning.protocols import ExpertiseRef, HelpSuggestion, RoutePlan

_WORD_RE = re.compile(r"[a-z]+")
_STOPWORDS = frozenset(
    {"with", "from", "that", "this", "need", "help", "please", "have", "some", "your", "into"}
)


def stems(text: str, min_length: int = 4) -> set[str]:
    """Crude word stems (first five letters) for keyword overlap."""
    return {
        w[:5] for w in _WORD_RE.findall(text.lower()) if len(w) >= min_length and w not in _STOPWORDS
    }


class ShortestPathPlanner:
    """Breadth-first route planner.

    Returns a shortest hop path over the connection map. Among neighbors at
    the same depth, cells whose expertise shares words with the message are
    explored first, so equally short paths through relevant experts win.
    """

    def plan(
        self,
        message: str,
        source_id: str,
        target_id: str,
        expertise: dict[str, str],
        connections: dict[str, list[str]],
        condition: str | None = None,
    ) -> RoutePlan:
        if source_id == target_id:
            return RoutePlan([source_id], "Source and target are the same cell.")

        wanted = stems(message)

        def relevance(cell_id: str) -> int:
            return len(wanted & stems(expertise.get(cell_id, "")))

        parents: dict[str, str | None] = {source_id: None}
        queue = deque([source_id])
        while queue:
            current = queue.popleft()
            if current == target_id:
                break
            options = [n for n in connections.get(current, []) if n in expertise]
            options.sort(key=lambda n: (-relevance(n), n))
            for neighbor in options:
                if neighbor not in parents:
                    parents[neighbor] = current
                    queue.append(neighbor)

        if target_id not in parents:
            return RoutePlan([source_id], f"No path from {source_id} to {target_id}.")

        path = [target_id]
        while parents[path[-1]] is not None:
            path.append(parents[path[-1]])
        path.reverse()
        hops = len(path) - 1
        return RoutePlan(path, f"Shortest path with {hops} hop{'s' if hops != 1 else ''}.")


class KeywordHelpInterpreter:
    """Matches help requests to neighbors by expertise keyword overlap."""

    def interpret(
        self,
        cell_id: str,
        request_text: str,
        neighbor_expertise: list[ExpertiseRef],
    ) -> HelpSuggestion:
        wanted = stems(request_text)
        relevant = [ref for ref in neighbor_expertise if wanted & stems(ref.expertise)]
        if relevant:
            names = ", ".join(sorted({r.expertise for r in relevant}))
            rationale = f"Request mentions topics covered by: {names}."
        else:
            rationale = "No neighbor expertise overlaps with the request."
        return HelpSuggestion(relevant=relevant, rationale=rationale)


class StaticPurposeInterpreter:
    """Offline guidance: maps the purpose onto the predefined roles."""

    def interpret(self, purpose: str) -> str:
        wanted = stems(purpose)
        matched = [r for r in PREDEFINED_ROLES if wanted & stems(f"{r.expertise} {r.goal}")]
        if not matched:
            return f"No specific guidance for '{purpose}'. Keep the default role mix."
        roles = ", ".join(r.expertise for r in matched)
        return f"Emphasize {roles} to serve the purpose '{purpose}'."
