"""Message router: path resolution with mandatory post-validation.

Path *choice* is delegated to an external planner; structural correctness
(connectivity, liveness, endpoints) is enforced here against the
registry's ground truth.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cellnet.cells.entities import CellStatus
from cellnet.cells.identity import BROADCAST, USER
from cellnet.cells.registry import CellRegistry
from cellnet.config import NetworkConfig
from cellnet.errors import PlannerError
from cellnet.reasoning.protocols import RoutePlan, RoutePlanner
from cellnet.spatial.layout import Position

logger = logging.getLogger(__name__)


@dataclass
class NetworkGraph:
    """Connectivity ground truth: alive cells, their expertise and links."""

    connections: dict[str, list[str]] = field(default_factory=dict)
    expertise: dict[str, str] = field(default_factory=dict)
    positions: dict[str, Position] = field(default_factory=dict)

    @classmethod
    def from_registry(cls, registry: CellRegistry, radius: float) -> NetworkGraph:
        return cls(
            connections=registry.connections(radius),
            expertise=registry.expertise_map(),
            positions=registry.positions(),
        )

    def is_alive(self, cell_id: str) -> bool:
        return cell_id in self.expertise

    def connected(self, a: str, b: str) -> bool:
        return b in self.connections.get(a, [])

    def nearest_alive_neighbor(self, cell_id: str) -> str | None:
        neighbors = [n for n in self.connections.get(cell_id, []) if self.is_alive(n)]
        origin = self.positions.get(cell_id)
        if not neighbors:
            return None
        if origin is None:
            return neighbors[0]
        return min(neighbors, key=lambda n: origin.distance_to(self.positions[n]))


@dataclass
class RouteResult:
    """Outcome of a routing attempt.

    A single-element path means the target is unreachable from the source.
    """

    path: list[str]
    rationale: str
    target_id: str  # the target actually routed to (may be a fallback)
    degraded: bool = False

    @property
    def reachable(self) -> bool:
        return len(self.path) > 1

    @property
    def final_hop(self) -> str:
        return self.path[-1]


class MessageRouter:
    """Resolves multi-hop paths through the connectivity graph."""

    def __init__(self, planner: RoutePlanner, config: NetworkConfig | None = None):
        self.planner = planner
        self.config = config or NetworkConfig()

    def should_route(
        self,
        source_id: str,
        target_id: str,
        content: str,
        target_status: CellStatus | None = None,
        direct: bool = False,
    ) -> bool:
        """Routing policy: is multi-hop routing worth invoking at all?"""
        if direct or target_id in (BROADCAST, USER):
            return False
        if source_id == USER:
            return True
        if len(content) > self.config.routing_min_content_length:
            return True
        return self.config.route_to_sleeping_targets and target_status == CellStatus.SLEEPING

    def route(
        self,
        source_id: str,
        target_id: str,
        content: str,
        graph: NetworkGraph,
        condition: str | None = None,
    ) -> RouteResult:
        """Resolve a path from source to target. Never raises."""
        if source_id == target_id:
            return RouteResult([source_id], "Source and target are the same cell.", target_id)

        degraded = False
        notes: list[str] = []
        if not graph.is_alive(target_id):
            fallback = graph.nearest_alive_neighbor(source_id)
            if fallback is None:
                logger.warning(f"No alive neighbors found for {source_id} to route message")
                return RouteResult(
                    [source_id],
                    f"Target cell {target_id} is unreachable and no fallback neighbors found.",
                    target_id,
                    degraded=True,
                )
            logger.info(f"Target {target_id} not alive, routing towards neighbor {fallback}")
            notes.append(f"Target {target_id} unavailable; rerouted to neighbor {fallback}.")
            target_id = fallback
            degraded = True

        try:
            plan = self.planner.plan(
                content,
                source_id,
                target_id,
                dict(graph.expertise),
                {k: list(v) for k, v in graph.connections.items()},
                condition,
            )
            planned, plan_rationale = _coerce_plan(plan)
        except Exception as e:
            logger.warning(f"Route planner failed: {e}")
            path = self._direct(source_id, target_id, graph)
            return RouteResult(
                path,
                " ".join(notes + [f"Error during route planning: {e}. Attempting direct connection."]),
                target_id,
                degraded=True,
            )

        path, validation_notes, repaired = self._validate(planned, source_id, target_id, graph)
        rationale = " ".join(filter(None, notes + [plan_rationale] + validation_notes))
        return RouteResult(path, rationale.strip(), target_id, degraded=degraded or repaired)

    def _direct(self, source_id: str, target_id: str, graph: NetworkGraph) -> list[str]:
        if graph.connected(source_id, target_id) and graph.is_alive(target_id):
            return [source_id, target_id]
        return [source_id]

    def _validate(
        self,
        path: list[str],
        source_id: str,
        target_id: str,
        graph: NetworkGraph,
    ) -> tuple[list[str], list[str], bool]:
        """Post-validate a planner path against ground truth.

        Returns (path, notes, repaired).
        """
        notes: list[str] = []
        if not path:
            logger.warning("Planner returned an empty route, falling back to direct connection")
            direct = self._direct(source_id, target_id, graph)
            notes.append("Planner returned no usable route. Attempting direct connection.")
            return direct, notes, True

        repaired = False
        if path[0] != source_id:
            logger.warning("Planned route doesn't start with the source cell, prepending")
            path.insert(0, source_id)
            repaired = True

        # Simple path: drop repeated hops
        seen: set[str] = set()
        simple = []
        for hop in path:
            if hop not in seen:
                seen.add(hop)
                simple.append(hop)
        if len(simple) != len(path):
            repaired = True
            notes.append("(Removed repeated hops.)")
        path = simple

        alive = [hop for hop in path if hop == source_id or graph.is_alive(hop)]
        if len(alive) != len(path):
            logger.warning("Degraded route: planned route contains dead or non-existent cells")
            notes.append("(Filtered out invalid cells from route.)")
            repaired = True
        path = alive

        # Keep the longest prefix of directly connected hops
        connected = [path[0]]
        for hop in path[1:]:
            if not graph.connected(connected[-1], hop):
                logger.warning(f"Degraded route: {connected[-1]} is not connected to {hop}")
                notes.append(f"(Route cut at unconnected hop {hop}.)")
                repaired = True
                break
            connected.append(hop)
        path = connected

        if path[-1] != target_id:
            if graph.connected(path[-1], target_id):
                path.append(target_id)
                notes.append("(Appended final target step.)")
                repaired = True
            else:
                logger.warning(f"Cannot append target {target_id}, route is incomplete")
                notes.append("(Route does not reach the target. Attempting direct connection.)")
                return self._direct(source_id, target_id, graph), notes, True

        return path, notes, repaired


def _coerce_plan(plan: object) -> tuple[list[str], str]:
    """Check a planner result's shape.

    Raises:
        PlannerError: If it is not a RoutePlan of string cell ids
    """
    if not isinstance(plan, RoutePlan):
        raise PlannerError(f"Planner returned {type(plan).__name__}, expected RoutePlan")
    path = list(plan.path or [])
    if not all(isinstance(hop, str) for hop in path):
        raise PlannerError("Planner returned a route with non-string cell ids")
    return path, str(plan.rationale or "")
