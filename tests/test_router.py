"""Tests for MessageRouter: policy, fallback and post-validation."""

from __future__ import annotations

import pytest

from cellnet.cells.entities import CellStatus
from cellnet.cells.identity import BROADCAST, USER
from cellnet.communication.router import MessageRouter, NetworkGraph
from cellnet.config import NetworkConfig
from cellnet.reasoning.local import ShortestPathPlanner
from cellnet.spatial.layout import Position
from tests.helpers import FailingPlanner, FixedPlanner


def line_graph(*ids: str, dead: tuple[str, ...] = ()) -> NetworkGraph:
    """Cells laid out left to right, each connected to its direct neighbors."""
    alive = [i for i in ids if i not in dead]
    connections = {i: [] for i in alive}
    for a, b in zip(ids, ids[1:]):
        if a in connections and b in connections:
            connections[a].append(b)
            connections[b].append(a)
    return NetworkGraph(
        connections=connections,
        expertise={i: f"Expert {i}" for i in alive},
        positions={i: Position(100.0 * n, 0.0) for n, i in enumerate(ids)},
    )


@pytest.fixture
def router(config: NetworkConfig) -> MessageRouter:
    return MessageRouter(ShortestPathPlanner(), config)


class TestRoutingPolicy:
    def test_never_routes_broadcast_user_or_direct(self, router: MessageRouter):
        long = "x" * 200
        assert not router.should_route("a", BROADCAST, long)
        assert not router.should_route("a", USER, long)
        assert not router.should_route("a", "b", long, direct=True)

    def test_user_source_always_routes(self, router: MessageRouter):
        assert router.should_route(USER, "b", "hi")

    def test_long_content_routes(self, router: MessageRouter, config: NetworkConfig):
        assert not router.should_route("a", "b", "x" * config.routing_min_content_length)
        assert router.should_route("a", "b", "x" * (config.routing_min_content_length + 1))

    def test_sleeping_target_routes(self, router: MessageRouter):
        assert router.should_route("a", "b", "hi", CellStatus.SLEEPING)
        assert not router.should_route("a", "b", "hi", CellStatus.ACTIVE)

    def test_sleeping_rule_is_configurable(self):
        router = MessageRouter(ShortestPathPlanner(), NetworkConfig(route_to_sleeping_targets=False))
        assert not router.should_route("a", "b", "hi", CellStatus.SLEEPING)


class TestRoute:
    def test_multi_hop_path(self, router: MessageRouter):
        result = router.route("a", "c", "hello", line_graph("a", "b", "c"))
        assert result.path == ["a", "b", "c"]
        assert result.reachable
        assert not result.degraded

    def test_same_cell(self, router: MessageRouter):
        result = router.route("a", "a", "hi", line_graph("a", "b"))
        assert result.path == ["a"]

    def test_dead_target_falls_back_to_nearest_neighbor(self, router: MessageRouter):
        """A dead target is replaced by the source's nearest alive neighbor."""
        graph = line_graph("a", "b", "c", dead=("c",))
        result = router.route("a", "c", "hi", graph)
        assert result.target_id == "b"
        assert result.path == ["a", "b"]
        assert result.degraded

    def test_unreachable_without_fallback(self, router: MessageRouter):
        """No living neighbor: single-element path and an unreachable rationale."""
        graph = line_graph("a", "x", dead=("x",))
        result = router.route("a", "x", "hi", graph)
        assert result.path == ["a"]
        assert not result.reachable
        assert "unreachable" in result.rationale

    def test_disconnected_alive_target(self, router: MessageRouter):
        graph = line_graph("a", "b")
        graph.connections = {"a": [], "b": []}
        result = router.route("a", "b", "hi", graph)
        assert result.path == ["a"]


class TestPostValidation:
    def test_planner_failure_uses_direct_link(self, config: NetworkConfig):
        router = MessageRouter(FailingPlanner(), config)
        result = router.route("a", "b", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a", "b"]
        assert result.degraded
        assert "planner offline" in result.rationale

    def test_planner_failure_without_direct_link(self, config: NetworkConfig):
        router = MessageRouter(FailingPlanner(), config)
        result = router.route("a", "c", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a"]

    def test_planner_returning_none_uses_direct_link(self, config: NetworkConfig):
        """A planner result that isn't a RoutePlan is treated as a planner failure."""

        class NonePlanner:
            def plan(self, message, source_id, target_id, expertise, connections, condition=None):
                return None

        router = MessageRouter(NonePlanner(), config)
        result = router.route("a", "b", "hi", line_graph("a", "b"))

        assert result.path == ["a", "b"]
        assert result.degraded
        assert "expected RoutePlan" in result.rationale

    def test_non_string_hops_use_direct_link(self, config: NetworkConfig):
        router = MessageRouter(FixedPlanner(path=["a", {"id": "b"}]), config)
        result = router.route("a", "b", "hi", line_graph("a", "b"))
        assert result.path == ["a", "b"]
        assert result.degraded
        assert "non-string" in result.rationale

    def test_malformed_plan_without_direct_link(self, config: NetworkConfig):
        router = MessageRouter(FixedPlanner(path=["a", ["b"], "c"]), config)
        result = router.route("a", "c", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a"]
        assert not result.reachable

    def test_empty_plan_falls_back_to_direct(self, config: NetworkConfig):
        router = MessageRouter(FixedPlanner(path=[]), config)
        result = router.route("a", "b", "hi", line_graph("a", "b"))
        assert result.path == ["a", "b"]
        assert result.degraded

    def test_source_prepended_and_target_appended(self, config: NetworkConfig):
        router = MessageRouter(FixedPlanner(path=["b"]), config)
        result = router.route("a", "c", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a", "b", "c"]
        assert result.degraded

    def test_repeated_hops_removed(self, config: NetworkConfig):
        router = MessageRouter(FixedPlanner(path=["a", "b", "a", "b", "c"]), config)
        result = router.route("a", "c", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a", "b", "c"]

    def test_dead_hops_filtered(self, config: NetworkConfig, caplog):
        graph = line_graph("a", "b", "c")
        graph.connections["a"].append("c")
        graph.connections["c"].append("a")
        router = MessageRouter(FixedPlanner(path=["a", "ghost", "c"]), config)

        result = router.route("a", "c", "hi", graph)

        assert result.path == ["a", "c"]
        assert "Degraded route" in caplog.text

    def test_path_cut_at_unconnected_hop(self, config: NetworkConfig):
        """A planner path that jumps between unconnected cells is truncated."""
        graph = line_graph("a", "b", "c", "d")
        router = MessageRouter(FixedPlanner(path=["a", "c", "d"]), config)

        result = router.route("a", "d", "hi", graph)

        assert result.path == ["a"]
        assert result.degraded

    def test_valid_plan_passes_unchanged(self, config: NetworkConfig):
        planner = FixedPlanner(path=["a", "b", "c"], rationale="via b")
        router = MessageRouter(planner, config)
        result = router.route("a", "c", "hi", line_graph("a", "b", "c"))
        assert result.path == ["a", "b", "c"]
        assert result.rationale == "via b"
        assert not result.degraded
        assert planner.calls == [("a", "c")]


def test_graph_from_registry(registry, config: NetworkConfig):
    from tests.helpers import place_cell

    a = place_cell(registry, "Data Analyzer", 100, 100)
    b = place_cell(registry, "Task Router", 200, 100)
    graph = NetworkGraph.from_registry(registry, config.connection_radius)
    assert graph.connected(a.id, b.id)
    assert graph.nearest_alive_neighbor(a.id) == b.id
