"""End-to-end tests for the CellNetwork facade."""

from __future__ import annotations

import dataclasses

import pytest

from cellnet.cells.entities import CellStatus
from cellnet.cells.history import HistoryType
from cellnet.cells.identity import BROADCAST, USER
from cellnet.config import NetworkConfig
from cellnet.errors import PurposeError, ValidationError
from cellnet.network import NO_GUIDANCE, CellNetwork, HelpOutcome, SendMode
from cellnet.reasoning.local import ShortestPathPlanner, StaticPurposeInterpreter
from tests.helpers import (
    FailingHelpInterpreter,
    FailingPurposeInterpreter,
    FixedHelpInterpreter,
    place_cell,
)


def make_network(config: NetworkConfig, clock, **collaborators) -> CellNetwork:
    collaborators.setdefault("planner", ShortestPathPlanner())
    collaborators.setdefault("purpose_interpreter", StaticPurposeInterpreter())
    collaborators.setdefault("help_interpreter", FixedHelpInterpreter())
    return CellNetwork(config, clock=clock, **collaborators)


LONG = "thank you, this is a deliberately long message that has to be routed"


class TestInitialization:
    def test_initialize_ten_cells(self, network: CellNetwork):
        """Ten alive cells, age 0, version 1, one init entry each."""
        created = network.initialize_network(10)

        snapshot = network.snapshot()
        assert len(created) == 10
        assert len(snapshot.cells) == 10
        for cell in snapshot.cells.values():
            assert cell.is_alive
            assert cell.age == 0
            assert cell.version == 1
            assert len(cell.history) == 1
            assert cell.history[0].type == HistoryType.INIT

    def test_reinitialize_discards_previous_state(self, network: CellNetwork):
        network.initialize_network(5)
        network.tick()
        network.send_message(USER, BROADCAST, "hello")

        network.initialize_network(3)

        assert len(network.snapshot().cells) == 3
        assert network.tick_count == 0
        assert network.snapshot().messages == ()

    def test_initialize_is_capped(self, clock):
        network = make_network(NetworkConfig(seed=1, max_cells=4), clock)
        assert len(network.initialize_network(10)) == 4

    def test_negative_count_rejected(self, network: CellNetwork):
        with pytest.raises(ValidationError):
            network.initialize_network(-1)


class TestLifecycle:
    def test_death_at_one_hundred(self, network: CellNetwork):
        network.initialize_network(1)
        cell = network.registry.all_cells()[0]
        cell.age = 99

        network.tick()

        snap = network.get_cell_by_id(cell.id)
        assert snap.age == 100
        assert not snap.is_alive
        assert snap.status == CellStatus.SLEEPING
        assert snap.history[-1].type == HistoryType.DEATH

        for _ in range(3):
            network.tick()
        assert network.get_cell_by_id(cell.id).age == 100

    def test_add_and_clone(self, network: CellNetwork):
        parent = network.add_cell(expertise="Data Analyzer")
        child = network.add_cell(parent_id=parent.id)

        assert parent.expertise == "Data Analyzer"
        assert child.parent_id == parent.id
        assert parent.id in child.liked_cells

    def test_add_at_capacity_returns_none(self, clock):
        network = make_network(NetworkConfig(seed=1, max_cells=1), clock)
        assert network.add_cell() is not None
        assert network.add_cell() is None

    def test_remove_prunes_likes(self, network: CellNetwork):
        a = network.add_cell()
        b = network.add_cell()
        network.registry.get(a.id).like(b.id)

        assert network.remove_cell(b.id)

        assert network.get_cell_by_id(b.id) is None
        assert b.id not in network.get_cell_by_id(a.id).liked_cells
        assert not network.remove_cell(b.id)

    def test_snapshots_are_read_only(self, network: CellNetwork):
        cell = network.add_cell()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cell.age = 5


class TestQueries:
    def test_connections_idempotent(self, network: CellNetwork):
        network.initialize_network(12)
        assert network.get_cell_connections() == network.get_cell_connections()

    def test_neighbors_default_radius(self, network: CellNetwork, config: NetworkConfig):
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Data Analyzer", 100 + config.neighbor_radius - 1, 100)
        place_cell(network.registry, "Task Router", 100 + config.neighbor_radius + 20, 100)

        assert [n.id for n in network.get_neighbors(a.id)] == [b.id]
        assert len(network.get_neighbors(a.id, radius=500)) == 2

    def test_snapshot_to_dict(self, network: CellNetwork):
        network.initialize_network(2)
        data = network.snapshot().to_dict()
        assert data["tick_count"] == 0
        assert len(data["cells"]) == 2


class TestSendMessage:
    def test_routed_round_trip_reacts_only_at_target(self, network: CellNetwork):
        """A routed message is received by every hop; only the target reacts."""
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Task Router", 220, 100)
        c = place_cell(network.registry, "Data Analyzer", 340, 100)

        result = network.send_message(a.id, c.id, LONG)

        assert result.mode == SendMode.ROUTED
        assert result.path == [a.id, b.id, c.id]
        assert result.recipients == [b.id, c.id]
        assert a.id in c.liked_cells
        assert a.id not in b.liked_cells
        assert network.messages.all()[-1].route == (a.id, b.id, c.id)

    def test_unreachable_target_returns_source_only(self, network: CellNetwork):
        """No connectivity and no fallback neighbor: [source] without raising."""
        a = place_cell(network.registry, "Data Collector", 100, 100)

        result = network.send_message(a.id, "missing", "hello")

        assert result.path == [a.id]
        assert result.mode == SendMode.UNREACHABLE
        assert "unreachable" in result.rationale
        assert result.degraded
        assert "Could not route" in a.history.last().text

    def test_dead_target_reroutes_to_neighbor(self, network: CellNetwork):
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Task Router", 150, 100)
        c = place_cell(network.registry, "Data Analyzer", 400, 400)
        c.die("gone")

        result = network.send_message(a.id, c.id, "hello")

        assert result.mode == SendMode.ROUTED
        assert result.path == [a.id, b.id]
        assert result.degraded

    def test_short_message_is_direct(self, network: CellNetwork):
        """Short messages to awake cells skip routing, regardless of distance."""
        a = place_cell(network.registry, "Data Collector", 20, 20)
        b = place_cell(network.registry, "Task Router", 480, 480)

        result = network.send_message(a.id, b.id, "hello")

        assert result.mode == SendMode.DIRECT
        assert result.path == [a.id, b.id]
        assert b.history.last().text == f'Received from {a.id}: "hello"'

    def test_sleeping_target_is_routed(self, network: CellNetwork):
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Task Router", 150, 100)
        b.fall_asleep("idle")

        result = network.send_message(a.id, b.id, "wake up")

        assert result.mode == SendMode.ROUTED
        assert b.status == CellStatus.ACTIVE

    def test_direct_flag_bypasses_routing(self, network: CellNetwork):
        a = place_cell(network.registry, "Data Collector", 20, 20)
        b = place_cell(network.registry, "Task Router", 480, 480)
        result = network.send_message(a.id, b.id, LONG, direct=True)
        assert result.mode == SendMode.DIRECT

    def test_sender_records_sent_entry(self, network: CellNetwork):
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Task Router", 150, 100)
        network.send_message(a.id, b.id, "hello")
        assert f'Sent to {b.id}: "hello"' in [e.text for e in a.history]

    def test_broadcast_color_command_sets_sensors(self, network: CellNetwork):
        """Only cells whose expertise ends in Sensor change color."""
        network.initialize_network(6)
        network.add_cell(expertise="Temperature Sensor")
        network.add_cell(expertise="Motion Sensor")

        result = network.send_message(USER, BROADCAST, "color all sensors green")

        assert result.mode == SendMode.BROADCAST
        colors = {c.expertise: c.indicator_color for c in network.snapshot().cells.values()}
        for expertise, color in colors.items():
            if expertise.endswith("Sensor"):
                assert color == "green"
            else:
                assert color is None
        assert colors["Motion Sensor"] == "green"

    def test_reply_is_delivered_after_operation(self, network: CellNetwork):
        """Replies run when the triggering operation finishes."""
        cell = network.add_cell(expertise="Data Analyzer")

        network.send_message(USER, cell.id, "purpose?")

        replies = [m for m in network.messages.all() if m.target_id == USER]
        assert len(replies) == 1
        assert replies[0].source_id == cell.id
        assert replies[0].content.startswith("My purpose is:")

    def test_role_work_completes_on_later_ticks(self, network: CellNetwork):
        cell = network.add_cell(expertise="Data Analyzer")

        network.send_message(USER, cell.id, "Analyze: quarterly numbers")
        assert not [m for m in network.messages.all() if m.target_id == USER]

        network.tick()
        network.tick()

        replies = [m for m in network.messages.all() if m.target_id == USER]
        assert len(replies) == 1
        assert replies[0].content.startswith("Analysis complete")

    def test_dead_source_is_unreachable(self, network: CellNetwork):
        a = network.add_cell()
        network.registry.get(a.id).die("gone")
        result = network.send_message(a.id, USER, "hello")
        assert result.mode == SendMode.UNREACHABLE
        assert result.message is None

    def test_message_to_user(self, network: CellNetwork):
        a = network.add_cell()
        result = network.send_message(a.id, USER, "report")
        assert result.mode == SendMode.USER
        assert network.messages.all()[-1].target_id == USER

    def test_user_message_without_cells(self, network: CellNetwork):
        result = network.send_message(USER, "abc", "hello")
        assert result.mode == SendMode.UNREACHABLE

    def test_blank_content_rejected(self, network: CellNetwork):
        a = network.add_cell()
        with pytest.raises(ValidationError):
            network.send_message(a.id, USER, "   ")

    def test_snapshot_drops_expired_messages(self, network: CellNetwork, clock, config):
        """Expired messages disappear from snapshots even without ticks."""
        network.initialize_network(2)
        network.send_message(USER, BROADCAST, "hello")
        assert len(network.snapshot().messages) == 1

        clock.advance(config.message_ttl_seconds + 1)

        assert network.snapshot().messages == ()

    def test_malformed_plan_does_not_escape(self, config: NetworkConfig, clock):
        class NonePlanner:
            def plan(self, message, source_id, target_id, expertise, connections, condition=None):
                return None

        network = make_network(config, clock, planner=NonePlanner())
        a = place_cell(network.registry, "Data Collector", 100, 100)
        b = place_cell(network.registry, "Task Router", 150, 100)

        result = network.send_message(a.id, b.id, LONG)

        assert result.path == [a.id, b.id]
        assert result.degraded

    def test_clear_messages(self, network: CellNetwork):
        network.initialize_network(2)
        network.send_message(USER, BROADCAST, "hello")
        network.clear_messages()
        assert network.snapshot().messages == ()


class TestHelp:
    def test_targeted_help(self, config: NetworkConfig, clock):
        network = make_network(config, clock)
        asker = place_cell(network.registry, "Data Collector", 100, 100)
        helper = place_cell(network.registry, "Data Analyzer", 150, 100)
        network.help_interpreter = FixedHelpInterpreter([helper.id])

        result = network.ask_for_help(asker.id, "crunching numbers")

        assert result.outcome == HelpOutcome.TARGETED
        assert result.targets == [helper.id]
        assert helper.id in asker.liked_cells
        texts = [e.text for e in asker.history]
        assert "Asking neighbors for help: crunching numbers" in texts
        # The offer comes back once the request has been handled
        assert any(t.startswith("Received") for t in texts)

    def test_no_neighbors(self, network: CellNetwork):
        lonely = place_cell(network.registry, "Data Collector", 20, 20)
        place_cell(network.registry, "Data Analyzer", 480, 480)

        result = network.ask_for_help(lonely.id, "anything")

        assert result.outcome == HelpOutcome.NO_NEIGHBORS
        assert lonely.history.last().text.startswith("Tried to ask for help")

    def test_empty_suggestion_broadcasts(self, config: NetworkConfig, clock):
        network = make_network(config, clock, help_interpreter=FixedHelpInterpreter([]))
        asker = place_cell(network.registry, "Data Collector", 100, 100)
        other = place_cell(network.registry, "Task Router", 150, 100)

        result = network.ask_for_help(asker.id, "anything")

        assert result.outcome == HelpOutcome.BROADCAST
        assert result.targets == [other.id]
        assert not result.degraded

    def test_interpreter_failure_falls_back_to_broadcast(self, config: NetworkConfig, clock):
        network = make_network(config, clock, help_interpreter=FailingHelpInterpreter())
        asker = place_cell(network.registry, "Data Collector", 100, 100)
        place_cell(network.registry, "Task Router", 150, 100)

        result = network.ask_for_help(asker.id, "anything")

        assert result.outcome == HelpOutcome.BROADCAST
        assert result.degraded
        assert "interpreter offline" in result.rationale

    def test_dead_cell_cannot_ask(self, network: CellNetwork):
        a = network.add_cell()
        network.registry.get(a.id).die("gone")
        assert network.ask_for_help(a.id, "help").outcome == HelpOutcome.UNAVAILABLE
        assert network.ask_for_help("nobody", "help").outcome == HelpOutcome.UNAVAILABLE

    def test_blank_request_rejected(self, network: CellNetwork):
        a = network.add_cell()
        with pytest.raises(ValidationError):
            network.ask_for_help(a.id, "")


class TestPurpose:
    def test_set_purpose_returns_guidance(self, network: CellNetwork):
        guidance = network.set_purpose("monitor security alerts")
        assert network.purpose == "monitor security alerts"
        assert "Security Monitor" in guidance
        assert network.snapshot().guidance == guidance

    def test_purpose_failure_raises_after_fallback(self, config: NetworkConfig, clock):
        network = make_network(config, clock, purpose_interpreter=FailingPurposeInterpreter())

        with pytest.raises(PurposeError):
            network.set_purpose("anything")

        assert network.purpose == "anything"
        assert network.guidance == NO_GUIDANCE

    def test_initialization_sets_default_purpose(self, network: CellNetwork):
        network.initialize_network(4)
        assert network.purpose == (
            "Network initialized with 4 specialized cells working towards various goals."
        )
        assert network.snapshot().guidance is None

    def test_guidance_recorded_on_first_alive_cell(self, network: CellNetwork):
        network.initialize_network(3)
        first, second, _ = network.registry.all_cells()
        first.die("gone")

        guidance = network.set_purpose("monitor security alerts")

        entry = second.history.last()
        assert entry.type == HistoryType.DECISION
        assert entry.text == f"Network purpose updated. Guidance: {guidance[:100]}" + (
            "..." if len(guidance) > 100 else ""
        )

    def test_blank_purpose_rejected(self, network: CellNetwork):
        with pytest.raises(ValidationError):
            network.set_purpose(" ")


def test_run_pending_tasks(network: CellNetwork):
    ran: list[int] = []
    network.tasks.schedule(0, "manual", lambda: ran.append(1))
    assert network.run_pending_tasks() == 1
    assert ran == [1]
