from __future__ import annotations

import random

import pytest

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.engine import SimulationEngine
from telemetriq.server.broadcaster import CommandMessage, EventBroadcaster


def _names(events) -> list[str]:
    return [e.name for e in events]


@pytest.fixture
def broadcaster(engine) -> EventBroadcaster:
    return EventBroadcaster(engine)


def test_subscribe_queues_exactly_one_snapshot(broadcaster):
    sub = broadcaster.subscribe()
    events = sub.drain()

    assert _names(events) == ["initialData"]
    snap = events[0].payload
    assert len(snap["data"]) == 20
    assert snap["isShutdown"] is False
    assert snap["health"] == 100.0


def test_late_subscriber_sees_current_state_not_history(broadcaster):
    early = broadcaster.subscribe()
    broadcaster.tick()
    broadcaster.toggle_fault("overheating")

    late = broadcaster.subscribe()
    late_events = late.drain()
    assert _names(late_events) == ["initialData"]
    assert late_events[0].payload["faults"]["overheating"] == "Warning"

    assert _names(early.drain()) == ["initialData", "newData", "healthUpdate", "faultUpdate"]


def test_every_subscriber_gets_deltas_in_order(broadcaster):
    subs = [broadcaster.subscribe() for _ in range(3)]
    for s in subs:
        s.drain()

    broadcaster.tick()
    broadcaster.tick()

    for s in subs:
        assert _names(s.drain()) == ["newData", "healthUpdate", "newData", "healthUpdate"]
    assert broadcaster.get_stats()["total_events_published"] == 4


def test_unsubscribed_client_receives_nothing(broadcaster):
    sub = broadcaster.subscribe()
    sub.drain()
    broadcaster.unsubscribe(sub)
    broadcaster.tick()

    assert sub.drain() == []
    assert broadcaster.subscriber_count == 0
    # unsubscribing twice is harmless
    broadcaster.unsubscribe(sub)


def test_handle_message_dispatches_commands(broadcaster):
    sub = broadcaster.subscribe()
    sub.drain()

    broadcaster.handle_message({"type": "toggleFault", "id": "gripperMalfunction"})
    broadcaster.handle_message({"type": "shutdownSystem"})
    broadcaster.handle_message({"type": "restartSystem"})

    events = sub.drain()
    assert _names(events) == ["faultUpdate", "shutdown", "systemReset"]
    assert events[0].payload["gripperMalfunction"] == "Warning"
    assert events[2].payload["isShutdown"] is False


@pytest.mark.parametrize(
    "message",
    [
        {"type": "explode"},
        {"id": "overheating"},
        "toggleFault",
        None,
        {"type": "toggleFault"},
        {"type": "toggleFault", "id": "flux_capacitor"},
    ],
)
def test_malformed_or_unknown_commands_are_ignored(broadcaster, message):
    sub = broadcaster.subscribe()
    sub.drain()
    assert broadcaster.handle_message(message) == []
    assert sub.drain() == []


def test_halted_system_publishes_no_telemetry_or_fault_updates():
    engine = SimulationEngine(TelemetrIQConfig(seed=5), rng=random.Random(5))
    b = EventBroadcaster(engine)
    sub = b.subscribe()
    sub.drain()

    b.shutdown_system()
    for _ in range(3):
        b.tick()
    b.toggle_fault("overheating")

    assert _names(sub.drain()) == ["shutdown"]

    b.restart_system()
    b.tick()
    assert _names(sub.drain()) == ["systemReset", "newData", "healthUpdate"]


def test_command_message_model():
    cmd = CommandMessage.model_validate({"type": "toggleFault", "id": "commDelay"})
    assert cmd.type == "toggleFault"
    assert cmd.id == "commDelay"
    assert CommandMessage.model_validate({"type": "restartSystem"}).id is None


def test_event_wire_format(broadcaster):
    sub = broadcaster.subscribe()
    msg = sub.drain()[0].to_message()
    assert set(msg) == {"event", "data"}
    assert msg["event"] == "initialData"


def test_stalled_subscriber_is_dropped_without_blocking_others(engine):
    b = EventBroadcaster(engine, max_queue=3)
    slow = b.subscribe()
    fast = b.subscribe()

    for _ in range(3):
        fast.drain()
        b.tick()

    assert slow.dropped
    assert b.subscriber_count == 1
    # pending events are discarded and only the close marker remains
    assert slow.drain() == [None]
    assert _names(fast.drain()) == ["newData", "healthUpdate"]

    b.tick()
    assert slow.drain() == []


def test_max_queue_must_be_positive(engine):
    with pytest.raises(ValueError):
        EventBroadcaster(engine, max_queue=0)
