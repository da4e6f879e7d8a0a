from __future__ import annotations

import random

import pytest

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.engine import SimulationEngine
from telemetriq.core.faults import FaultId, Severity
from telemetriq.core.maintenance_log import LogSeverity


def _names(events) -> list[str]:
    return [e.name for e in events]


def _depleting_engine(**overrides) -> SimulationEngine:
    """One tick takes lifetime straight to zero."""
    cfg = TelemetrIQConfig(seed=3, lifetime_decrement=100.0, **overrides)
    return SimulationEngine(cfg, rng=random.Random(3))


def test_initial_state_is_seeded(engine):
    assert len(engine.window) == 20
    assert engine.health.combined == 100.0
    assert engine.health.lifetime == 100.0
    assert all(sev is Severity.OK for sev in engine.faults.values())
    assert engine.halted is False
    assert engine.log == ()


def test_tick_emits_frame_and_health(engine):
    events = engine.tick()
    assert _names(events) == ["newData", "healthUpdate"]
    assert events[0].payload == engine.window[-1].to_dict()
    assert events[1].payload == engine.health.combined


def test_window_is_fifo_and_bounded(engine):
    before = engine.window
    engine.tick()
    after = engine.window

    assert len(after) == 20
    assert after[:-1] == before[1:]
    assert before[0] not in after

    for _ in range(50):
        engine.tick()
        assert len(engine.window) <= 20


def test_tick_on_empty_window_synthesizes_a_frame(engine):
    engine._state.window.clear()
    events = engine.tick()
    assert _names(events) == ["newData", "healthUpdate"]
    assert len(engine.window) == 2


def test_health_invariants_hold_across_ticks(engine):
    previous_lifetime = engine.health.lifetime
    for _ in range(100):
        engine.tick()
        h = engine.health
        for value in (h.instantaneous, h.lifetime, h.combined):
            assert 0.0 <= value <= 100.0
        assert h.combined == min(h.instantaneous, h.lifetime)
        assert h.lifetime <= previous_lifetime
        previous_lifetime = h.lifetime

    assert engine.health.lifetime == pytest.approx(100.0 - 100 * 0.02)


def test_toggling_overheating_three_times_returns_to_ok(engine):
    health_before = engine.health

    for expected in ("Warning", "Critical", "OK"):
        events = engine.toggle_fault("overheating")
        assert _names(events) == ["faultUpdate"]
        assert events[0].payload["overheating"] == expected

    assert engine.faults[FaultId.OVERHEATING] is Severity.OK
    assert engine.health == health_before


def test_toggle_unknown_fault_is_a_noop(engine):
    before = engine.faults
    assert engine.toggle_fault("flux_capacitor") == []
    assert engine.faults == before
    assert "flux_capacitor" not in engine.snapshot()["faults"]


def test_active_fault_lowers_next_health(engine):
    engine.toggle_fault("commDelay")
    engine.toggle_fault("commDelay")
    engine.tick()
    assert engine.health.instantaneous <= 85.0


def test_lifetime_depletion_halts_with_critical_log():
    engine = _depleting_engine()
    events = engine.tick()

    assert _names(events) == ["logUpdate", "shutdown"]
    assert engine.halted is True
    assert engine.health.lifetime == 0.0
    assert engine.health.combined == 0.0

    entry = engine.log[0]
    assert entry.severity is LogSeverity.CRITICAL
    assert events[0].payload[0]["severity"] == "CRITICAL"
    assert isinstance(events[1].payload, str)


def test_no_state_changes_while_halted():
    engine = _depleting_engine()
    engine.tick()

    window, health, faults, log = engine.window, engine.health, engine.faults, engine.log
    for _ in range(5):
        assert engine.tick() == []
    assert engine.toggle_fault("overheating") == []
    assert engine.set_fault("overheating", "Critical") == []

    assert engine.window == window
    assert engine.health == health
    assert engine.faults == faults
    assert engine.log == log


def test_restart_after_halt_reinitializes_but_keeps_log():
    engine = _depleting_engine()
    engine.toggle_fault("encoderLoss")
    engine.tick()
    old_window = engine.window

    events = engine.restart()

    assert _names(events) == ["systemReset"]
    payload = events[0].payload
    assert payload["isShutdown"] is False
    assert payload["health"] == 100.0
    assert set(payload["faults"].values()) == {"OK"}
    assert len(payload["data"]) == 20
    assert len(payload["logs"]) == 1

    assert engine.halted is False
    assert engine.health.lifetime == 100.0
    assert all(sev is Severity.OK for sev in engine.faults.values())
    assert len(engine.window) == 20
    assert engine.window != old_window
    assert engine.log[0].severity is LogSeverity.CRITICAL


def test_ticks_resume_after_restart():
    engine = _depleting_engine()
    engine.tick()
    engine.restart()
    # lifetime 100 -> 0 again on the next tick
    assert _names(engine.tick()) == ["logUpdate", "shutdown"]
    assert len(engine.log) == 2


def test_manual_shutdown_halts_without_log():
    engine = SimulationEngine(TelemetrIQConfig(seed=1))
    events = engine.shutdown()

    assert _names(events) == ["shutdown"]
    assert "manually" in events[0].payload
    assert engine.halted is True
    assert engine.log == ()
    assert engine.tick() == []


def test_restart_is_valid_when_not_halted(engine):
    engine.tick()
    engine.toggle_fault("overheating")
    events = engine.restart()
    assert _names(events) == ["systemReset"]
    assert engine.faults[FaultId.OVERHEATING] is Severity.OK


def test_log_stays_bounded_across_many_halts():
    engine = _depleting_engine(log_size=50)
    for _ in range(60):
        engine.tick()
        engine.restart()

    assert len(engine.log) == 50
    ids = [e.id for e in engine.log]
    assert ids == sorted(ids, reverse=True)


def test_sustained_critical_faults_trigger_automatic_shutdown(engine):
    for fault in FaultId:
        engine.set_fault(fault, Severity.CRITICAL)

    for _ in range(500):
        events = engine.tick()
        if engine.halted:
            break

    assert engine.halted is True
    assert _names(events) == ["logUpdate", "shutdown"]
    assert "newData" not in _names(events)


def test_snapshot_is_a_detached_copy(engine):
    snap = engine.snapshot()
    snap["faults"]["overheating"] = "Critical"
    snap["data"].clear()
    snap["isShutdown"] = True

    assert engine.faults[FaultId.OVERHEATING] is Severity.OK
    assert len(engine.window) == 20
    assert engine.halted is False


def test_snapshot_shape(engine):
    snap = engine.snapshot()
    assert set(snap) == {"data", "health", "faults", "logs", "isShutdown"}
    assert engine.initial_event().name == "initialData"
    assert engine.initial_event().payload == snap


def test_rejects_empty_window_size():
    with pytest.raises(ValueError):
        SimulationEngine(TelemetrIQConfig(window_size=0))
