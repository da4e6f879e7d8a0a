from __future__ import annotations

import random
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, timedelta
from typing import Any, Mapping

import numpy as np

from telemetriq.core.contract import (
    ANOMALY_STEP,
    BASELINE_WAVES,
    COMM_DELAY_RISE_MAX,
    CYCLE_TIME_JITTER,
    DEFAULT_TICK_SECONDS,
    ENCODER_LOSS_DROP_MAX,
    GRIPPER_LOSS_DROP_MAX,
    JOINT_STEP,
    OVERHEAT_CEILING,
    OVERHEAT_RISE_MAX,
    POWER_FLUCTUATION_STEP,
    SAFE_BANDS,
    TORQUE_IMBALANCE_CURRENT_CEILING,
    TORQUE_IMBALANCE_RISE_MAX,
)
from telemetriq.core.faults import FaultId, Severity


JOINT_CHANNELS = [f"j{i}_angle" for i in range(1, 7)]


@dataclass(frozen=True)
class TelemetryFrame:
    time: datetime
    j1_angle: float
    j2_angle: float
    j3_angle: float
    j4_angle: float
    j5_angle: float
    j6_angle: float
    motor_temp: float
    power: float
    current: float
    rpm: float
    payload: float
    cycle_time: float
    anomaly_score: float

    def channels(self) -> dict[str, float]:
        return {k: v for k, v in asdict(self).items() if k != "time"}

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"time": self.time.isoformat(timespec="seconds")}
        d.update(self.channels())
        return d


CHANNELS = [f.name for f in fields(TelemetryFrame) if f.name != "time"]


# ----------------------------
# Helpers
# ----------------------------

def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _jitter(rng: random.Random, half_width: float) -> float:
    """Uniform perturbation in [-half_width, +half_width)."""
    return (rng.random() - 0.5) * 2.0 * half_width


def _banded(rng: random.Random, channel: str, last: float) -> float:
    lo, hi, step_ = SAFE_BANDS[channel]
    return clamp(last + _jitter(rng, step_), lo, hi)


def _active(faults: Mapping[FaultId, Severity], fault_id: FaultId) -> bool:
    return faults.get(fault_id, Severity.OK) is not Severity.OK


# ----------------------------
# Generation
# ----------------------------

def bootstrap(
    n: int,
    *,
    period_seconds: float = DEFAULT_TICK_SECONDS,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[TelemetryFrame]:
    """
    Seed history with n plausible frames ending at `now`.

    Each channel follows offset + amplitude * wave(i * frequency); only
    cycle_time carries random jitter.
    """
    if n <= 0:
        return []

    rng = rng or random.Random()
    now = now or datetime.now()
    start = now - timedelta(seconds=period_seconds * (n - 1))
    idx = np.arange(n, dtype=float)

    series: dict[str, np.ndarray] = {}
    for channel, (offset, amplitude, frequency, wave) in BASELINE_WAVES.items():
        fn = np.sin if wave == "sin" else np.cos
        series[channel] = offset + fn(idx * frequency) * amplitude

    frames = []
    for i in range(n):
        values = {c: float(series[c][i]) for c in CHANNELS}
        values["cycle_time"] += _jitter(rng, CYCLE_TIME_JITTER)
        frames.append(TelemetryFrame(time=start + timedelta(seconds=period_seconds * i), **values))
    return frames


def step(
    previous: TelemetryFrame,
    faults: Mapping[FaultId, Severity],
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> TelemetryFrame:
    """
    Derive the next frame from `previous` as a bounded random walk.

    Channels bound to an active fault lose their safe-band clamp and drift
    in that fault's failure direction.
    """
    rng = rng or random.Random()
    last = previous.channels()
    nxt: dict[str, float] = {}

    for channel in JOINT_CHANNELS:
        nxt[channel] = last[channel] + _jitter(rng, JOINT_STEP)

    if _active(faults, FaultId.OVERHEATING):
        nxt["motor_temp"] = min(OVERHEAT_CEILING, last["motor_temp"] + rng.random() * OVERHEAT_RISE_MAX)
    else:
        nxt["motor_temp"] = _banded(rng, "motor_temp", last["motor_temp"])

    if _active(faults, FaultId.POWER_FLUCTUATION):
        nxt["power"] = max(0.0, last["power"] + _jitter(rng, POWER_FLUCTUATION_STEP))
    else:
        nxt["power"] = _banded(rng, "power", last["power"])

    if _active(faults, FaultId.TORQUE_IMBALANCE):
        nxt["current"] = min(
            TORQUE_IMBALANCE_CURRENT_CEILING,
            last["current"] + rng.random() * TORQUE_IMBALANCE_RISE_MAX,
        )
    else:
        nxt["current"] = _banded(rng, "current", last["current"])

    if _active(faults, FaultId.ENCODER_LOSS):
        nxt["rpm"] = max(0.0, last["rpm"] - rng.random() * ENCODER_LOSS_DROP_MAX)
    else:
        nxt["rpm"] = _banded(rng, "rpm", last["rpm"])

    if _active(faults, FaultId.GRIPPER_MALFUNCTION):
        nxt["payload"] = max(0.0, last["payload"] - rng.random() * GRIPPER_LOSS_DROP_MAX)
    else:
        nxt["payload"] = _banded(rng, "payload", last["payload"])

    if _active(faults, FaultId.COMM_DELAY):
        nxt["cycle_time"] = last["cycle_time"] + rng.random() * COMM_DELAY_RISE_MAX
    else:
        nxt["cycle_time"] = _banded(rng, "cycle_time", last["cycle_time"])

    nxt["anomaly_score"] = clamp(last["anomaly_score"] + _jitter(rng, ANOMALY_STEP), 0.0, 1.0)

    return replace(previous, time=now or datetime.now(), **nxt)
