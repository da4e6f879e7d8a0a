from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np

from telemetriq.core.contract import (
    ANOMALY_PENALTY_THRESHOLD,
    ANOMALY_PENALTY_WEIGHT,
    DEFAULT_LIFETIME_DECREMENT,
    FAULT_PENALTY_CRITICAL,
    FAULT_PENALTY_WARNING,
    HEALTH_MAX,
    HEALTH_MIN,
    POWER_PENALTY_THRESHOLD,
    POWER_PENALTY_WEIGHT,
    ROM_BASELINE_POWER,
    TEMP_PENALTY_THRESHOLD,
    TEMP_PENALTY_WEIGHT,
)
from telemetriq.core.faults import Severity
from telemetriq.core.telemetry import TelemetryFrame


@dataclass(frozen=True)
class HealthState:
    instantaneous: float = HEALTH_MAX
    lifetime: float = HEALTH_MAX
    combined: float = HEALTH_MAX

    @classmethod
    def from_scores(cls, instantaneous: float, lifetime: float) -> "HealthState":
        return cls(
            instantaneous=instantaneous,
            lifetime=lifetime,
            combined=combine(instantaneous, lifetime),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "instantaneous": self.instantaneous,
            "lifetime": self.lifetime,
            "combined": self.combined,
        }


def _excess(value: float, threshold: float) -> float:
    return max(0.0, value - threshold)


def score_instantaneous(frame: TelemetryFrame, faults: Mapping[object, Severity]) -> float:
    """
    Sensor- and fault-driven health for a single frame (0..100).
    """
    h = HEALTH_MAX
    h -= _excess(frame.motor_temp, TEMP_PENALTY_THRESHOLD) * TEMP_PENALTY_WEIGHT
    h -= _excess(frame.power, POWER_PENALTY_THRESHOLD) * POWER_PENALTY_WEIGHT
    h -= _excess(frame.anomaly_score, ANOMALY_PENALTY_THRESHOLD) * ANOMALY_PENALTY_WEIGHT

    for severity in faults.values():
        if severity is Severity.CRITICAL:
            h -= FAULT_PENALTY_CRITICAL
        elif severity is Severity.WARNING:
            h -= FAULT_PENALTY_WARNING

    return float(np.clip(h, HEALTH_MIN, HEALTH_MAX))


def decay_lifetime(previous: float, decrement: float = DEFAULT_LIFETIME_DECREMENT) -> float:
    """
    Irreversible wear: lifetime only ever goes down (floored at 0).
    """
    return float(max(HEALTH_MIN, previous - abs(decrement)))


def combine(instantaneous: float, lifetime: float) -> float:
    return float(min(instantaneous, lifetime))


def should_shutdown(health: HealthState) -> bool:
    return health.combined <= HEALTH_MIN


def rom_residual(frame: TelemetryFrame, baseline: float = ROM_BASELINE_POWER) -> float:
    """
    Deviation (W) between measured power and the reduced-order model baseline.
    """
    return round(abs(frame.power - baseline), 2)
