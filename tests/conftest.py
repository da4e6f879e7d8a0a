import random
from datetime import datetime

import pytest

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.engine import SimulationEngine
from telemetriq.core.telemetry import TelemetryFrame


class FixedRandom(random.Random):
    """
    random() always returns `value`, so every perturbation is predictable:
    0.0 -> largest negative jitter / zero rise, ~1.0 -> largest positive.
    """

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def nominal_frame() -> TelemetryFrame:
    """
    Mid-band reading: no health penalty, every channel inside its safe band.
    """
    return TelemetryFrame(
        time=datetime(2026, 1, 1, 12, 0, 0),
        j1_angle=45.0,
        j2_angle=60.0,
        j3_angle=30.0,
        j4_angle=90.0,
        j5_angle=120.0,
        j6_angle=180.0,
        motor_temp=65.0,
        power=1500.0,
        current=8.5,
        rpm=1200.0,
        payload=5.2,
        cycle_time=2.5,
        anomaly_score=0.15,
    )


@pytest.fixture
def config() -> TelemetrIQConfig:
    return TelemetrIQConfig(seed=7, tick_seconds=3.0)


@pytest.fixture
def engine(config) -> SimulationEngine:
    return SimulationEngine(config, rng=random.Random(7))


@pytest.fixture
def fixed_random():
    return FixedRandom
