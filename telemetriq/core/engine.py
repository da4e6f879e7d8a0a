from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.contract import (
    LOG_MESSAGE_HEALTH_DEPLETED,
    SHUTDOWN_REASON_AUTOMATIC,
    SHUTDOWN_REASON_MANUAL,
)
from telemetriq.core.events import (
    FAULT_UPDATE,
    HEALTH_UPDATE,
    INITIAL_DATA,
    LOG_UPDATE,
    NEW_DATA,
    SHUTDOWN,
    SYSTEM_RESET,
    Event,
)
from telemetriq.core.faults import FaultId, FaultRegistry, Severity, UnknownFaultError
from telemetriq.core.health import (
    HealthState,
    decay_lifetime,
    score_instantaneous,
    should_shutdown,
)
from telemetriq.core.maintenance_log import LogEntry, LogSeverity, MaintenanceLog
from telemetriq.core.telemetry import TelemetryFrame, bootstrap, step

logger = logging.getLogger(__name__)


@dataclass
class SystemState:
    """Aggregate root; owned by exactly one SimulationEngine."""

    window: deque[TelemetryFrame]
    faults: FaultRegistry
    log: MaintenanceLog
    health: HealthState = field(default_factory=HealthState)
    halted: bool = False


class SimulationEngine:
    """
    Single-writer simulation state machine.

    Every public mutator runs to completion and returns the events that
    describe what changed; nothing is emitted from here directly.
    """

    def __init__(
        self,
        config: TelemetrIQConfig | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or TelemetrIQConfig()
        if self.config.window_size < 1:
            raise ValueError("window_size must be >= 1")
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock or datetime.now
        self._state = SystemState(
            window=deque(self._bootstrap(self.config.window_size), maxlen=self.config.window_size),
            faults=FaultRegistry(),
            log=MaintenanceLog(self.config.log_size, clock=self._clock),
        )

    # ----------------------------
    # Read-only views
    # ----------------------------

    @property
    def halted(self) -> bool:
        return self._state.halted

    @property
    def health(self) -> HealthState:
        return self._state.health

    @property
    def window(self) -> tuple[TelemetryFrame, ...]:
        return tuple(self._state.window)

    @property
    def faults(self) -> dict[FaultId, Severity]:
        return self._state.faults.snapshot()

    @property
    def log(self) -> tuple[LogEntry, ...]:
        return self._state.log.entries()

    def snapshot(self) -> dict[str, Any]:
        """Full JSON-ready copy of the current state."""
        s = self._state
        return {
            "data": [f.to_dict() for f in s.window],
            "health": s.health.combined,
            "faults": s.faults.to_dict(),
            "logs": s.log.to_list(),
            "isShutdown": s.halted,
        }

    def initial_event(self) -> Event:
        return Event(INITIAL_DATA, self.snapshot())

    # ----------------------------
    # Tick
    # ----------------------------

    def tick(self) -> list[Event]:
        s = self._state
        if s.halted:
            return []

        if not s.window:
            s.window.extend(self._bootstrap(1))

        frame = step(s.window[-1], s.faults.snapshot(), rng=self._rng, now=self._clock())
        s.window.append(frame)

        lifetime = decay_lifetime(s.health.lifetime, self.config.lifetime_decrement)
        instantaneous = score_instantaneous(frame, s.faults.snapshot())
        s.health = HealthState.from_scores(instantaneous, lifetime)

        if should_shutdown(s.health):
            logger.warning(
                "Health depleted (instantaneous=%.2f lifetime=%.2f); halting",
                s.health.instantaneous,
                s.health.lifetime,
            )
            events = self._append_log(LogSeverity.CRITICAL, LOG_MESSAGE_HEALTH_DEPLETED)
            s.halted = True
            events.append(Event(SHUTDOWN, SHUTDOWN_REASON_AUTOMATIC))
            return events

        return [
            Event(NEW_DATA, frame.to_dict()),
            Event(HEALTH_UPDATE, s.health.combined),
        ]

    # ----------------------------
    # Commands
    # ----------------------------

    def toggle_fault(self, fault_id: str | FaultId) -> list[Event]:
        if self._state.halted:
            logger.debug("Ignoring toggleFault(%s): system halted", fault_id)
            return []
        try:
            severity = self._state.faults.toggle(fault_id)
        except UnknownFaultError:
            logger.warning("Ignoring toggleFault for unknown fault id %r", fault_id)
            return []

        logger.info("Fault %s -> %s", fault_id, severity.value)
        return [Event(FAULT_UPDATE, self._state.faults.to_dict())]

    def set_fault(self, fault_id: str | FaultId, severity: str | Severity) -> list[Event]:
        """
        Direct fault injection (tooling). Same halted/unknown-id rules as toggle.
        """
        if self._state.halted:
            return []
        try:
            self._state.faults.set(fault_id, severity)
        except UnknownFaultError:
            logger.warning("Ignoring set_fault for unknown fault id %r", fault_id)
            return []
        return [Event(FAULT_UPDATE, self._state.faults.to_dict())]

    def restart(self) -> list[Event]:
        s = self._state
        s.halted = False
        s.health = HealthState()
        s.faults.reset()
        s.window.clear()
        s.window.extend(self._bootstrap(self.config.window_size))

        logger.info("System restarted (log retained: %d entries)", len(s.log))
        return [Event(SYSTEM_RESET, self.snapshot())]

    def shutdown(self, reason: str = SHUTDOWN_REASON_MANUAL) -> list[Event]:
        self._state.halted = True
        logger.info("System shutdown: %s", reason)
        return [Event(SHUTDOWN, reason)]

    # ----------------------------
    # Internals
    # ----------------------------

    def _bootstrap(self, n: int) -> list[TelemetryFrame]:
        return bootstrap(n, period_seconds=self.config.tick_seconds, now=self._clock(), rng=self._rng)

    def _append_log(self, severity: LogSeverity, message: str) -> list[Event]:
        self._state.log.append(severity, message)
        return [Event(LOG_UPDATE, self._state.log.to_list())]
