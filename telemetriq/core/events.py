from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Outbound event names (wire contract)
INITIAL_DATA = "initialData"
NEW_DATA = "newData"
HEALTH_UPDATE = "healthUpdate"
FAULT_UPDATE = "faultUpdate"
LOG_UPDATE = "logUpdate"
SHUTDOWN = "shutdown"
SYSTEM_RESET = "systemReset"

EVENT_NAMES = (
    INITIAL_DATA,
    NEW_DATA,
    HEALTH_UPDATE,
    FAULT_UPDATE,
    LOG_UPDATE,
    SHUTDOWN,
    SYSTEM_RESET,
)


@dataclass(frozen=True)
class Event:
    """A state delta produced by the engine; payload is already JSON-ready."""

    name: str
    payload: Any

    def to_message(self) -> dict[str, Any]:
        return {"event": self.name, "data": self.payload}
