from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from telemetriq.core.contract import DEFAULT_LOG_SIZE


class LogSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class LogEntry:
    id: int
    timestamp: datetime
    severity: LogSeverity
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "severity": self.severity.value,
            "message": self.message,
        }


class MaintenanceLog:
    """
    Bounded advisory log, newest entry first.

    Entries are only ever prepended; once over capacity the oldest (tail)
    entries are dropped.
    """

    def __init__(self, max_entries: int = DEFAULT_LOG_SIZE, clock: Callable[[], datetime] | None = None) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.max_entries = max_entries
        self._clock = clock or datetime.now
        self._ids = itertools.count(1)
        self._entries: list[LogEntry] = []

    def append(self, severity: LogSeverity | str, message: str) -> LogEntry:
        entry = LogEntry(
            id=next(self._ids),
            timestamp=self._clock(),
            severity=LogSeverity(severity),
            message=str(message),
        )
        self._entries = [entry, *self._entries][: self.max_entries]
        return entry

    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def to_list(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
