from __future__ import annotations

from enum import Enum
from typing import Mapping


class FaultId(str, Enum):
    """The closed set of injectable failure modes (wire ids are camelCase)."""

    OVERHEATING = "overheating"
    TORQUE_IMBALANCE = "torqueImbalance"
    ENCODER_LOSS = "encoderLoss"
    POWER_FLUCTUATION = "powerFluctuation"
    GRIPPER_MALFUNCTION = "gripperMalfunction"
    COMM_DELAY = "commDelay"


class Severity(str, Enum):
    OK = "OK"
    WARNING = "Warning"
    CRITICAL = "Critical"


_NEXT_SEVERITY = {
    Severity.OK: Severity.WARNING,
    Severity.WARNING: Severity.CRITICAL,
    Severity.CRITICAL: Severity.OK,
}


class UnknownFaultError(ValueError):
    """Raised when a fault identifier is not part of the fixed fault set."""


def parse_fault_id(value: str | FaultId) -> FaultId:
    if isinstance(value, FaultId):
        return value
    try:
        return FaultId(str(value).strip())
    except ValueError as e:
        raise UnknownFaultError(f"Unknown fault id: {value!r}") from e


def parse_severity(value: str | Severity) -> Severity:
    """
    Accepts wire values (OK/Warning/Critical) case-insensitively.
    """
    if isinstance(value, Severity):
        return value
    s = str(value).strip().lower()
    for sev in Severity:
        if sev.value.lower() == s:
            return sev
    raise ValueError(f"Unknown severity: {value!r}")


def next_severity(current: Severity) -> Severity:
    return _NEXT_SEVERITY[current]


class FaultRegistry:
    """
    Per-fault severity state machine.

    Every FaultId always has exactly one Severity; toggling cycles
    OK -> Warning -> Critical -> OK independently per id.
    """

    def __init__(self, initial: Mapping[FaultId, Severity] | None = None) -> None:
        self._severities: dict[FaultId, Severity] = {f: Severity.OK for f in FaultId}
        for fault_id, severity in (initial or {}).items():
            self.set(fault_id, severity)

    def get(self, fault_id: str | FaultId) -> Severity:
        return self._severities[parse_fault_id(fault_id)]

    def set(self, fault_id: str | FaultId, severity: str | Severity) -> Severity:
        fid = parse_fault_id(fault_id)
        sev = parse_severity(severity)
        self._severities[fid] = sev
        return sev

    def toggle(self, fault_id: str | FaultId) -> Severity:
        fid = parse_fault_id(fault_id)
        self._severities[fid] = next_severity(self._severities[fid])
        return self._severities[fid]

    def reset(self) -> None:
        for fid in self._severities:
            self._severities[fid] = Severity.OK

    def is_active(self, fault_id: FaultId) -> bool:
        return self._severities[fault_id] is not Severity.OK

    def snapshot(self) -> dict[FaultId, Severity]:
        return dict(self._severities)

    def to_dict(self) -> dict[str, str]:
        return {fid.value: sev.value for fid, sev in self._severities.items()}
