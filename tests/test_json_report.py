from __future__ import annotations

import json
import math
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from telemetriq.core.faults import FaultId
from telemetriq.core.telemetry import CHANNELS
from telemetriq.report.json_report import (
    _json_safe,
    summarize_window,
    window_frame,
    write_snapshot_report,
)
from telemetriq.tools.validate_json import SchemaVersionMismatch, StrictJsonError, validate_json


def test_json_safe_strips_non_finite_and_numpy():
    out = _json_safe(
        {
            "nan": float("nan"),
            "inf": math.inf,
            "np_float": np.float64(1.5),
            "np_int": np.int64(3),
            "na": pd.NA,
            "fault": FaultId.COMM_DELAY,
            "nested": [np.float32(2.0), (None, "x")],
        }
    )
    assert out == {
        "nan": None,
        "inf": None,
        "np_float": 1.5,
        "np_int": 3,
        "na": None,
        "fault": "commDelay",
        "nested": [2.0, [None, "x"]],
    }


def test_window_frame_has_one_column_per_channel(engine):
    df = window_frame(engine.window)
    assert list(df.columns) == ["time", *CHANNELS]
    assert len(df) == 20


def test_summarize_window(engine):
    summary = summarize_window(engine.window)
    assert list(summary["channel"]) == CHANNELS

    temp = summary.set_index("channel").loc["motor_temp"]
    assert temp["min"] <= temp["mean"] <= temp["max"]
    assert temp["last"] == pytest.approx(engine.window[-1].motor_temp, abs=1e-3)


def test_summarize_empty_window():
    assert summarize_window([]).empty


def _write(engine, path: Path) -> Path:
    return write_snapshot_report(
        path,
        generated_at="2026-01-01 00:00",
        snapshot=engine.snapshot(),
        health=engine.health.to_dict(),
        frames=engine.window,
        ticks=0,
        run_config={"seed": "7"},
    )


def test_written_report_is_strict_and_schema_valid(engine, tmp_path: Path):
    for _ in range(5):
        engine.tick()
    engine.toggle_fault("overheating")

    p = _write(engine, tmp_path / "out" / "snapshot.json")
    data = json.loads(p.read_text(encoding="utf-8"))

    assert data["meta"]["schema_version"] == "v1"
    assert data["state"]["faults"]["overheating"] == "Warning"
    assert len(data["state"]["window"]) == 20
    assert len(data["summary"]) == len(CHANNELS)
    assert data["state"]["rom_residual"] == pytest.approx(abs(engine.window[-1].power - 1500.0), abs=0.01)

    result = validate_json(p)
    assert result.ok
    assert result.schema_version == "v1"


def test_validate_rejects_schema_version_mismatch(engine, tmp_path: Path):
    p = _write(engine, tmp_path / "snapshot.json")
    data = json.loads(p.read_text(encoding="utf-8"))
    data["meta"]["schema_version"] = "v0"
    p.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(SchemaVersionMismatch):
        validate_json(p)


def test_validate_rejects_nan_constants(tmp_path: Path):
    p = tmp_path / "bad.json"
    p.write_text('{"meta": {"schema_version": "v1"}, "x": NaN}', encoding="utf-8")
    with pytest.raises(StrictJsonError):
        validate_json(p)


def test_validate_rejects_unknown_fault_key(engine, tmp_path: Path):
    import jsonschema

    p = _write(engine, tmp_path / "snapshot.json")
    data = json.loads(p.read_text(encoding="utf-8"))
    data["state"]["faults"]["overheating"] = "Meltdown"
    p.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(jsonschema.ValidationError):
        validate_json(p)


def test_validate_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        validate_json(tmp_path / "missing.json")
