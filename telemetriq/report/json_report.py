from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from telemetriq.core.contract import TELEMETRIQ_MODEL_VERSION
from telemetriq.core.health import rom_residual
from telemetriq.core.telemetry import CHANNELS, TelemetryFrame
from telemetriq.schema_constants import SCHEMA_VERSION


def _json_safe(x: Any) -> Any:
    """
    Convert values into strict JSON-safe Python types.

    Guarantees:
    - No NaN / Infinity (converted to None)
    - pandas/numpy NA -> None
    - numpy scalars -> python primitives
    - Recurses through dict/list/tuple
    """
    if isinstance(x, dict):
        return {str(k): _json_safe(v) for k, v in x.items()}

    if isinstance(x, (list, tuple)):
        return [_json_safe(v) for v in x]

    # Enums carry their wire value
    if hasattr(x, "value") and isinstance(getattr(x, "value"), str):
        return x.value

    if isinstance(x, pd.Timestamp):
        return x.isoformat()

    try:
        if pd.isna(x):
            return None
    except (TypeError, ValueError):
        pass

    if isinstance(x, float):
        if math.isnan(x) or math.isinf(x):
            return None
        return x

    # Numpy scalars (float/int) -> python primitives
    if hasattr(x, "item") and callable(x.item):
        try:
            return _json_safe(x.item())
        except (TypeError, ValueError):
            pass

    if isinstance(x, (str, int, bool)) or x is None:
        return x

    if hasattr(x, "isoformat"):
        return x.isoformat()

    return str(x)


def window_frame(frames: Iterable[TelemetryFrame]) -> pd.DataFrame:
    """Telemetry window as a time-indexed DataFrame, one column per channel."""
    rows = [{"time": f.time, **f.channels()} for f in frames]
    if not rows:
        return pd.DataFrame(columns=["time", *CHANNELS])
    return pd.DataFrame(rows, columns=["time", *CHANNELS])


def summarize_window(frames: Iterable[TelemetryFrame]) -> pd.DataFrame:
    """
    Per-channel mean/min/max/last over the window.
    """
    df = window_frame(frames)
    if df.empty:
        return pd.DataFrame(columns=["channel", "mean", "min", "max", "last"])

    values = df[CHANNELS].astype(float)
    out = pd.DataFrame(
        {
            "channel": CHANNELS,
            "mean": values.mean().round(4).to_numpy(),
            "min": values.min().round(4).to_numpy(),
            "max": values.max().round(4).to_numpy(),
            "last": values.iloc[-1].round(4).to_numpy(),
        }
    )
    return out


def _df_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    if df is None or df.empty:
        return []
    clean = df.copy()
    for col in clean.columns:
        clean[col] = clean[col].apply(_json_safe)
    return clean.to_dict(orient="records")


def build_snapshot_report(
    *,
    generated_at: str | None,
    snapshot: dict[str, Any],
    health: dict[str, float],
    frames: Iterable[TelemetryFrame],
    ticks: int | None = None,
    run_config: dict[str, str] | None = None,
) -> dict[str, Any]:
    frames = list(frames)
    payload: dict[str, Any] = {
        "meta": {
            "generated_at": generated_at,
            "schema_version": SCHEMA_VERSION,
            "model_version": TELEMETRIQ_MODEL_VERSION,
            "ticks": ticks,
        },
        "state": {
            "halted": bool(snapshot.get("isShutdown", False)),
            "health": health,
            "faults": snapshot.get("faults", {}),
            "window": snapshot.get("data", []),
            "logs": snapshot.get("logs", []),
            "rom_residual": rom_residual(frames[-1]) if frames else None,
        },
        "summary": _df_to_records(summarize_window(frames)),
        "run_config": run_config or {},
    }
    return _json_safe(payload)


def write_snapshot_report(out_path: str | Path, **kwargs: Any) -> Path:
    """
    Writes the canonical snapshot report JSON.

    IMPORTANT:
    - `meta` must remain schema-stable and NOT include extra keys.
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    payload = build_snapshot_report(**kwargs)

    # STRICT JSON: no NaN allowed
    p.write_text(
        json.dumps(payload, indent=2, sort_keys=False, allow_nan=False),
        encoding="utf-8",
    )
    return p
