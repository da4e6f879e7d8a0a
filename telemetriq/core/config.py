from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from telemetriq.core.contract import (
    DEFAULT_LIFETIME_DECREMENT,
    DEFAULT_LOG_SIZE,
    DEFAULT_TICK_SECONDS,
    DEFAULT_WINDOW_SIZE,
)


# ----------------------------
# Primary config object
# ----------------------------

@dataclass(frozen=True)
class TelemetrIQConfig:
    """
    Single, flattened config object used by the server and tools.

    Supports a simple table:
      [telemetriq]
      tick_seconds, window_size, log_size, lifetime_decrement, seed,
      host, port, log_level

    Also supports structured style:
      [simulation], [server]
    """
    # simulation knobs
    tick_seconds: float = DEFAULT_TICK_SECONDS
    window_size: int = DEFAULT_WINDOW_SIZE
    log_size: int = DEFAULT_LOG_SIZE
    lifetime_decrement: float = DEFAULT_LIFETIME_DECREMENT
    seed: int | None = None

    # server
    host: str = "127.0.0.1"
    port: int = 4000
    log_level: str = "INFO"


# ----------------------------
# Helpers
# ----------------------------

def _as_dict(x: Any) -> dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _get(d: dict[str, Any], key: str, default: Any) -> Any:
    return d.get(key, default) if isinstance(d, dict) else default


def _coerce_float(x: Any, default: float, minimum: float | None = None) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    if minimum is not None and v < minimum:
        return default
    return v


def _coerce_int(x: Any, default: int, minimum: int | None = None) -> int:
    try:
        v = int(x)
    except (TypeError, ValueError):
        return default
    if minimum is not None and v < minimum:
        return default
    return v


def _coerce_str(x: Any, default: str) -> str:
    if x is None:
        return default
    s = str(x).strip()
    return s or default


# Levels understood by both stdlib logging and uvicorn
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def _coerce_log_level(x: Any, default: str) -> str:
    level = _coerce_str(x, default).upper()
    level = _LOG_LEVEL_ALIASES.get(level, level)
    return level if level in LOG_LEVELS else default


def _coerce_opt_int(x: Any) -> int | None:
    if x is None or (isinstance(x, str) and not x.strip()):
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


# ----------------------------
# Load + merge
# ----------------------------

def load_config(path: str | Path | None) -> TelemetrIQConfig:
    """
    Load TOML config. If missing/None, returns safe defaults.
    Never raises for missing file (config is optional).
    """
    if not path:
        return TelemetrIQConfig()

    p = Path(path)
    if not p.exists():
        return TelemetrIQConfig()

    data = tomllib.loads(p.read_text(encoding="utf-8"))

    # Preferred simple table
    tiq = _as_dict(data.get("telemetriq", {}))

    # Optional structured tables
    sim = _as_dict(data.get("simulation", {}))
    server = _as_dict(data.get("server", {}))

    d = TelemetrIQConfig()

    return TelemetrIQConfig(
        tick_seconds=_coerce_float(
            _get(tiq, "tick_seconds", _get(sim, "tick_seconds", d.tick_seconds)), d.tick_seconds, minimum=0.001
        ),
        window_size=_coerce_int(
            _get(tiq, "window_size", _get(sim, "window_size", d.window_size)), d.window_size, minimum=1
        ),
        log_size=_coerce_int(_get(tiq, "log_size", _get(sim, "log_size", d.log_size)), d.log_size, minimum=1),
        lifetime_decrement=_coerce_float(
            _get(tiq, "lifetime_decrement", _get(sim, "lifetime_decrement", d.lifetime_decrement)),
            d.lifetime_decrement,
            minimum=0.0,
        ),
        seed=_coerce_opt_int(_get(tiq, "seed", _get(sim, "seed", None))),
        host=_coerce_str(_get(tiq, "host", _get(server, "host", d.host)), d.host),
        port=_coerce_int(_get(tiq, "port", _get(server, "port", d.port)), d.port, minimum=0),
        log_level=_coerce_log_level(_get(tiq, "log_level", _get(server, "log_level", d.log_level)), d.log_level),
    )


def merge_config(cfg: TelemetrIQConfig, overrides: Any) -> TelemetrIQConfig:
    """
    Merge CLI args (argparse Namespace or plain dict) over file config.
    Only applies fields that are present AND not None/empty.
    """
    def lookup(name: str) -> Any:
        if isinstance(overrides, dict):
            return overrides.get(name)
        return getattr(overrides, name, None)

    def pick_str(name: str, cur: str) -> str:
        v = lookup(name)
        if v is not None and str(v).strip():
            return str(v).strip()
        return cur

    def pick_float(name: str, cur: float) -> float:
        v = lookup(name)
        return cur if v is None else _coerce_float(v, cur)

    def pick_int(name: str, cur: int) -> int:
        v = lookup(name)
        return cur if v is None else _coerce_int(v, cur)

    seed = lookup("seed")

    return TelemetrIQConfig(
        tick_seconds=pick_float("tick_seconds", cfg.tick_seconds),
        window_size=pick_int("window_size", cfg.window_size),
        log_size=pick_int("log_size", cfg.log_size),
        lifetime_decrement=pick_float("lifetime_decrement", cfg.lifetime_decrement),
        seed=cfg.seed if seed is None else _coerce_opt_int(seed),
        host=pick_str("host", cfg.host),
        port=pick_int("port", cfg.port),
        log_level=_coerce_log_level(lookup("log_level"), cfg.log_level),
    )
