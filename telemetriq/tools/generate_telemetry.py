from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.engine import SimulationEngine
from telemetriq.core.faults import FaultId, Severity, parse_fault_id, parse_severity
from telemetriq.core.health import rom_residual
from telemetriq.core.telemetry import CHANNELS
from telemetriq.logging_config import configure_logging
from telemetriq.report.json_report import write_snapshot_report

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "tick", "time", *CHANNELS, "instantaneous", "lifetime", "combined", "rom_residual", "halted",
]


@dataclass(frozen=True)
class FaultInjection:
    fault_id: FaultId
    severity: Severity
    start_tick: int = 0


class SimClock:
    """Deterministic clock advanced by the generator, one period per tick."""

    def __init__(self, start: datetime, period_seconds: float) -> None:
        self.current = start
        self.period = timedelta(seconds=period_seconds)

    def __call__(self) -> datetime:
        return self.current

    def advance(self) -> None:
        self.current += self.period


# ----------------------------
# Helpers
# ----------------------------

def parse_dt(s: str) -> datetime:
    return datetime.fromisoformat(s)


def parse_injection(spec: str) -> FaultInjection:
    """
    "overheating=Critical" or "overheating=Warning@40" (start at tick 40).
    """
    name, _, rest = spec.partition("=")
    if not rest:
        raise ValueError(f"Expected <fault>=<severity>[@tick], got {spec!r}")
    severity, _, at = rest.partition("@")
    start_tick = int(at) if at.strip() else 0
    if start_tick < 0:
        raise ValueError(f"Start tick must be >= 0, got {start_tick}")
    return FaultInjection(
        fault_id=parse_fault_id(name),
        severity=parse_severity(severity),
        start_tick=start_tick,
    )


# ----------------------------
# Core generation
# ----------------------------

def run_simulation(
    *,
    ticks: int,
    start: datetime,
    seed: int | None,
    injections: list[FaultInjection] | None = None,
    config: TelemetrIQConfig | None = None,
) -> tuple[SimulationEngine, pd.DataFrame]:
    """
    Drive the engine headless for `ticks` ticks; one output row per tick.
    Rows after a halt repeat the halted state with no new telemetry.
    """
    config = config or TelemetrIQConfig(seed=seed)
    clock = SimClock(start, config.tick_seconds)
    engine = SimulationEngine(config, rng=random.Random(seed), clock=clock)
    injections = sorted(injections or [], key=lambda i: i.start_tick)

    rows = []
    for t in range(ticks):
        clock.advance()
        for inj in injections:
            if inj.start_tick == t:
                engine.set_fault(inj.fault_id, inj.severity)

        engine.tick()
        frame = engine.window[-1]
        health = engine.health
        rows.append(
            {
                "tick": t,
                "time": frame.time.isoformat(timespec="seconds"),
                **frame.channels(),
                "instantaneous": round(health.instantaneous, 4),
                "lifetime": round(health.lifetime, 4),
                "combined": round(health.combined, 4),
                "rom_residual": rom_residual(frame),
                "halted": engine.halted,
            }
        )

    return engine, pd.DataFrame(rows, columns=CSV_COLUMNS)


def generate_csv(
    out_path: Path,
    *,
    ticks: int,
    start: datetime,
    seed: int | None,
    injections: list[FaultInjection] | None = None,
    json_out: Path | None = None,
    print_summary: bool = False,
) -> pd.DataFrame:
    out_path.parent.mkdir(parents=True, exist_ok=True)

    engine, df = run_simulation(ticks=ticks, start=start, seed=seed, injections=injections)
    df.to_csv(out_path, index=False, float_format="%.4f")
    logger.info("Wrote %d ticks to %s (halted=%s)", len(df), out_path, engine.halted)

    if json_out is not None:
        write_snapshot_report(
            json_out,
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"),
            snapshot=engine.snapshot(),
            health=engine.health.to_dict(),
            frames=engine.window,
            ticks=ticks,
            run_config={
                "seed": "" if seed is None else str(seed),
                "ticks": str(ticks),
                "start": start.isoformat(),
                "faults": ",".join(f"{i.fault_id.value}={i.severity.value}@{i.start_tick}" for i in injections or []),
            },
        )

    if print_summary:
        print(f"Generated {out_path} with {len(df):,} rows")
        print(f"Ticks: {ticks} | Seed: {seed} | Final health: {engine.health.combined:.2f} | Halted: {engine.halted}")
        for inj in injections or []:
            print(f"Injected fault: {inj.fault_id.value}={inj.severity.value} from tick {inj.start_tick}")

    return df


# ----------------------------
# CLI
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="generate_telemetry.py",
        description="Run the TelemetrIQ simulation headless and write telemetry.csv.",
    )

    p.add_argument("--out", default="data/telemetry.csv",
                   help="Output CSV path (default: data/telemetry.csv)")
    p.add_argument("--json-out", default=None,
                   help="Optional snapshot report JSON path")
    p.add_argument("--start", default="2026-01-01T00:00:00",
                   help="Simulated start datetime (ISO format)")
    p.add_argument("--ticks", type=int, default=200,
                   help="Number of ticks to simulate")
    p.add_argument("--seed", type=int, default=None,
                   help="Random seed for reproducible output")
    p.add_argument("--fault", action="append", default=[],
                   help="Fault injection <fault>=<severity>[@tick], repeatable "
                        f"(faults: {', '.join(f.value for f in FaultId)})")
    p.add_argument("--print-summary", action="store_true",
                   help="Print generation summary to console")
    p.add_argument("--log-level", default="WARNING",
                   help="Logging level (default: WARNING)")

    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.ticks <= 0:
        raise SystemExit("--ticks must be > 0")

    try:
        injections = [parse_injection(s) for s in args.fault]
    except ValueError as e:
        raise SystemExit(f"--fault: {e}") from e

    generate_csv(
        Path(args.out),
        ticks=args.ticks,
        start=parse_dt(args.start),
        seed=args.seed,
        injections=injections,
        json_out=Path(args.json_out) if args.json_out else None,
        print_summary=args.print_summary,
    )


if __name__ == "__main__":
    main()
