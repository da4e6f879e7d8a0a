from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

import uvicorn

from telemetriq.core.config import TelemetrIQConfig, load_config, merge_config
from telemetriq.logging_config import configure_logging
from telemetriq.server.app import TELEMETRIQ_PACKAGE_VERSION, create_app

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="telemetriq", description="TelemetrIQ: live device telemetry & health feed")

    p.add_argument("--config", default=None, help="Path to config TOML (optional)")
    p.add_argument("--host", default=None, help="Bind address (defaults from config or 127.0.0.1)")
    p.add_argument("--port", type=int, default=None, help="Bind port (defaults from config or 4000)")
    p.add_argument("--tick-seconds", type=float, default=None, help="Simulation tick period in seconds")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducible telemetry")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    p.add_argument("--version", action="version", version=f"%(prog)s {TELEMETRIQ_PACKAGE_VERSION}")

    return p


def resolve_config(args: argparse.Namespace) -> TelemetrIQConfig:
    file_cfg = load_config(args.config)

    # Only keys the user actually passed override the file
    cli_explicit: dict[str, Any] = {}
    for name in ("host", "port", "tick_seconds", "seed", "log_level"):
        v = getattr(args, name, None)
        if v is not None:
            cli_explicit[name] = v

    return merge_config(file_cfg, cli_explicit)


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    if args.config and not Path(args.config).is_file():
        print(f"ERROR: config file not found: {args.config}")
        return 2

    cfg = resolve_config(args)
    configure_logging(cfg.log_level)

    if cfg.tick_seconds <= 0:
        print("ERROR: --tick-seconds must be > 0")
        return 2

    logger.info(
        "Serving on http://%s:%d (tick=%.2fs window=%d log=%d seed=%s)",
        cfg.host,
        cfg.port,
        cfg.tick_seconds,
        cfg.window_size,
        cfg.log_size,
        cfg.seed,
    )

    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
