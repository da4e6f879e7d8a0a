"""
Logging setup shared by the server CLI and the tools.

One stream handler on the `telemetriq` logger, fixed line format:
    2026-01-01 12:00:00.000 | INFO     | telemetriq.core.engine | message
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime

ROOT_LOGGER = "telemetriq"


class PipeFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = f"{timestamp} | {record.levelname.ljust(8)} | {record.name} | {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Idempotent: calling twice replaces the handler rather than stacking.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    for h in list(logger.handlers):
        if getattr(h, "_telemetriq", False):
            logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(PipeFormatter())
    handler._telemetriq = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
