# mat_forensics/logging.py
"""
Logging setup using Loguru.

- Debug toggle
- Human-readable console formatting, or JSON lines for machine consumption
"""
from __future__ import annotations

import sys

from loguru import logger


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure loguru logging sinks.

    Args:
        debug: Enable verbose debug logging (per-element decode events).
        json_logs: Emit serialized JSON records, bound fields included.
    """
    logger.remove()
    level = "DEBUG" if debug else "INFO"
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True, backtrace=False, diagnose=False)
        return
    fmt = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
        "| <level>{level: <8}</level> "
        "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> "
        "- <level>{message}</level>"
    )
    logger.add(sys.stderr, level=level, format=fmt, backtrace=debug, diagnose=debug)
