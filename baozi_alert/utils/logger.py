"""
Logging configuration for the Baozi Claim & Alert Agent.
"""
from __future__ import annotations

import logging
import os
import sys


def setup_logging(level: int | str | None = None) -> None:
    """Configure the root logger with a consistent format (LOG_LEVEL overrides the default)."""
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_fmt = "%Y-%m-%d %H:%M:%S"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt, datefmt=date_fmt))

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers if called multiple times
    root.handlers = [handler]
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
