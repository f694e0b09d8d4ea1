# src/logging/handlers.py - v1
"""Rotating file handler for the optional log file.

Rotation is either a size ("10MB") or a period ("daily", "hourly",
"midnight"); retention is the number of rotated files kept.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE = re.compile(r"^(\d+)\s*(KB|MB|GB)$", re.IGNORECASE)
_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}
_PERIODS = {"hourly": "H", "daily": "D", "midnight": "midnight"}


def parse_size(size_str: str) -> int:
    """Parse '10MB' style sizes into bytes.

    Raises:
        ValueError: Unknown format.
    """
    match = _SIZE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _UNITS[match.group(2).upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 7,
) -> logging.Handler:
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    period = _PERIODS.get(rotation.strip().lower())
    if period is not None:
        return TimedRotatingFileHandler(
            filename=str(path), when=period, backupCount=retention, encoding="utf-8", utc=True
        )
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
