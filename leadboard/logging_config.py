"""
Logging configuration for applications embedding the workspace.

Supports text (human-readable) and JSON formats. The level and format come
from the arguments or from LEADBOARD_LOG_LEVEL / LEADBOARD_LOG_FORMAT.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for log aggregators."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "urllib3",
]


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger."""

    level_name = (level or os.getenv("LEADBOARD_LOG_LEVEL", "INFO")).upper()
    resolved_level = getattr(logging, level_name, None)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    log_format = (fmt or os.getenv("LEADBOARD_LOG_FORMAT", "text")).lower()

    root = logging.getLogger()
    root.setLevel(resolved_level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved_level)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
