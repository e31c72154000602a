"""Structured JSON logging and console logging setup."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from bessim.config import settings

# Extra attributes that optimizer and projector log records may carry.
_EXTRA_KEYS = ("strategy", "evaluations", "objective", "capacity_kwh", "npv")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Include extra fields
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry)


def setup_logging(
    json_format: Optional[bool] = None, level: Optional[int | str] = None
) -> None:
    """Configure root logger. Use json_format=True for batch runs.

    Both arguments default to the BESSIM_LOG_JSON and BESSIM_LOG_LEVEL settings.
    """
    if json_format is None:
        json_format = settings.log_json
    if level is None:
        level = settings.log_level.upper()

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()
    root.addHandler(handler)

    # Quiet per-day simulation tracing unless debugging
    simulation_logger = logging.getLogger("bessim.simulation")
    simulation_logger.setLevel(logging.WARNING if root.level > logging.DEBUG else logging.NOTSET)
