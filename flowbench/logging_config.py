"""Logging for flowbench: a single stderr handler on the "flowbench" logger.

FLOWBENCH_LOG_LEVEL sets the level (default INFO). FLOWBENCH_LOG_FORMAT=json
switches to one JSON object per line, with any `extra=` fields as keys.
stdout is left to the live dashboard and the "Results saved" line.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

import orjson

ROOT_LOGGER = "flowbench"
LOG_LEVEL_ENV = "FLOWBENCH_LOG_LEVEL"
LOG_FORMAT_ENV = "FLOWBENCH_LOG_FORMAT"  # "json" | "text" (default)

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def get_logger(name: str) -> logging.Logger:
    """Logger "flowbench.<name>" (or the root "flowbench"). Configures logging on first use."""
    configure_logging()
    return logging.getLogger(ROOT_LOGGER if name == ROOT_LOGGER else f"{ROOT_LOGGER}.{name}")


def _resolve_level(name: str | None) -> int:
    level = logging.getLevelName((name or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach the flowbench handler. No-op when already configured unless force is set.

    Arguments override FLOWBENCH_LOG_LEVEL / FLOWBENCH_LOG_FORMAT.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers and not force:
        return root
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(_resolve_level(level or os.environ.get(LOG_LEVEL_ENV)))
    handler = logging.StreamHandler(stream or sys.stderr)
    if (fmt or os.environ.get(LOG_FORMAT_ENV) or "text").strip().lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))
    root.addHandler(handler)
    return root


class _JsonFormatter(logging.Formatter):
    """One JSON object per line (log shippers, CI parsers)."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                obj[key] = value
        if record.exc_info:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj, default=str).decode()
