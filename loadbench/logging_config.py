"""Logging setup for loadbench.

Every module logs under the ``loadbench`` logger tree. The tree is configured
lazily on the first get_logger() call from LOADBENCH_LOG_LEVEL and
LOADBENCH_LOG_FORMAT, unless configure_logging() was called first.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

ROOT_LOGGER = "loadbench"
LOG_LEVEL_ENV = "LOADBENCH_LOG_LEVEL"
LOG_FORMAT_ENV = "LOADBENCH_LOG_FORMAT"  # "json" | "text" (default)

TEXT_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Logger for a loadbench module ("worker" -> "loadbench.worker")."""
    full_name = ROOT_LOGGER if name == ROOT_LOGGER else f"{ROOT_LOGGER}.{name}"
    if not logging.getLogger(ROOT_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(full_name)


def configure_logging(level: str | None = None, fmt: str | None = None) -> logging.Logger:
    """Install the single stderr handler on the loadbench root logger.

    Arguments override the environment. Calling it again replaces the handler.
    """
    root = logging.getLogger(ROOT_LOGGER)
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if (fmt or os.environ.get(LOG_FORMAT_ENV) or "text").lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))

    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    return root


class _JsonFormatter(logging.Formatter):
    """One JSON object per line; carries job_id when the record was logged with it."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt or "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        job_id = getattr(record, "job_id", None)
        if job_id is not None:
            obj["job_id"] = job_id
        if record.exc_info:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode("utf-8")
