# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for binforge.

Release runs are read by machines as often as by people: CI log viewers,
grep, and whatever ingests the build output afterwards. Every log entry is
therefore a single JSON line that is timestamped, leveled, and names its
source module.

How this works:
  - We use Python's standard `logging` module under the hood, but replace the
    default formatter with JsonFormatter, which serializes every log record
    into a single JSON line.
  - One handler always goes to stdout, a second one optionally to a file.
  - `get_logger` is the only way to create loggers in this codebase.

The JSON structure looks like:
  {"ts": "2026-...", "level": "INFO", "module": "binforge.matrix.planner",
   "msg": "Matrix planned", "platform": "ubuntu", "job_count": 4}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Internal LogRecord attributes that never belong in the JSON payload.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Each log entry contains four mandatory fields:
      ts     — ISO 8601 UTC timestamp
      level  — log level name
      module — the logger name (usually the Python module path)
      msg    — the formatted message string

    Anything passed through `extra=` is merged in as additional fields. This
    is how the pipeline attaches platform, cpu_target, feature_set and the
    like to every line about a job. Exceptions logged with exc_info end up
    under "exc".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Every module calls this once at the top and keeps the returned instance.
    Calling it again for the same name only adjusts the level, so repeated
    calls (CLI commands, tests) never stack handlers.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    level = _resolve_log_level(log_level)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Don't propagate to root logger — we handle all output ourselves.
    logger.propagate = False

    return logger


def configure_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Apply a run-wide level (and optional log file) to every binforge logger.

    Module-level loggers are created at import time with the default level,
    before the config is even loaded. This walks the ones that already exist
    and brings them in line with the run's settings.
    """
    level = _resolve_log_level(log_level)
    formatter = JsonFormatter()
    resolved_file = str(log_file.resolve()) if log_file is not None else None

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    for name in list(logging.Logger.manager.loggerDict):
        if not name.startswith("binforge"):
            continue
        logger = get_logger(name, log_level=log_level)
        for handler in logger.handlers:
            handler.setLevel(level)

        if resolved_file is None:
            continue
        has_file = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == resolved_file
            for h in logger.handlers
        )
        if not has_file:
            file_handler = logging.FileHandler(resolved_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
