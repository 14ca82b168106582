# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for shipwright.

Every log entry is one JSON object per line: timestamp, level, the logger
name and the message, plus whatever the caller passed through `extra`.
Release stages attach `stage` and `platform` so a failed CI log can be
filtered down to the step that broke.

How this works:
  - Python's standard `logging` module does the routing. JsonFormatter
    replaces the default formatter and serializes each record.
  - One handler always writes to stdout, a second one optionally to a file.
  - `get_logger` is the only way to create loggers in this package.

Example line:
  {"ts": "2026-...", "level": "INFO", "module": "shipwright.release.pipeline", "msg": "stage started", "stage": "buildPackages", "platform": "linux"}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# LogRecord attributes that are plumbing, not caller context.
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

    Mandatory fields:
      ts    : ISO 8601 UTC timestamp
      level : log level name
      module: the logger name (usually the Python module path)
      msg   : the formatted message string

    Fields passed through `extra=` are merged in as additional keys. If the
    record carries an exception, its formatted traceback lands in `exc`.
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


# Set by configure_package_logging; loggers created afterwards inherit them.
_package_level: Optional[int] = None
_package_file_handler: Optional[logging.FileHandler] = None


def _in_package(name: str) -> bool:
    return name == "shipwright" or name.startswith("shipwright.")


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Every module calls this once at import time and keeps the returned
    instance in a module-level `_logger`.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. When omitted,
                   the level from configure_package_logging applies, or INFO
                   if the package has not been configured yet.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    if log_level is not None:
        level = _resolve_log_level(log_level)
    elif _package_level is not None and _in_package(name):
        level = _package_level
    else:
        level = logging.INFO
    logger.setLevel(level)

    # get_logger runs once per module import and again from the CLI with the
    # requested level; handlers must not stack.
    if logger.handlers:
        for handler in logger.handlers:
            if handler is not _package_file_handler:
                handler.setLevel(level)
    else:
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

        logger.propagate = False

    if (
        _package_file_handler is not None
        and _in_package(name)
        and _package_file_handler not in logger.handlers
    ):
        logger.addHandler(_package_file_handler)

    return logger


def configure_package_logging(log_level: str, log_file: Optional[Path] = None) -> None:
    """
    Apply a level (and optionally a log file) to every shipwright logger.

    Module loggers are created at import time with the default level; the
    CLI calls this after reading `--log-level` and the config file. Loggers
    that already exist are updated in place, and loggers created later (the
    CLI imports release modules lazily) pick up the same level and file from
    get_logger. Calling it again replaces the previous log file.
    """
    global _package_level, _package_file_handler

    level = _resolve_log_level(log_level)
    previous_handler = _package_file_handler
    file_handler: Optional[logging.FileHandler] = None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())
        file_handler.setLevel(level)

    _package_level = level
    _package_file_handler = file_handler

    for name in list(logging.Logger.manager.loggerDict):
        if not _in_package(name):
            continue
        logger = logging.getLogger(name)
        if previous_handler is not None and previous_handler in logger.handlers:
            logger.removeHandler(previous_handler)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        if file_handler is not None and file_handler not in logger.handlers:
            logger.addHandler(file_handler)

    if previous_handler is not None:
        previous_handler.close()
