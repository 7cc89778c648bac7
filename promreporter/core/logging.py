"""Logging configuration for promreporter.

Two output shapes are supported:

  _ContainerFormatter: human-readable, single-line, for local runs.

  _JsonFormatter: one JSON object per line, for log aggregation.
    Context passed through ``extra=`` (the listen address, the scrape
    path, the metric name) becomes top-level keys, so a query like
    ``metric == "rpc_latency"`` works without regex.

Library code never calls setup_logging(); only the entry point does.
Modules log through ``logging.getLogger(__name__)`` and inherit whatever
the embedding application configured.
"""

from __future__ import annotations

import json
import logging
import sys
import time

# Attributes reporter modules pass through ``extra=``.
_CONTEXT_FIELDS = ("address", "path", "metric", "error_mode")

# uvicorn logs every scrape at INFO
_QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def _timestamp(record: logging.LogRecord) -> str:
    """ISO-8601 local time with milliseconds, e.g. 2024-01-01T00:00:00.123+0000."""
    local = time.localtime(record.created)
    return (
        time.strftime("%Y-%m-%dT%H:%M:%S", local)
        + f".{int(record.msecs):03d}"
        + time.strftime("%z", local)
    )


def _context(record: logging.LogRecord) -> dict[str, object]:
    fields = {}
    for key in _CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            fields[key] = value
    return fields


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for container stdout.

    ``<timestamp> <LEVEL> <logger>  <message>`` followed by any reporter
    context as ``key=value``.  WARNING and above also carry
    ``[filename:lineno]``; tracebacks go on the following lines.
    """

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _timestamp(record)

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record)} {record.levelname:<8} {record.name}"
            f"  {record.getMessage()}"
        )
        context = _context(record)
        if context:
            line += "  " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.levelno >= logging.WARNING:
            line += f"  [{record.filename}:{record.lineno}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter; reporter context becomes top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _stdout_handler(json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    return handler


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Send every log record to stdout, replacing existing root handlers.

    Args:
        level_name: debug/info/warning/error; anything else means info.
        json_format: JSON lines instead of the single-line text format
                     (LOG_JSON in Settings).
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_stdout_handler(json_format))
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
