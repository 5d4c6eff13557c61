"""Structured JSON logging for azdo-mcp.

Writes JSONL to a rotating file (5MB, 3 backups) when a log file is
configured, otherwise to stderr.  stdout is never used: in stdio mode it
carries the MCP protocol stream.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_LOGGER_NAME = "azdo_mcp"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3

# Argument keys whose values are credentials.
_SECRET_KEYS = frozenset({"token", "secretToken", "secret_token", "pat"})


def redact_arguments(arguments: Any) -> Any:
    """Return a copy of *arguments* with credential values masked."""
    if not isinstance(arguments, Mapping):
        return arguments
    return {k: ("***" if k in _SECRET_KEYS else v) for k, v in arguments.items()}


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if hasattr(record, "tool"):
            entry["tool"] = record.tool
        if hasattr(record, "args_data"):
            entry["args"] = redact_arguments(record.args_data)
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms
        if hasattr(record, "error_kind"):
            entry["error_kind"] = record.error_kind
        if hasattr(record, "error"):
            entry["error"] = record.error
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def setup_logging(log_file: Path | None = None, *, level: int = logging.INFO) -> logging.Logger:
    """Attach a JSON handler to the ``azdo_mcp`` logger and return it.

    Idempotent: calling again with the same target reuses the existing
    handler; a different target replaces it.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    target = os.path.abspath(str(log_file)) if log_file is not None else None

    with _setup_lock:
        for h in logger.handlers[:]:
            if isinstance(h, RotatingFileHandler):
                if h.baseFilename == target:
                    return logger
            elif isinstance(h, logging.StreamHandler) and getattr(h, "_azdo_stderr", False):
                if target is None:
                    return logger
            else:
                continue
            # Different target: replace the stale handler.
            logger.removeHandler(h)
            h.close()

        handler: logging.Handler
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
        else:
            handler = logging.StreamHandler(sys.stderr)
            handler._azdo_stderr = True  # type: ignore[attr-defined]
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
