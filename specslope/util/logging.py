"""Logging setup for specslope.

All loggers live under the ``specslope`` namespace. Console output goes to
stderr; an optional JSON-lines file receives the same records with their
structured context (channel, window count, cache path, timing).

Usage:
    from specslope.util.logging import get_logger, configure_logging

    configure_logging(level="DEBUG", json_file="/tmp/specslope.log")
    logger = get_logger(__name__)
    logger.info("Fitting slopes", extra={"channel": 3, "n_windows": 1200})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


_configured = False
_root_logger_name = "specslope"

_EXTRA_FIELDS = ("channel", "n_windows", "cache_path", "error_type", "duration_ms")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        output.update(_context(record))
        if record.exc_info:
            output["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(output, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[time] LEVEL [module] message key=value ...`` with optional color."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"
        name = record.name[len(_root_logger_name) + 1:] if record.name.startswith(f"{_root_logger_name}.") else record.name
        line = f"[{ts}] {level} [{name}] {record.getMessage()}"
        context = _context(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[Union[str, os.PathLike]] = None,
    use_color: bool = True,
) -> None:
    """Install console (and optionally JSON file) handlers on the specslope logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. When omitted, SPECSLOPE_DEBUG=1
            selects DEBUG, otherwise SPECSLOPE_LOG_LEVEL (default INFO).
        json_file: Path that receives JSON-lines records, appended to.
        use_color: Colorize console levels (ignored when stderr is not a TTY).

    Calling it again replaces the handlers installed by the previous call.
    """
    global _configured

    if level is None:
        if os.environ.get("SPECSLOPE_DEBUG", "").strip() in ("1", "true", "yes"):
            level = "DEBUG"
        else:
            level = os.environ.get("SPECSLOPE_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ConsoleFormatter(use_color=use_color))
    logger.addHandler(console_handler)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to open JSON log file %s: %s", json_file, exc)
        else:
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the specslope namespace, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if name != _root_logger_name and not name.startswith(f"{_root_logger_name}."):
        name = f"{_root_logger_name}.{name}"
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the exception being handled, tagged with ``error_type`` (e.g. "cache_write")."""
    if error_type:
        extra["error_type"] = error_type
    logger.exception(message, extra=extra)
