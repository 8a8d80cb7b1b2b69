"""Logging setup for fpvscan.

Everything logs under the ``fpvscan`` namespace:
- stderr console output, coloured on a TTY, with structured extras appended
- optional JSON-lines file for later analysis of a scan session
- FPVSCAN_DEBUG / FPVSCAN_LOG_LEVEL / FPVSCAN_LOG_JSON environment switches

Usage:
    from fpvscan.util.logging import get_logger, configure_logging

    configure_logging(level="DEBUG", json_file="/var/log/fpvscan.jsonl")
    logger = get_logger(__name__)
    logger.info("Detection", extra={"frequency_hz": 5_806_000_000, "ratio_db": 14.2})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

ROOT_LOGGER = "fpvscan"

# Structured fields accepted through ``extra={}``.
STRUCTURED_FIELDS = ("frequency_hz", "power_db", "ratio_db", "device", "error_type", "duration_ms")

_configured = False


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, timezone.utc)


def _structured(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in STRUCTURED_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        payload.update(_structured(record))
        if record.exc_info:
            payload["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[time] LEVEL [module] message key=value ...`` for humans."""

    COLORS = {
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

    @staticmethod
    def _tail(record: logging.LogRecord) -> str:
        parts: List[str] = []
        for key, value in _structured(record).items():
            if key == "frequency_hz" and isinstance(value, (int, float)):
                parts.append(f"freq={value / 1e6:.3f}MHz")
            elif isinstance(value, float):
                parts.append(f"{key}={value:.1f}")
            else:
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"
        name = record.name[len(ROOT_LOGGER) + 1:] if record.name.startswith(ROOT_LOGGER + ".") else record.name
        line = f"[{_record_time(record):%H:%M:%S}] {level} [{name}] {record.getMessage()}"
        tail = self._tail(record)
        if tail:
            line = f"{line}  ({tail})"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def _level_from_env() -> str:
    if os.environ.get("FPVSCAN_DEBUG", "").strip().lower() in ("1", "true", "yes"):
        return "DEBUG"
    return os.environ.get("FPVSCAN_LOG_LEVEL", "INFO")


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
) -> logging.Logger:
    """(Re)install the fpvscan handlers and return the namespace logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Falls back to the environment
               (FPVSCAN_DEBUG=1 wins over FPVSCAN_LOG_LEVEL), then INFO.
        json_file: JSON-lines log path; FPVSCAN_LOG_JSON when omitted.
        use_color: Colour console output when stderr is a TTY.
    """
    global _configured

    numeric_level = getattr(logging, (level or _level_from_env()).upper(), logging.INFO)
    json_file = json_file or os.environ.get("FPVSCAN_LOG_JSON") or None

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter(use_color=use_color))
    root.addHandler(console)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            root.warning("Cannot open JSON log %s: %s", json_file, exc)
        else:
            file_handler.setFormatter(JSONFormatter())
            root.addHandler(file_handler)

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the fpvscan namespace, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if name == "__main__":
        name = f"{ROOT_LOGGER}.main"
    elif name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the exception being handled together with structured context.

    Must be called from inside an ``except`` block.
    """
    if error_type:
        extra["error_type"] = error_type
    logger.exception(message, extra=extra)
