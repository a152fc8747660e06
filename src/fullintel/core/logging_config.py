"""Log output for workflow runs.

Every record passing through the fullintel handler is tagged with the run
and phase it was emitted under (see ``fullintel.core.context``) and then
rendered either as one JSON object per line or as a short human-readable
line.

Usage:
    from fullintel.core.logging_config import configure_logging, get_logger

    configure_logging(level="DEBUG", format="human")
    logger = get_logger(__name__)
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO, Union

from fullintel.core.context import get_phase_id, get_run_id, get_start_time

__all__ = [
    "ContextFilter",
    "StructuredFormatter",
    "HumanReadableFormatter",
    "configure_logging",
    "get_logger",
]

ROOT_LOGGER_NAME = "fullintel"

# Attributes every LogRecord has; anything else arrived via ``extra=``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName", "run_id", "phase_id", "elapsed_ms"}


class ContextFilter(logging.Filter):
    """Adds ``run_id``, ``phase_id`` and ``elapsed_ms`` to each record.

    Unset identifiers are rendered as ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id() or "-"
        record.phase_id = get_phase_id() or "-"
        started = get_start_time()
        record.elapsed_ms = round((time.time() - started) * 1000, 2) if started > 0 else 0.0
        return True


def _short_name(name: str) -> str:
    prefix = f"{ROOT_LOGGER_NAME}."
    return name[len(prefix):] if name.startswith(prefix) else name


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Example:
        {"timestamp": "2025-01-15T10:30:45.123+00:00", "level": "INFO",
         "logger": "fullintel.core.llm_client", "message": "Rate limited by openai",
         "run_id": "run_a1b2c3d4e5f6", "phase_id": "PHASE-01", "elapsed_ms": 42.5}
    """

    def __init__(self, *, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
            "phase_id": getattr(record, "phase_id", "-"),
            "elapsed_ms": getattr(record, "elapsed_ms", 0.0),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
            if extra:
                entry["extra"] = extra

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``2025-01-15 10:30:45 [INFO] [run_a1b2c3/PHASE-01] core.llm_client: message``

    The bracketed run/phase tag is omitted outside a run.
    """

    def __init__(self, *, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        parts = []
        if self.include_timestamp:
            parts.append(datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"))
        parts.append(f"[{record.levelname}]")

        run_id = getattr(record, "run_id", "-")
        phase_id = getattr(record, "phase_id", "-")
        if run_id != "-":
            parts.append(f"[{run_id}/{phase_id}]" if phase_id != "-" else f"[{run_id}]")

        parts.append(f"{_short_name(record.name)}: {record.getMessage()}")
        line = " ".join(parts)

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    *,
    level: Union[int, str] = logging.INFO,
    format: str = "structured",
    stream: Optional[TextIO] = None,
    add_context: bool = True,
) -> logging.Logger:
    """Install a single handler on the ``fullintel`` logger.

    Args:
        level: Level name or number; unknown names fall back to INFO
        format: "structured" (JSON lines) or "human"
        stream: Destination, stderr by default
        add_context: Attach ContextFilter to the handler

    Returns:
        The ``fullintel`` logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        StructuredFormatter() if format == "structured" else HumanReadableFormatter()
    )
    if add_context:
        handler.addFilter(ContextFilter())

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``fullintel`` namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)