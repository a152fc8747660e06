"""Run and phase correlation for workflow logging.

This module provides the single source of truth for which workflow run and
which phase the current code is executing on behalf of. The values live in
context variables so they follow ``await`` boundaries and never leak between
concurrently running workflows.

Usage:
    from fullintel.core.context import (
        run_context,
        phase_context,
        get_run_id,
        get_phase_id,
        generate_run_id,
    )

    with run_context() as ctx:
        print(ctx.run_id)  # e.g., "run_a1b2c3d4e5f6"
        with phase_context("PHASE-01"):
            logger.info("Executing phase")  # record carries run_id + phase_id
"""

from __future__ import annotations

import secrets
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Optional

__all__ = [
    "run_id_var",
    "phase_id_var",
    "start_time_var",
    "RunContext",
    "generate_run_id",
    "run_context",
    "phase_context",
    "get_run_id",
    "get_phase_id",
    "get_start_time",
    "get_current_context",
]

# -----------------------------------------------------------------------------
# Context Variables
# -----------------------------------------------------------------------------

run_id_var: ContextVar[str] = ContextVar("run_id", default="")
"""Identifier of the workflow run currently executing."""

phase_id_var: ContextVar[str] = ContextVar("phase_id", default="")
"""Identifier of the phase currently executing."""

start_time_var: ContextVar[float] = ContextVar("start_time", default=0.0)
"""Run start time as Unix timestamp."""


def generate_run_id(prefix: str = "run") -> str:
    """Generate a unique run ID with optional prefix.

    Format: {prefix}_{12_hex_chars}
    Example: "run_a1b2c3d4e5f6"

    Args:
        prefix: ID prefix (default: "run")

    Returns:
        Unique run ID string
    """
    return f"{prefix}_{secrets.token_hex(6)}"


@dataclass
class RunContext:
    """Snapshot of the current run context.

    Attributes:
        run_id: Unique workflow run identifier
        phase_id: Phase being executed (empty between phases)
        start_time: Run start timestamp
    """

    run_id: str = ""
    phase_id: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time since the run started in seconds."""
        if self.start_time <= 0:
            return 0.0
        return time.time() - self.start_time

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time since the run started in milliseconds."""
        return self.elapsed_seconds * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for logging/serialization."""
        return {
            "run_id": self.run_id,
            "phase_id": self.phase_id,
            "start_time": self.start_time,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@contextmanager
def run_context(run_id: Optional[str] = None) -> Generator[RunContext, None, None]:
    """Set up run context variables for the duration of the with block.

    Works unchanged inside coroutines: context variables are copied per task,
    so two runs on the same event loop keep separate identifiers.

    Args:
        run_id: Run ID (auto-generated if None)

    Yields:
        RunContext snapshot
    """
    rid = run_id or generate_run_id()
    start = time.time()

    token_run = run_id_var.set(rid)
    token_start = start_time_var.set(start)
    token_phase = phase_id_var.set("")

    try:
        yield RunContext(run_id=rid, start_time=start)
    finally:
        run_id_var.reset(token_run)
        start_time_var.reset(token_start)
        phase_id_var.reset(token_phase)


@contextmanager
def phase_context(phase_id: str) -> Generator[str, None, None]:
    """Mark ``phase_id`` as the active phase for the with block."""
    token = phase_id_var.set(phase_id)
    try:
        yield phase_id
    finally:
        phase_id_var.reset(token)


# -----------------------------------------------------------------------------
# Context Accessors
# -----------------------------------------------------------------------------


def get_run_id() -> str:
    """Current run ID or empty string if not set."""
    return run_id_var.get()


def get_phase_id() -> str:
    """Current phase ID or empty string if not set."""
    return phase_id_var.get()


def get_start_time() -> float:
    """Run start time as Unix timestamp or 0.0 if not set."""
    return start_time_var.get()


def get_current_context() -> RunContext:
    """Snapshot of all current context values."""
    return RunContext(
        run_id=get_run_id(),
        phase_id=get_phase_id(),
        start_time=get_start_time(),
    )
