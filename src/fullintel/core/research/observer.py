"""Progress sinks for workflow runs.

The engine reports progress through a ``WorkflowObserver``. Every
notification is fire-and-forget: the engine logs and drops any exception an
observer raises, so a broken sink never aborts a run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from fullintel.core.research.models import PhaseStatus

logger = logging.getLogger(__name__)


class WorkflowObserver:
    """Base observer; every hook is a no-op."""

    def on_log(self, message: str) -> None:
        pass

    def on_phase_status(self, phase_id: str, status: PhaseStatus) -> None:
        pass

    def on_stream_token(self, token: str, phase_id: str) -> None:
        pass

    def on_phase_output(
        self,
        phase_id: str,
        phase_name: str,
        status: str,
        *,
        system_prompt: Optional[str] = None,
        user_input: Optional[str] = None,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        pass


class LoggingObserver(WorkflowObserver):
    """Forwards phase transitions and failures to ``logging``.

    Run log lines are not repeated here; the engine already logs them.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def on_phase_status(self, phase_id: str, status: PhaseStatus) -> None:
        self._log.info("Phase %s -> %s", phase_id, status.label())

    def on_phase_output(
        self,
        phase_id: str,
        phase_name: str,
        status: str,
        *,
        system_prompt: Optional[str] = None,
        user_input: Optional[str] = None,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if error:
            self._log.error("Phase %s (%s) %s: %s", phase_id, phase_name, status, error)
        else:
            self._log.debug("Phase %s (%s) %s", phase_id, phase_name, status)


@dataclass
class RecordingObserver(WorkflowObserver):
    """Keeps every notification in memory."""

    logs: list[str] = field(default_factory=list)
    statuses: list[tuple[str, PhaseStatus]] = field(default_factory=list)
    tokens: list[tuple[str, str]] = field(default_factory=list)
    outputs: list[dict[str, Any]] = field(default_factory=list)

    def on_log(self, message: str) -> None:
        self.logs.append(message)

    def on_phase_status(self, phase_id: str, status: PhaseStatus) -> None:
        self.statuses.append((phase_id, status))

    def on_stream_token(self, token: str, phase_id: str) -> None:
        self.tokens.append((phase_id, token))

    def on_phase_output(
        self,
        phase_id: str,
        phase_name: str,
        status: str,
        *,
        system_prompt: Optional[str] = None,
        user_input: Optional[str] = None,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.outputs.append(
            {
                "phase_id": phase_id,
                "phase_name": phase_name,
                "status": status,
                "system_prompt": system_prompt,
                "user_input": user_input,
                "output": output,
                "error": error,
            }
        )


class CompositeObserver(WorkflowObserver):
    """Fans each notification out to several observers in order.

    A failing observer is logged and skipped; the rest are still notified.
    """

    def __init__(self, observers: Sequence[WorkflowObserver]):
        self.observers = list(observers)

    def _fan_out(self, hook: str, *args: Any, **kwargs: Any) -> None:
        for observer in self.observers:
            try:
                getattr(observer, hook)(*args, **kwargs)
            except Exception:
                logger.exception(f"{type(observer).__name__}.{hook} failed")

    def on_log(self, message: str) -> None:
        self._fan_out("on_log", message)

    def on_phase_status(self, phase_id: str, status: PhaseStatus) -> None:
        self._fan_out("on_phase_status", phase_id, status)

    def on_stream_token(self, token: str, phase_id: str) -> None:
        self._fan_out("on_stream_token", token, phase_id)

    def on_phase_output(self, phase_id: str, phase_name: str, status: str, **kwargs: Any) -> None:
        self._fan_out("on_phase_output", phase_id, phase_name, status, **kwargs)
