"""Pydantic models for phased research workflows.

These models define the phases a workflow manifest declares, the status of
each phase during a run, and the shared state (context blackboard, statuses
and log) a run accumulates.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class PhaseState(str, Enum):
    """Lifecycle of one phase: pending -> running -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # reserved, never assigned by the engine


# =============================================================================
# Phase Models
# =============================================================================


class Phase(BaseModel):
    """One step of a workflow: instructions for the model plus context bindings.

    ``tools``, ``dependencies``, ``output_format`` and ``logic_map`` are carried
    from the manifest as metadata only; phases always run in list order.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., description="Unique phase identifier")
    name: str = Field(..., description="Human-readable phase name")
    instructions: str = Field(default="", description="Instructions sent to the model")
    input: Optional[str] = Field(
        default=None, description="Context key holding this phase's input"
    )
    output_target: Optional[str] = Field(
        default=None, description="Context key receiving this phase's output"
    )
    output_schema: Optional[str] = Field(
        default=None, description="Schema name; also the fallback output key"
    )
    model: Optional[str] = Field(default=None, description="Per-phase model override")
    tools: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    output_format: Optional[str] = None
    logic_map: Optional[dict[str, dict[str, str]]] = None

    @property
    def output_key(self) -> Optional[str]:
        """Context key the output is stored under, if any."""
        return self.output_target or self.output_schema


class PhaseStatus(BaseModel):
    """Status of a phase; ``reason`` is set only for failures."""

    model_config = ConfigDict(frozen=True)

    state: PhaseState = PhaseState.PENDING
    reason: Optional[str] = None

    @classmethod
    def pending(cls) -> "PhaseStatus":
        return cls(state=PhaseState.PENDING)

    @classmethod
    def running(cls) -> "PhaseStatus":
        return cls(state=PhaseState.RUNNING)

    @classmethod
    def completed(cls) -> "PhaseStatus":
        return cls(state=PhaseState.COMPLETED)

    @classmethod
    def failed(cls, reason: str) -> "PhaseStatus":
        return cls(state=PhaseState.FAILED, reason=reason)

    @classmethod
    def skipped(cls) -> "PhaseStatus":
        return cls(state=PhaseState.SKIPPED)

    def label(self) -> str:
        if self.state == PhaseState.FAILED and self.reason:
            return f"failed: {self.reason}"
        return self.state.value


# =============================================================================
# Workflow State
# =============================================================================


class WorkflowLogEntry(BaseModel):
    """A single run log line."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message: str


class WorkflowState(BaseModel):
    """Mutable state of one workflow run.

    Owned by exactly one engine run; never shared between runs.
    """

    current_phase_id: Optional[str] = None
    phase_statuses: dict[str, PhaseStatus] = Field(default_factory=dict)
    context: dict[str, str] = Field(default_factory=dict)
    logs: list[WorkflowLogEntry] = Field(default_factory=list)

    def set_status(self, phase_id: str, status: PhaseStatus) -> None:
        self.phase_statuses[phase_id] = status

    def status_of(self, phase_id: str) -> PhaseStatus:
        return self.phase_statuses.get(phase_id, PhaseStatus.pending())

    def add_log(self, message: str) -> WorkflowLogEntry:
        entry = WorkflowLogEntry(message=message)
        self.logs.append(entry)
        return entry

    def summary(self) -> dict[str, Any]:
        """Serializable overview used by the CLI."""
        return {
            "current_phase_id": self.current_phase_id,
            "phase_statuses": {
                phase_id: status.model_dump(mode="json")
                for phase_id, status in self.phase_statuses.items()
            },
            "context_keys": sorted(self.context),
        }
