"""Phased research workflows.

This package provides the phase and run-state models, the manifest loader,
progress observers and the workflow engine that drives the LLM client.
"""

from fullintel.core.research.models import (
    Phase,
    PhaseState,
    PhaseStatus,
    WorkflowLogEntry,
    WorkflowState,
)
from fullintel.core.research.manifest import (
    Manifest,
    ManifestError,
    load_manifest,
    parse_manifest,
)
from fullintel.core.research.observer import (
    CompositeObserver,
    LoggingObserver,
    RecordingObserver,
    WorkflowObserver,
)
from fullintel.core.research.workflows import (
    FINAL_ARTIFACT_KEY,
    MissingInputError,
    WorkflowEngine,
    WorkflowError,
)

__all__ = [
    # Models
    "Phase",
    "PhaseState",
    "PhaseStatus",
    "WorkflowLogEntry",
    "WorkflowState",
    # Manifest
    "Manifest",
    "ManifestError",
    "load_manifest",
    "parse_manifest",
    # Observers
    "WorkflowObserver",
    "LoggingObserver",
    "RecordingObserver",
    "CompositeObserver",
    # Engine
    "WorkflowEngine",
    "WorkflowError",
    "MissingInputError",
    "FINAL_ARTIFACT_KEY",
]
