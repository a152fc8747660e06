"""Research workflow implementations.

- WorkflowEngine: Sequential, fail-fast execution of manifest phases
"""

from fullintel.core.research.workflows.phased import (
    FALLBACK_INPUT_KEYS,
    FINAL_ARTIFACT_KEY,
    MissingInputError,
    WorkflowEngine,
    WorkflowError,
)

__all__ = [
    "WorkflowEngine",
    "WorkflowError",
    "MissingInputError",
    "FALLBACK_INPUT_KEYS",
    "FINAL_ARTIFACT_KEY",
]
