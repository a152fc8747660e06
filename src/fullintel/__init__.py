"""Fullintel - autonomous multi-phase research agent."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("fullintel-agent")
except PackageNotFoundError:
    # Package not installed (development mode without editable install)
    __version__ = "0.1.0"

from fullintel.core.llm_client import ResilientClient
from fullintel.core.research.workflows.phased import WorkflowEngine

__all__ = ["__version__", "ResilientClient", "WorkflowEngine"]
