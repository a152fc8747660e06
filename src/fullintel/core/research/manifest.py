"""Workflow manifest model and YAML loader.

A manifest names the workflow, declares output schemas and quality gates,
and lists the phases in execution order:

    manifest:
      id: "PROTO-001"
      version: "1.0.0"
      name: "Company Brief"
      description: "Pre-call research brief."
      input_label: "company name"
    schemas:
      CompanyProfile:
        fields:
          - name: industry
    phases:
      - id: PHASE-01
        name: Context
        instructions: "Profile the company."
        input: target_company
        output_schema: CompanyProfile
    quality_gates:
      - phase: PHASE-01
        check: "Industry identified"
        fail_action: retry

Schemas and quality gates are parsed and kept for callers; the workflow
engine does not evaluate them.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fullintel.core.research.models import Phase

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Manifest file could not be read or does not match the manifest shape."""


class ManifestHeader(BaseModel):
    id: str
    version: str
    name: str
    description: str = ""
    input_label: Optional[str] = None


class SchemaField(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    allowed_values: Optional[list[str]] = Field(default=None, alias="enum")


class DataSchema(BaseModel):
    fields: list[SchemaField] = Field(default_factory=list)


class QualityGate(BaseModel):
    phase: str
    check: str
    fail_action: str


class Manifest(BaseModel):
    """Parsed workflow manifest."""

    manifest: ManifestHeader
    schemas: dict[str, DataSchema] = Field(default_factory=dict)
    phases: list[Phase] = Field(default_factory=list)
    quality_gates: list[QualityGate] = Field(default_factory=list)

    @property
    def header(self) -> ManifestHeader:
        return self.manifest

    def get_phase(self, phase_id: str) -> Optional[Phase]:
        return next((phase for phase in self.phases if phase.id == phase_id), None)


def parse_manifest(text: str) -> Manifest:
    """Parse manifest YAML text.

    Raises:
        ManifestError: If the YAML is invalid or the document has the wrong shape
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Failed to parse YAML manifest: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a YAML mapping")

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest: {e}") from e


def load_manifest(path: Union[str, Path]) -> Manifest:
    """Load and parse a manifest file from disk.

    Raises:
        ManifestError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Failed to read manifest file: {path}: {e}") from e

    manifest = parse_manifest(text)
    logger.debug(
        "Loaded manifest %s (%d phases) from %s",
        manifest.header.id,
        len(manifest.phases),
        path,
    )
    return manifest
