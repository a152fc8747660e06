"""
Root pytest configuration and shared fixtures.
"""

import logging
from typing import List

import pytest

from fullintel.config import reset_config


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records delays and advances a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


SAMPLE_MANIFEST = """\
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
      - name: size
        enum: [small, medium, large]
phases:
  - id: PHASE-01
    name: Context
    instructions: "Profile the company."
    input: target_company
    output_schema: CompanyProfile
    tools: [search]
  - id: PHASE-02
    name: Brief
    instructions: "Write the brief."
    input: CompanyProfile
    output_target: brief
    dependencies: [PHASE-01]
    logic_map:
      size:
        small: "Keep it short."
quality_gates:
  - phase: PHASE-01
    check: "Industry identified"
    fail_action: retry
"""


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock) -> RecordingSleep:
    return RecordingSleep(fake_clock)


@pytest.fixture
def manifest_text() -> str:
    return SAMPLE_MANIFEST


@pytest.fixture
def manifest_file(tmp_path, manifest_text):
    path = tmp_path / "manifest.yaml"
    path.write_text(manifest_text, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep developer API keys and FULLINTEL_* settings out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("FULLINTEL_") or name.endswith("_API_KEY"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def restore_fullintel_logger():
    """configure_logging mutates the package logger; restore it afterwards."""
    fullintel_logger = logging.getLogger("fullintel")
    handlers = list(fullintel_logger.handlers)
    level = fullintel_logger.level
    propagate = fullintel_logger.propagate
    yield
    fullintel_logger.handlers = handlers
    fullintel_logger.setLevel(level)
    fullintel_logger.propagate = propagate
