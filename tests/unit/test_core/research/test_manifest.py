"""Tests for manifest parsing and the research state models."""

import pytest

from fullintel.core.research.manifest import ManifestError, load_manifest, parse_manifest
from fullintel.core.research.models import Phase, PhaseState, PhaseStatus, WorkflowState


class TestParseManifest:
    """Tests for parse_manifest / load_manifest."""

    def test_header(self, manifest_text):
        manifest = parse_manifest(manifest_text)

        assert manifest.header.id == "PROTO-001"
        assert manifest.header.version == "1.0.0"
        assert manifest.header.input_label == "company name"

    def test_phases_in_order(self, manifest_text):
        manifest = parse_manifest(manifest_text)

        assert [p.id for p in manifest.phases] == ["PHASE-01", "PHASE-02"]
        first = manifest.get_phase("PHASE-01")
        assert first.input == "target_company"
        assert first.output_key == "CompanyProfile"
        assert first.tools == ["search"]

    def test_metadata_fields_carried(self, manifest_text):
        manifest = parse_manifest(manifest_text)
        second = manifest.get_phase("PHASE-02")

        assert second.dependencies == ["PHASE-01"]
        assert second.logic_map == {"size": {"small": "Keep it short."}}
        assert second.output_key == "brief"

    def test_schemas_and_gates(self, manifest_text):
        manifest = parse_manifest(manifest_text)

        fields = manifest.schemas["CompanyProfile"].fields
        assert [f.name for f in fields] == ["industry", "size"]
        assert fields[1].allowed_values == ["small", "medium", "large"]
        assert manifest.quality_gates[0].fail_action == "retry"

    def test_unknown_phase(self, manifest_text):
        assert parse_manifest(manifest_text).get_phase("PHASE-99") is None

    def test_invalid_yaml(self):
        with pytest.raises(ManifestError, match="Failed to parse YAML"):
            parse_manifest("manifest: [unclosed")

    def test_not_a_mapping(self):
        with pytest.raises(ManifestError, match="must be a YAML mapping"):
            parse_manifest("- just\n- a list\n")

    def test_missing_header(self):
        with pytest.raises(ManifestError, match="Invalid manifest"):
            parse_manifest("phases: []\n")

    def test_load_from_file(self, manifest_file):
        assert load_manifest(manifest_file).header.name == "Company Brief"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="Failed to read manifest file"):
            load_manifest(tmp_path / "absent.yaml")


class TestPhase:
    """Tests for the Phase model."""

    def test_extra_fields_ignored(self):
        phase = Phase(id="P", name="N", unknown_field="x")
        assert not hasattr(phase, "unknown_field")

    def test_no_output_key(self):
        assert Phase(id="P", name="N").output_key is None


class TestWorkflowState:
    """Tests for WorkflowState helpers."""

    def test_status_labels(self):
        assert PhaseStatus.pending().label() == "pending"
        assert PhaseStatus.failed("boom").label() == "failed: boom"

    def test_status_of_unknown_phase_is_pending(self):
        assert WorkflowState().status_of("nope").state == PhaseState.PENDING

    def test_summary(self):
        state = WorkflowState(current_phase_id="A")
        state.set_status("A", PhaseStatus.failed("Missing input: k"))
        state.context["initial_input"] = "Acme"
        state.add_log("hello")

        summary = state.summary()

        assert summary["current_phase_id"] == "A"
        assert summary["phase_statuses"]["A"] == {
            "state": "failed",
            "reason": "Missing input: k",
        }
        assert summary["context_keys"] == ["initial_input"]
        assert state.logs[0].message == "hello"
