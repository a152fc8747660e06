"""
Tests for the fullintel CLI JSON envelopes.

The run command talks to a ResilientClient whose HTTP layer is an
httpx.MockTransport, so the full path from manifest to report is exercised
without network access.
"""

import json

import httpx
import pytest
from click.testing import CliRunner

import fullintel.cli.main as cli_main
from fullintel.cli.main import cli
from fullintel.cli.output import error_code_for
from fullintel.core.llm_client import ResilientClient
from fullintel.core.llm_provider import (
    AuthenticationError,
    CircuitBreakerOpenError,
    LLMError,
    ProviderError,
)
from fullintel.core.research.workflows import MissingInputError


def last_json_line(text: str) -> dict:
    lines = [line for line in text.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


def anthropic_handler(request: httpx.Request) -> httpx.Response:
    """Echoes the user message back, streamed or whole."""
    body = json.loads(request.content)
    text = f"analysis of {body['messages'][0]['content']}"
    if body.get("stream"):
        event = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": text}}
        return httpx.Response(200, content=f"data: {json.dumps(event)}\n\n".encode())
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


@pytest.fixture
def mock_upstream(monkeypatch):
    """Route every ResilientClient the CLI builds through a MockTransport."""
    created = []

    def factory(api_key, *, config=None):
        http = httpx.AsyncClient(transport=httpx.MockTransport(anthropic_handler))
        client = ResilientClient(api_key, config=config, http_client=http)
        created.append(client)
        return client

    monkeypatch.setattr(cli_main, "ResilientClient", factory)
    return created


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestRunCommand:
    """Tests for `fullintel run`."""

    def test_success_envelope(self, runner, manifest_file, mock_upstream):
        result = runner.invoke(
            cli, ["run", str(manifest_file), "--input", "Initech", "--api-key", "k"]
        )

        assert result.exit_code == 0, result.output
        envelope = json.loads(result.stdout)
        assert envelope["success"] is True
        assert envelope["error"] is None
        assert envelope["meta"]["version"] == "response-v2"
        data = envelope["data"]
        assert data["manifest_id"] == "PROTO-001"
        assert data["final_artifact"] == (
            "## Context\n\nanalysis of Initech\n\n---\n\n"
            "## Brief\n\nanalysis of analysis of Initech"
        )
        assert data["phase_statuses"]["PHASE-02"]["state"] == "completed"
        assert mock_upstream, "client factory was not used"

    def test_output_file(self, runner, manifest_file, mock_upstream, tmp_path):
        report = tmp_path / "report.md"

        result = runner.invoke(
            cli,
            [
                "run",
                str(manifest_file),
                "--input",
                "Initech",
                "--api-key",
                "k",
                "--no-stream",
                "--output",
                str(report),
            ],
        )

        assert result.exit_code == 0, result.output
        assert report.read_text(encoding="utf-8").startswith("## Context\n\nanalysis of Initech")

    def test_api_key_from_environment(self, runner, manifest_file, mock_upstream, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")

        result = runner.invoke(cli, ["run", str(manifest_file), "--input", "Initech"])

        assert result.exit_code == 0, result.output
        assert mock_upstream[0]._api_key == "from-env"

    def test_missing_api_key(self, runner, manifest_file, mock_upstream):
        result = runner.invoke(cli, ["run", str(manifest_file), "--input", "Initech"])

        assert result.exit_code == 1
        envelope = last_json_line(result.stderr)
        assert envelope["success"] is False
        assert envelope["data"]["error_code"] == "MISSING_API_KEY"
        assert mock_upstream == []

    def test_missing_input_reports_failed_phase(self, runner, tmp_path, mock_upstream):
        manifest = tmp_path / "broken.yaml"
        manifest.write_text(
            "manifest:\n  id: M\n  version: '1'\n  name: Broken\n"
            "phases:\n"
            "  - id: P1\n    name: First\n    input: initial_input\n    output_target: a\n"
            "  - id: P2\n    name: Second\n    input: missing_key\n"
            "  - id: P3\n    name: Third\n    input: a\n",
            encoding="utf-8",
        )

        result = runner.invoke(cli, ["run", str(manifest), "--input", "X", "--api-key", "k"])

        assert result.exit_code == 1
        envelope = last_json_line(result.stderr)
        assert envelope["error"] == "Missing input: missing_key"
        assert envelope["data"]["error_code"] == "MISSING_INPUT"
        details = envelope["data"]["details"]
        assert details["failed_phase"] == "P2"
        assert details["phase_statuses"]["P1"]["state"] == "completed"
        assert details["phase_statuses"]["P3"]["state"] == "pending"

    def test_invalid_manifest(self, runner, tmp_path):
        manifest = tmp_path / "bad.yaml"
        manifest.write_text("phases: []\n", encoding="utf-8")

        result = runner.invoke(cli, ["run", str(manifest), "--input", "X", "--api-key", "k"])

        assert result.exit_code == 1
        assert last_json_line(result.stderr)["data"]["error_code"] == "INVALID_MANIFEST"


class TestDetectCommand:
    """Tests for `fullintel detect`."""

    @pytest.mark.parametrize(
        "model,provider",
        [("claude-opus-4", "anthropic"), ("o1-mini", "openai"), ("deepseek-chat", "deepseek")],
    )
    def test_known(self, runner, model, provider):
        result = runner.invoke(cli, ["detect", model])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"] == {"model": model, "provider": provider}

    def test_unknown(self, runner):
        result = runner.invoke(cli, ["detect", "llama-3"])

        assert result.exit_code == 1
        envelope = last_json_line(result.stderr)
        assert envelope["data"]["error_code"] == "UNSUPPORTED_MODEL"
        assert "remediation" in envelope["data"]


class TestStatusCommand:
    """Tests for `fullintel status`."""

    def test_policies(self, runner, monkeypatch):
        monkeypatch.setenv("FULLINTEL_RATE_LIMIT_DEEPSEEK", "12")

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)["data"]
        assert data["providers"] == ["anthropic", "openai", "gemini", "deepseek"]
        assert data["llm"]["providers"]["deepseek"]["requests_per_minute"] == 12.0
        assert data["llm"]["api_key_configured"] is False


class TestErrorCodes:
    """Tests for exception to error_code mapping."""

    def test_specific_before_general(self):
        assert error_code_for(AuthenticationError()) == ("AUTHENTICATION_FAILED", "authentication")
        assert error_code_for(ProviderError("x")) == ("PROVIDER_ERROR", "provider")
        assert error_code_for(CircuitBreakerOpenError("gemini"))[0] == "CIRCUIT_OPEN"
        assert error_code_for(MissingInputError("k"))[0] == "MISSING_INPUT"
        assert error_code_for(LLMError("x"))[0] == "LLM_ERROR"
        assert error_code_for(RuntimeError("x")) == ("INTERNAL_ERROR", "internal")
