"""fullintel CLI entry point.

JSON-only output: every command prints a single response envelope.
"""

import asyncio
from pathlib import Path
from typing import Optional

import click

from fullintel.cli.output import emit_error, emit_exception, emit_success
from fullintel.config import AgentConfig
from fullintel.core.llm_client import ResilientClient
from fullintel.core.llm_provider import LLMError, UnsupportedModelError
from fullintel.core.providers.base import ProviderKind, detect_provider
from fullintel.core.research.manifest import ManifestError, load_manifest
from fullintel.core.research.observer import LoggingObserver
from fullintel.core.research.workflows.phased import (
    FINAL_ARTIFACT_KEY,
    WorkflowEngine,
    WorkflowError,
)


@click.group()
@click.option(
    "--config",
    "config_file",
    envvar="FULLINTEL_CONFIG_FILE",
    type=click.Path(exists=False, dir_okay=False),
    help="Path to a fullintel.toml config file",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str]) -> None:
    """fullintel - autonomous multi-phase research agent.

    All commands output JSON.
    """
    ctx.ensure_object(dict)
    config = AgentConfig.from_env(config_file)
    if log_level:
        config.log_level = log_level.upper()
    config.setup_logging()
    ctx.obj["config"] = config


def _key_model(manifest_phases, model_override: Optional[str], default_model: str) -> str:
    """Model whose provider decides which env var supplies the API key."""
    if model_override:
        return model_override
    for phase in manifest_phases:
        if phase.model:
            return phase.model
    return default_model


@cli.command("run")
@click.argument("manifest_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "initial_input", required=True, help="Research subject")
@click.option("--model", default=None, help="Model used for every phase")
@click.option("--api-key", default=None, help="API key (defaults to configuration)")
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the final report to this file",
)
@click.option("--no-stream", is_flag=True, help="Use whole-response calls only")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    manifest_path: str,
    initial_input: str,
    model: Optional[str],
    api_key: Optional[str],
    output_path: Optional[str],
    no_stream: bool,
) -> None:
    """Run every phase of MANIFEST_PATH against INPUT."""
    config: AgentConfig = ctx.obj["config"]

    try:
        manifest = load_manifest(manifest_path)
    except ManifestError as e:
        emit_exception(e, remediation="Check the manifest YAML against the manifest format")

    model_override = model or config.model_override
    key = api_key or config.llm.get_api_key(
        _key_model(manifest.phases, model_override, config.default_model)
    )
    if not key:
        emit_error(
            "No API key configured",
            "MISSING_API_KEY",
            error_type="authentication",
            remediation="Pass --api-key or set FULLINTEL_API_KEY",
        )

    client = ResilientClient(key, config=config.llm)
    engine = WorkflowEngine.from_manifest(
        manifest,
        client,
        observer=LoggingObserver(),
        model_override=model_override,
        default_model=config.default_model,
        stream=config.stream and not no_stream,
    )

    async def _run():
        async with client:
            return await engine.run(initial_input)

    try:
        state = asyncio.run(_run())
    except (LLMError, WorkflowError) as e:
        emit_exception(
            e,
            details={
                "failed_phase": engine.state.current_phase_id,
                **engine.state.summary(),
            },
        )

    report = state.context[FINAL_ARTIFACT_KEY]
    if output_path:
        Path(output_path).write_text(report, encoding="utf-8")

    emit_success(
        {
            "manifest_id": manifest.header.id,
            "final_artifact": report,
            "output_path": output_path,
            **state.summary(),
        }
    )


@cli.command("detect")
@click.argument("model")
def detect_cmd(model: str) -> None:
    """Print the provider MODEL is routed to."""
    try:
        kind = detect_provider(model)
    except UnsupportedModelError as e:
        emit_exception(e, remediation="Use a claude-, gemini-, deepseek-, gpt-, o1- or o3- model")
    emit_success({"model": model, "provider": kind.value})


@cli.command("status")
@click.pass_context
def status_cmd(ctx: click.Context) -> None:
    """Show effective configuration and provider policies."""
    config: AgentConfig = ctx.obj["config"]
    emit_success(
        {
            "providers": [kind.value for kind in ProviderKind],
            **config.to_dict(),
        }
    )


if __name__ == "__main__":
    cli()
