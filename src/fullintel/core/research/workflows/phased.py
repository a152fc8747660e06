"""Phased research workflow engine.

Runs the phases of a manifest strictly in order. Each phase reads its input
from the shared context, asks the model for a reply (streaming first, one
non-streaming fallback if the stream cannot be established) and writes the
reply back into the context for later phases. The first failing phase
aborts the run; outputs of phases that already completed stay in the
context.

Example:
    engine = WorkflowEngine(manifest.phases, client, observer=LoggingObserver())
    state = await engine.run("Acme Corp")
    report = state.context[FINAL_ARTIFACT_KEY]
"""

import json
import logging
import time
from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

from fullintel.core.context import phase_context, run_context
from fullintel.core.llm_client import TokenStream
from fullintel.core.llm_config import DEFAULT_MODEL
from fullintel.core.llm_provider import ConversationRequest, LLMError
from fullintel.core.research.manifest import Manifest
from fullintel.core.research.models import Phase, PhaseStatus, WorkflowState
from fullintel.core.research.observer import WorkflowObserver

logger = logging.getLogger(__name__)

#: Keys seeded with the initial input even when no phase declares them.
FALLBACK_INPUT_KEYS = ("initial_input", "target_company", "research_subject")

#: Context key receiving the full-run report after the last phase.
FINAL_ARTIFACT_KEY = "markdown_file"

REPORT_SECTION_SEPARATOR = "\n\n---\n\n"
PROGRESS_LOG_INTERVAL = 50
DATE_FORMAT = "%B %d, %Y"

SYSTEM_PROMPT_TEMPLATE = (
    "You are an autonomous research agent executing phase '{name}'.\n"
    "IMPORTANT: Today's date is {date}. When researching, prioritize finding the "
    "most recent and up-to-date information available, including data from {date} "
    "and earlier.\n\n"
    "Instructions:\n{instructions}"
)


class WorkflowError(Exception):
    """Base class for workflow-level failures."""


class MissingInputError(WorkflowError):
    """A phase's declared input key is absent from the context."""

    def __init__(self, key: str):
        super().__init__(f"Missing input: {key}")
        self.key = key


class GenerationClient(Protocol):
    """What the engine needs from an LLM client."""

    async def generate(self, request: ConversationRequest) -> str: ...

    async def generate_stream(self, request: ConversationRequest) -> TokenStream: ...


def build_system_prompt(phase: Phase, today: datetime) -> str:
    date = today.strftime(DATE_FORMAT)
    return SYSTEM_PROMPT_TEMPLATE.format(
        name=phase.name, date=date, instructions=phase.instructions
    )


class WorkflowEngine:
    """Sequential, fail-fast executor for a list of phases.

    Args:
        phases: Phases in execution order
        client: LLM client (normally a ``ResilientClient``)
        observer: Progress sink; notifications never abort the run
        model_override: Model used for every phase when set
        default_model: Model for phases that name none
        stream: Try streaming before the whole-response call
        now: Clock used for the date in the system prompt
    """

    def __init__(
        self,
        phases: Sequence[Phase],
        client: GenerationClient,
        *,
        observer: Optional[WorkflowObserver] = None,
        model_override: Optional[str] = None,
        default_model: str = DEFAULT_MODEL,
        stream: bool = True,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.phases = list(phases)
        self.client = client
        self.observer = observer or WorkflowObserver()
        self.model_override = model_override
        self.default_model = default_model
        self.stream = stream
        self._now = now
        self.state = WorkflowState()

    @classmethod
    def from_manifest(
        cls, manifest: Manifest, client: GenerationClient, **kwargs
    ) -> "WorkflowEngine":
        return cls(manifest.phases, client, **kwargs)

    def get_context(self, key: str) -> Optional[str]:
        return self.state.context.get(key)

    def model_for(self, phase: Phase) -> str:
        """Engine override, then the phase's own model, then the default."""
        return self.model_override or phase.model or self.default_model

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, initial_input: str, *, run_id: Optional[str] = None) -> WorkflowState:
        """Execute every phase in order.

        Returns:
            The final WorkflowState

        Raises:
            MissingInputError: If a phase's input key is absent
            LLMError: If the model call for a phase fails
        """
        self.state = WorkflowState(
            phase_statuses={phase.id: PhaseStatus.pending() for phase in self.phases}
        )

        with run_context(run_id):
            seeded = self._seed_context(initial_input)
            self._log(f"Populated {len(seeded)} input keys: {sorted(seeded)}")

            sections: list[str] = []
            for phase in self.phases:
                self.state.current_phase_id = phase.id
                self._set_status(phase.id, PhaseStatus.running())

                with phase_context(phase.id):
                    try:
                        output = await self._execute_phase(phase)
                    except Exception as e:
                        reason = str(e)
                        self._log(f"Phase {phase.name} failed: {reason}")
                        self._set_status(phase.id, PhaseStatus.failed(reason))
                        self._notify(
                            "on_phase_output", phase.id, phase.name, "failed", error=reason
                        )
                        raise

                    self._log(f"Phase {phase.name} completed.")
                    self._set_status(phase.id, PhaseStatus.completed())
                    self._notify(
                        "on_phase_output", phase.id, phase.name, "completed", output=output
                    )

                if phase.output_key:
                    self.state.context[phase.output_key] = output
                sections.append(f"## {phase.name}\n\n{output}")

            self.state.context[FINAL_ARTIFACT_KEY] = REPORT_SECTION_SEPARATOR.join(sections)

        return self.state

    def _seed_context(self, initial_input: str) -> set[str]:
        """Seed every declared input key, plus the fallbacks, with the same input."""
        keys = {phase.input for phase in self.phases if phase.input}
        keys.update(FALLBACK_INPUT_KEYS)
        for key in keys:
            self.state.context[key] = initial_input
        return keys

    # ------------------------------------------------------------------
    # Phase execution
    # ------------------------------------------------------------------

    def _resolve_input(self, phase: Phase) -> str:
        if phase.input is None:
            return json.dumps(self.state.context)
        try:
            return self.state.context[phase.input]
        except KeyError:
            raise MissingInputError(phase.input) from None

    async def _execute_phase(self, phase: Phase) -> str:
        model = self.model_for(phase)
        self._log(f"Sending to {model} [{phase.name}]")

        user_input = self._resolve_input(phase)
        system_prompt = build_system_prompt(phase, self._now())
        request = ConversationRequest.simple(model, system_prompt, user_input)

        self._log(
            f"Request: {len(system_prompt)} chars prompt, {len(user_input)} chars input"
        )
        self._notify(
            "on_phase_output",
            phase.id,
            phase.name,
            "running",
            system_prompt=system_prompt,
            user_input=user_input,
        )

        started = time.monotonic()
        if self.stream:
            try:
                stream = await self.client.generate_stream(request)
            except LLMError as e:
                self._log(f"Streaming unavailable ({e}), using standard request...")
            else:
                return await self._consume_stream(phase, stream, started)

        return await self._generate(request, started)

    async def _consume_stream(self, phase: Phase, stream: TokenStream, started: float) -> str:
        self._log("Connected, streaming response...")
        parts: list[str] = []
        count = 0

        async with stream:
            async for token in stream:
                parts.append(token)
                count += 1
                self._notify("on_stream_token", token, phase.id)
                if count % PROGRESS_LOG_INTERVAL == 0:
                    self._log(f"...{count} tokens received...")

        if stream.error is not None:
            self._log(f"Stream error: {stream.error}")

        output = "".join(parts)
        self._log(
            f"Complete: {count} tokens, {len(output)} chars in "
            f"{time.monotonic() - started:.1f}s"
        )
        return output

    async def _generate(self, request: ConversationRequest, started: float) -> str:
        self._log("Waiting for response...")
        try:
            output = await self.client.generate(request)
        except LLMError as e:
            self._log(f"Error after {time.monotonic() - started:.1f}s: {e}")
            raise
        self._log(f"Received: {len(output)} chars in {time.monotonic() - started:.1f}s")
        return output

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _log(self, message: str) -> None:
        self.state.add_log(message)
        logger.info(message)
        self._notify("on_log", message)

    def _set_status(self, phase_id: str, status: PhaseStatus) -> None:
        self.state.set_status(phase_id, status)
        self._notify("on_phase_status", phase_id, status)

    def _notify(self, hook: str, *args, **kwargs) -> None:
        try:
            getattr(self.observer, hook)(*args, **kwargs)
        except Exception:
            logger.exception(f"Observer {hook} notification failed")
