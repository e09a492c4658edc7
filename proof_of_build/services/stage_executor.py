"""Stage executor: the pipeline state machine.

Given a validated manifest and the project's current state, the executor
walks the project forward through the stage table, persisting a complete
state snapshot after every sub-step so a crash always leaves the record at
the last completed boundary.

Walk:
    ingest -> classify                  persist
    classify -> generate-script         persist, call Script Generator,
                                        persist script, persist marker
    generate-script -> generate-audio   persist, build narration,
                                        call Audio Generator (with retry),
                                        persist audio, persist marker
    -> final stage (ready)              persist (commit point)

Resumption:
    Entry at any non-terminal stage continues from that boundary. When the
    state already records scriptGenerated and the script object exists, the
    stored script is reused instead of calling the Script Generator again;
    audio generation is likewise skipped when audioGenerated is set.

Failure:
    Any exception aborts the walk. The executor records an ErrorState whose
    stage is the last successfully persisted stage, persists the ``error``
    state, then re-raises to the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from proof_of_build.clients.base import AudioGenerator, ScriptGenerator
from proof_of_build.clients.object_store import ObjectStore
from proof_of_build.config import get_script_language, get_script_tone
from proof_of_build.constants import DEFAULT_AUDIO_EXTENSION, DEFAULT_ERROR_CODE, JSON_CONTENT_TYPE
from proof_of_build.exceptions import (
    EmptyNarrationError,
    InvalidStageError,
    PipelineError,
    ScriptGenerationError,
)
from proof_of_build.schemas import Manifest, PipelineStage, Script, State
from proof_of_build.services.stage_table import StageTable
from proof_of_build.services.state_store import (
    StateStore,
    create_error_state,
    transition_state,
)
from proof_of_build.utils.keys import build_audio_key, build_script_key
from proof_of_build.utils.logging import get_logger
from proof_of_build.utils.retry import RetryPolicy, retry_with_backoff

log = get_logger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """Options forwarded to the generation capabilities.

    Attributes:
        tone: Script tone (professional, casual, technical, friendly)
        language: Script language code
        voice: Audio voice ID (None -> provider default)
        model: Audio model ID (None -> provider default)
        output_format: Audio output format (None -> provider default)
    """

    tone: str | None = None
    language: str | None = None
    voice: str | None = None
    model: str | None = None
    output_format: str | None = None

    @classmethod
    def from_config(cls) -> "GenerationOptions":
        return cls(tone=get_script_tone(), language=get_script_language())


def _error_details(exc: BaseException, failed_stage: PipelineStage) -> dict[str, Any]:
    details: dict[str, Any] = {
        "error_type": type(exc).__name__,
        "stage": failed_stage.value,
    }
    if isinstance(exc, PipelineError):
        details.update(exc.details)
    elif isinstance(exc, httpx.HTTPStatusError):
        details["status_code"] = exc.response.status_code
    return details


class StageExecutor:
    """Advance one project through the pipeline stages.

    Attributes:
        store: Object store for the script and audio namespaces
        state_store: Accessor for the project's state record
        stage_table: Injected stage ordering
        script_generator: Script Generator capability
        audio_generator: Audio Generator capability
        retry_policy: Bounds for the retry wrapper around audio synthesis
        options: Generation options forwarded to both capabilities
    """

    def __init__(
        self,
        store: ObjectStore,
        state_store: StateStore,
        stage_table: StageTable,
        script_generator: ScriptGenerator,
        audio_generator: AudioGenerator,
        *,
        retry_policy: RetryPolicy | None = None,
        options: GenerationOptions | None = None,
        audio_extension: str = DEFAULT_AUDIO_EXTENSION,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.state_store = state_store
        self.stage_table = stage_table
        self.script_generator = script_generator
        self.audio_generator = audio_generator
        self.retry_policy = retry_policy or RetryPolicy()
        self.options = options or GenerationOptions()
        self.audio_extension = audio_extension
        self._sleep = sleep

    async def _persist(self, state: State) -> State:
        await self.state_store.save(state)
        return state

    async def _advance(self, state: State, **metadata_updates: Any) -> State:
        """Persist the transition to the stage after ``state.stage``."""
        next_stage = self.stage_table.next_stage(state.stage)
        if next_stage is None:
            raise InvalidStageError(state.stage.value)
        log.info(
            "stage_transition",
            project_id=state.project_id,
            from_stage=state.stage.value,
            to_stage=next_stage.value,
        )
        return await self._persist(transition_state(state, next_stage, **metadata_updates))

    async def _load_script(self, project_id: str) -> Script | None:
        obj = await self.store.get(build_script_key(project_id))
        if obj is None:
            return None
        try:
            return Script.model_validate_json(obj.body)
        except ValidationError as e:
            raise ScriptGenerationError(
                f"Persisted script for {project_id} is invalid: {e.error_count()} error(s)"
            ) from e

    async def _obtain_script(self, manifest: Manifest, state: State) -> tuple[Script, State]:
        """Return the project's script, generating and persisting it only when needed."""
        project_id = manifest.project_id
        if state.metadata and state.metadata.script_generated:
            existing = await self._load_script(project_id)
            if existing is not None:
                log.info("script_reused", project_id=project_id)
                return existing, state
            log.warning("script_marker_without_object", project_id=project_id)

        log.info("script_generation_requested", project_id=project_id)
        script = await self.script_generator.generate(
            project_id,
            manifest.artifacts,
            tone=self.options.tone,
            language=self.options.language,
        )
        await self.store.put(
            build_script_key(project_id),
            script.to_json_bytes(indent=2),
            content_type=JSON_CONTENT_TYPE,
        )
        log.info("script_persisted", project_id=project_id, segments=len(script.segments))

        state = await self._persist(
            transition_state(state, state.stage, script_generated=True)
        )
        return script, state

    async def _generate_audio(self, script: Script, state: State) -> State:
        narration = script.narration_text()
        if not narration.strip():
            raise EmptyNarrationError("Script text is empty, cannot generate audio")

        result = await retry_with_backoff(
            lambda: self.audio_generator.synthesize(
                narration,
                voice=self.options.voice,
                model=self.options.model,
                output_format=self.options.output_format,
            ),
            self.retry_policy,
            operation_name="audio_generation",
            sleep=self._sleep,
        )

        audio_key = build_audio_key(state.project_id, self.audio_extension)
        await self.store.put(audio_key, result.audio, content_type=result.content_type)
        log.info(
            "audio_persisted",
            project_id=state.project_id,
            key=audio_key,
            size_bytes=len(result.audio),
            content_type=result.content_type,
        )
        return await self._persist(transition_state(state, state.stage, audio_generated=True))

    async def execute(self, manifest: Manifest, state: State) -> State:
        """Advance the project from its current stage to ready.

        Args:
            manifest: Validated manifest for the project
            state: The project's current persisted state

        Returns:
            The final persisted State (ready), or ``state`` unchanged when it
            is already terminal

        Raises:
            Exception: Whatever aborted the walk, after the ``error`` state
                has been persisted
        """
        if self.stage_table.is_terminal(state.stage):
            log.info(
                "project_already_terminal",
                project_id=state.project_id,
                stage=state.stage.value,
            )
            return state

        log.info("pipeline_started", project_id=state.project_id, stage=state.stage.value)

        # current is reassigned only after a successful persist
        current = state
        script: Script | None = None
        try:
            if current.stage == PipelineStage.INGEST:
                current = await self._advance(
                    current, artifacts_processed=manifest.artifacts.total_files
                )

            if current.stage == PipelineStage.CLASSIFY:
                current = await self._advance(current)

            if current.stage == PipelineStage.GENERATE_SCRIPT:
                script, current = await self._obtain_script(manifest, current)
                current = await self._advance(current)

            if current.stage == PipelineStage.GENERATE_AUDIO:
                if current.metadata and current.metadata.audio_generated:
                    log.info("audio_reused", project_id=current.project_id)
                else:
                    if script is None:
                        script, current = await self._obtain_script(manifest, current)
                    current = await self._generate_audio(script, current)

            final_stage = self.stage_table.final_stage
            log.info(
                "stage_transition",
                project_id=current.project_id,
                from_stage=current.stage.value,
                to_stage=final_stage.value,
            )
            current = await self._persist(transition_state(current, final_stage))
        except Exception as exc:
            await self._record_failure(current, exc)
            raise

        log.info("pipeline_completed", project_id=current.project_id, stage=current.stage.value)
        return current

    async def _record_failure(self, state: State, exc: Exception) -> None:
        failed_stage = state.stage
        message = str(exc) or type(exc).__name__
        code = exc.code if isinstance(exc, PipelineError) else DEFAULT_ERROR_CODE
        error_state = create_error_state(
            state,
            failed_stage,
            message,
            code=code,
            details=_error_details(exc, failed_stage),
        )
        log.error(
            "pipeline_stage_failed",
            project_id=state.project_id,
            stage=failed_stage.value,
            error=message,
            error_code=code,
            error_type=type(exc).__name__,
        )
        try:
            await self.state_store.save(error_state)
        except Exception as save_error:
            log.error(
                "error_state_persist_failed",
                project_id=state.project_id,
                error=str(save_error),
                exc_info=True,
            )
