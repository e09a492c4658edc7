"""Wiring of the object store, stage table, generators, executor and poller.

Both entry points (the FastAPI app and the standalone worker) build their
collaborators here so the stage table is constructed exactly once per
process and injected everywhere.
"""

from dataclasses import dataclass, field

from proof_of_build.clients.base import AudioGenerator, ScriptGenerator
from proof_of_build.clients.elevenlabs import ElevenLabsClient
from proof_of_build.clients.object_store import LocalObjectStore, ObjectStore
from proof_of_build.clients.workers_ai import WorkersAIScriptGenerator
from proof_of_build.config import get_storage_root
from proof_of_build.services.manifest_poller import ManifestPoller
from proof_of_build.services.stage_executor import GenerationOptions, StageExecutor
from proof_of_build.services.stage_table import StageTable, build_default_stage_table
from proof_of_build.services.state_store import StateStore
from proof_of_build.utils.logging import get_logger
from proof_of_build.utils.retry import RetryPolicy

log = get_logger(__name__)


@dataclass
class Pipeline:
    store: ObjectStore
    stage_table: StageTable
    state_store: StateStore
    executor: StageExecutor
    poller: ManifestPoller
    script_generator: ScriptGenerator
    audio_generator: AudioGenerator
    _closeables: list[object] = field(default_factory=list)

    async def close(self) -> None:
        """Close HTTP clients created by build_pipeline()."""
        for client in self._closeables:
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        self._closeables.clear()


def build_pipeline(
    store: ObjectStore | None = None,
    *,
    script_generator: ScriptGenerator | None = None,
    audio_generator: AudioGenerator | None = None,
    stage_table: StageTable | None = None,
    retry_policy: RetryPolicy | None = None,
    options: GenerationOptions | None = None,
) -> Pipeline:
    """Build a Pipeline, defaulting every collaborator from configuration.

    Provider clients are only created (and later closed) when not supplied.
    """
    store = store or LocalObjectStore(get_storage_root())
    stage_table = stage_table or build_default_stage_table()
    closeables: list[object] = []

    if script_generator is None:
        script_generator = WorkersAIScriptGenerator()
        closeables.append(script_generator)
    if audio_generator is None:
        audio_generator = ElevenLabsClient()
        closeables.append(audio_generator)

    state_store = StateStore(store, stage_table)
    executor = StageExecutor(
        store,
        state_store,
        stage_table,
        script_generator,
        audio_generator,
        retry_policy=retry_policy or RetryPolicy.from_config(),
        options=options or GenerationOptions.from_config(),
    )
    poller = ManifestPoller(store, state_store, executor)
    log.info(
        "pipeline_built",
        store=type(store).__name__,
        script_generator=type(script_generator).__name__,
        audio_generator=type(audio_generator).__name__,
    )
    return Pipeline(
        store=store,
        stage_table=stage_table,
        state_store=state_store,
        executor=executor,
        poller=poller,
        script_generator=script_generator,
        audio_generator=audio_generator,
        _closeables=closeables,
    )
