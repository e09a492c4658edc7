"""Orchestration state record access.

State records live at ``state/<projectId>.json``. Every write is a full
snapshot of an immutable State value; transitions build a new State from the
previous one plus a delta and never mutate in place.

Pure helpers (no I/O):
    create_initial_state, transition_state, create_error_state,
    is_ready, has_error, is_processing

StateStore (object-store I/O):
    get_or_create, load, save, is_already_processed
"""

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from proof_of_build.clients.object_store import ObjectStore
from proof_of_build.constants import JSON_CONTENT_TYPE
from proof_of_build.exceptions import InvalidStageError, StateValidationError
from proof_of_build.schemas import ErrorState, PipelineStage, State, StateMetadata
from proof_of_build.services.stage_table import StageTable
from proof_of_build.utils.keys import build_state_key
from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_initial_state(project_id: str, now: datetime | None = None) -> State:
    """Build a fresh ``ingest`` state with zeroed progress metadata."""
    now = now or _utcnow()
    return State(
        project_id=project_id,
        stage=PipelineStage.INGEST,
        created_at=now,
        updated_at=now,
        metadata=StateMetadata(),
    )


def transition_state(state: State, next_stage: PipelineStage, **metadata_updates: Any) -> State:
    """Return a new State at ``next_stage`` with a refreshed updatedAt.

    Keyword arguments update progress metadata, e.g.
    ``transition_state(state, state.stage, script_generated=True)``.
    """
    update: dict[str, Any] = {"stage": next_stage, "updated_at": _utcnow()}
    if metadata_updates:
        metadata = state.metadata or StateMetadata()
        update["metadata"] = metadata.model_copy(update=metadata_updates)
    return state.model_copy(update=update)


def create_error_state(
    state: State,
    failed_stage: PipelineStage,
    message: str,
    code: str | None = None,
    details: dict[str, Any] | None = None,
) -> State:
    """Return a new State in ``error`` carrying an ErrorState (latest failure wins)."""
    now = _utcnow()
    error = ErrorState(
        stage=failed_stage,
        message=message,
        code=code,
        timestamp=now,
        details=details,
    )
    return state.model_copy(update={"stage": PipelineStage.ERROR, "error": error, "updated_at": now})


def is_ready(state: State) -> bool:
    return state.stage == PipelineStage.READY


def has_error(state: State) -> bool:
    return state.stage == PipelineStage.ERROR


def is_processing(state: State) -> bool:
    return not is_ready(state) and not has_error(state)


def parse_state(body: bytes | str) -> State:
    """Parse and validate a persisted state record.

    Raises:
        StateValidationError: If the body is not JSON or not a valid State
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StateValidationError(f"State record is not valid JSON: {e}") from e
    try:
        return State.model_validate(data)
    except ValidationError as e:
        raise StateValidationError(
            f"State record failed validation: {e.error_count()} error(s)",
            details={"validation_errors": [error["msg"] for error in e.errors()]},
        ) from e


class StateStore:
    """Read/write accessor for per-project state records.

    Attributes:
        store: Object store holding the state namespace
        stage_table: Stage table every persisted stage is validated against
    """

    def __init__(self, store: ObjectStore, stage_table: StageTable):
        self.store = store
        self.stage_table = stage_table

    async def load(self, project_id: str) -> State | None:
        """Return the persisted State, or None if no record exists.

        Raises:
            StateValidationError: If a record exists but cannot be parsed
        """
        obj = await self.store.get(build_state_key(project_id))
        if obj is None:
            return None
        state = parse_state(obj.body)
        if not self.stage_table.is_valid_stage(state.stage):
            raise StateValidationError(
                f"State record has stage outside the stage table: {state.stage.value}",
                details={"stage": state.stage.value},
            )
        return state

    async def save(self, state: State) -> None:
        """Overwrite the project's state record with the full snapshot."""
        if not self.stage_table.is_valid_stage(state.stage):
            raise InvalidStageError(str(state.stage))
        await self.store.put(
            build_state_key(state.project_id),
            state.to_json_bytes(indent=2),
            content_type=JSON_CONTENT_TYPE,
        )
        log.info(
            "state_saved",
            project_id=state.project_id,
            stage=state.stage.value,
        )

    async def get_or_create(self, project_id: str) -> State:
        """Return the persisted State, creating and persisting an ``ingest`` one if absent.

        Idempotent: when a record already exists this is a pure read.
        """
        existing = await self.load(project_id)
        if existing is not None:
            return existing

        state = create_initial_state(project_id)
        await self.save(state)
        log.info("state_created", project_id=project_id, stage=state.stage.value)
        return state

    async def is_already_processed(self, project_id: str) -> bool:
        """True iff a valid persisted State exists and its stage is not ``ingest``.

        An unreadable or invalid record counts as not processed.
        """
        try:
            state = await self.load(project_id)
        except StateValidationError as e:
            log.warning("invalid_state_record", project_id=project_id, error=str(e))
            return False
        return state is not None and state.stage != self.stage_table.initial_stage
