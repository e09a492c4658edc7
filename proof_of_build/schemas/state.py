"""Pydantic schemas for the per-project orchestration state record.

The state record at ``state/<projectId>.json`` is the single source of truth
for where a project sits in the pipeline. It is written exclusively by the
stage executor (every write is a full snapshot) and read by the playback UI
and by the poller's claim check.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from proof_of_build.schemas.base import CamelModel, ProjectId


class PipelineStage(str, Enum):
    """Pipeline stage identifiers as persisted in state records."""

    INGEST = "ingest"
    CLASSIFY = "classify"
    GENERATE_SCRIPT = "generate-script"
    GENERATE_AUDIO = "generate-audio"
    ASSEMBLE = "assemble"
    READY = "ready"
    ERROR = "error"


class ErrorState(CamelModel):
    """Failure details attached to a state whose stage is ``error``.

    Attributes:
        stage: Last successfully persisted stage before the failure.
        message: Human-readable error message.
        code: Optional machine code (e.g. "EMPTY_NARRATION").
        timestamp: When the failure was recorded.
        details: Optional structured context (HTTP status, error type).
    """

    stage: PipelineStage
    message: str
    code: str | None = None
    timestamp: datetime
    details: dict[str, Any] | None = None


class StateMetadata(CamelModel):
    script_generated: bool = False
    audio_generated: bool = False
    artifacts_processed: int = Field(default=0, ge=0)


class State(CamelModel):
    project_id: ProjectId
    stage: PipelineStage
    created_at: datetime
    updated_at: datetime
    error: ErrorState | None = None
    metadata: StateMetadata | None = None
