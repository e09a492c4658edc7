"""Pydantic schema for manifest.json, the completion signal.

The manifest is written once by the upload tool at
``uploads/<projectId>/manifest.json``; the orchestrator only reads it.
Its existence is the sole trigger for processing a project.
"""

from datetime import datetime
from typing import Literal

from pydantic import Field

from proof_of_build.schemas.artifacts import ArtifactCollection
from proof_of_build.schemas.base import CamelModel, ProjectId


class ManifestMetadata(CamelModel):
    total_files: int = Field(ge=0)
    total_size: int | None = Field(default=None, ge=0)


class Manifest(CamelModel):
    project_id: ProjectId
    version: Literal["1.0"] = "1.0"
    created_at: datetime
    artifacts: ArtifactCollection
    metadata: ManifestMetadata | None = None
