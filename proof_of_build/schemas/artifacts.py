"""Pydantic schemas for uploaded build artifacts.

An ArtifactCollection groups artifacts into three sequences. Screenshots and
terminal captures are ordered (narration follows that order); logs are not.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from proof_of_build.schemas.base import CamelModel


class ArtifactType(str, Enum):
    SCREENSHOT = "screenshot"
    TERMINAL = "terminal"
    LOG = "log"


class Artifact(CamelModel):
    """A single uploaded file.

    Attributes:
        type: Artifact kind (screenshot, terminal, log).
        path: Path relative to the project upload directory.
        filename: Bare filename.
        size: Size in bytes, if known.
        uploaded_at: Upload timestamp, if recorded.
        order: Explicit narration order, if the uploader assigned one.
    """

    type: ArtifactType
    path: str
    filename: str
    size: int | None = Field(default=None, ge=0)
    uploaded_at: datetime | None = None
    order: int | None = Field(default=None, ge=0)


# Collection field -> implied artifact type
_COLLECTION_TYPES = {
    "screenshots": ArtifactType.SCREENSHOT,
    "terminal": ArtifactType.TERMINAL,
    "logs": ArtifactType.LOG,
}


class ArtifactCollection(CamelModel):
    screenshots: tuple[Artifact, ...] = ()
    terminal: tuple[Artifact, ...] = ()
    logs: tuple[Artifact, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def fill_implied_fields(cls, data: Any) -> Any:
        """Default each artifact's type from its collection and path from its filename."""
        if not isinstance(data, dict):
            return data
        filled = dict(data)
        for field_name, artifact_type in _COLLECTION_TYPES.items():
            items = filled.get(field_name)
            if not isinstance(items, list | tuple):
                continue
            normalized = []
            for item in items:
                if isinstance(item, dict):
                    item = dict(item)
                    item.setdefault("type", artifact_type.value)
                    if "path" not in item and "filename" in item:
                        item["path"] = item["filename"]
                normalized.append(item)
            filled[field_name] = normalized
        return filled

    def all_artifacts(self) -> list[Artifact]:
        return [*self.screenshots, *self.terminal, *self.logs]

    @property
    def total_files(self) -> int:
        return len(self.screenshots) + len(self.terminal) + len(self.logs)

    @property
    def total_size(self) -> int:
        return sum(artifact.size or 0 for artifact in self.all_artifacts())
