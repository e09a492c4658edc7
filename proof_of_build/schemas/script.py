"""Pydantic schema for generated narration scripts.

Written to ``scripts/<projectId>.json`` once per project and never modified.
"""

from datetime import datetime
from typing import Literal

from pydantic import Field

from proof_of_build.schemas.base import CamelModel


class ScriptSegment(CamelModel):
    """One narration segment with timing (seconds from video start)."""

    text: str = Field(min_length=1)
    start_time: float = Field(ge=0)
    duration: float = Field(ge=0)
    frame_index: int | None = Field(default=None, ge=0)


class ScriptMetadata(CamelModel):
    tone: str | None = None
    language: str = "en"


class Script(CamelModel):
    project_id: str
    version: Literal["1.0"] = "1.0"
    created_at: datetime
    segments: tuple[ScriptSegment, ...] = Field(min_length=1)
    total_duration: float = Field(ge=0)
    metadata: ScriptMetadata | None = None

    def narration_text(self) -> str:
        """Concatenate all segment texts with a single separating space."""
        return " ".join(segment.text for segment in self.segments)
