"""Interfaces for the external generation capabilities.

The stage executor depends only on these protocols, so any provider that
satisfies them can be swapped in (tests use AsyncMock instances).
"""

from dataclasses import dataclass
from typing import Protocol

from proof_of_build.schemas import ArtifactCollection, Script


@dataclass(frozen=True)
class AudioResult:
    """Synthesized audio bytes plus the provider-declared content type."""

    audio: bytes
    content_type: str


class ScriptGenerator(Protocol):
    async def generate(
        self,
        project_id: str,
        artifacts: ArtifactCollection,
        *,
        tone: str | None = None,
        language: str | None = None,
    ) -> Script:
        """Return a structurally valid Script or raise; never partial output."""
        ...


class AudioGenerator(Protocol):
    async def synthesize(
        self,
        text: str,
        *,
        voice: str | None = None,
        model: str | None = None,
        output_format: str | None = None,
    ) -> AudioResult:
        """Return audio for ``text``; fails fast on empty input."""
        ...
