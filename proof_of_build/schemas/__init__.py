"""Pydantic v2 schemas for the persisted JSON entities.

Schema Overview:
    - Manifest: completion signal written by the upload tool
    - ArtifactCollection / Artifact: screenshots, terminal captures, logs
    - Script / ScriptSegment: generated narration script
    - State / ErrorState / StateMetadata: orchestration record
"""

from proof_of_build.schemas.artifacts import Artifact, ArtifactCollection, ArtifactType
from proof_of_build.schemas.manifest import Manifest, ManifestMetadata
from proof_of_build.schemas.script import Script, ScriptMetadata, ScriptSegment
from proof_of_build.schemas.state import ErrorState, PipelineStage, State, StateMetadata

__all__ = [
    "Artifact",
    "ArtifactCollection",
    "ArtifactType",
    "ErrorState",
    "Manifest",
    "ManifestMetadata",
    "PipelineStage",
    "Script",
    "ScriptMetadata",
    "ScriptSegment",
    "State",
    "StateMetadata",
]
