"""Object-store key helpers for the project namespaces.

This module provides the only place where object keys are constructed or
parsed. The layout is shared with the upload tool and the playback UI:

    uploads/<projectId>/manifest.json
    uploads/<projectId>/frames/<filename>
    uploads/<projectId>/terminal/<filename>
    uploads/<projectId>/logs/<filename>
    state/<projectId>.json
    scripts/<projectId>.json
    audio/<projectId>.m4a

Security:
    Project IDs and filenames are validated so that a key can never escape
    its namespace (no "/" in IDs, no ".." segments).
"""

from proof_of_build.constants import (
    AUDIO_PREFIX,
    DEFAULT_AUDIO_EXTENSION,
    MANIFEST_FILENAME,
    MANIFEST_KEY_PATTERN,
    SCRIPTS_PREFIX,
    STATE_PREFIX,
    UPLOAD_SUBDIRS,
    UPLOADS_PREFIX,
)

__all__ = [
    "build_audio_key",
    "build_manifest_key",
    "build_script_key",
    "build_state_key",
    "build_upload_key",
    "extract_project_id_from_key",
]


def _validate_segment(value: str, name: str) -> None:
    """Validate a single key segment (project ID or filename).

    Raises:
        ValueError: If segment is empty, too long, or could alter the key path
    """
    if len(value) == 0 or len(value) > 255:
        raise ValueError(f"{name} length must be 1-255 characters")
    if "/" in value or "\\" in value or value in {".", ".."}:
        raise ValueError(f"{name} contains invalid characters: {value}")


def build_manifest_key(project_id: str) -> str:
    _validate_segment(project_id, "project_id")
    return f"{UPLOADS_PREFIX}{project_id}/{MANIFEST_FILENAME}"


def build_state_key(project_id: str) -> str:
    _validate_segment(project_id, "project_id")
    return f"{STATE_PREFIX}{project_id}.json"


def build_script_key(project_id: str) -> str:
    _validate_segment(project_id, "project_id")
    return f"{SCRIPTS_PREFIX}{project_id}.json"


def build_audio_key(project_id: str, extension: str = DEFAULT_AUDIO_EXTENSION) -> str:
    _validate_segment(project_id, "project_id")
    return f"{AUDIO_PREFIX}{project_id}.{extension.lstrip('.')}"


def build_upload_key(project_id: str, artifact_type: str, filename: str) -> str:
    """Build the upload key for an artifact file.

    Args:
        project_id: Project identifier
        artifact_type: "screenshot", "terminal", or "log"
        filename: Bare filename

    Returns:
        Key such as "uploads/p1/frames/001.png"

    Raises:
        ValueError: If artifact_type is unknown or a segment is invalid
    """
    _validate_segment(project_id, "project_id")
    _validate_segment(filename, "filename")
    subdir = UPLOAD_SUBDIRS.get(artifact_type)
    if subdir is None:
        raise ValueError(f"Unknown artifact type: {artifact_type}")
    return f"{UPLOADS_PREFIX}{project_id}/{subdir}/{filename}"


def extract_project_id_from_key(key: str) -> str | None:
    """Extract project ID from a manifest key.

    Example:
        >>> extract_project_id_from_key("uploads/project-123/manifest.json")
        'project-123'
        >>> extract_project_id_from_key("uploads/project-123/frames/1.png") is None
        True
    """
    match = MANIFEST_KEY_PATTERN.match(key)
    return match.group(1) if match else None
