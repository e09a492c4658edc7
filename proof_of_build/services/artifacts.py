"""Artifact classification and ordering helpers."""

import re
from collections.abc import Iterable
from datetime import datetime, timezone

from proof_of_build.constants import LOG_EXTENSIONS, SCREENSHOT_EXTENSIONS, TERMINAL_EXTENSIONS
from proof_of_build.schemas import Artifact, ArtifactType

# A run of 3+ digits at the start or after a non-digit, ending at "." or end of name
_ORDER_PATTERN = re.compile(r"(?:^|\D)(\d{3,})(?:\.|$)")

_DIRECTORY_TYPES = (
    ("frames", ArtifactType.SCREENSHOT),
    ("terminal", ArtifactType.TERMINAL),
    ("logs", ArtifactType.LOG),
)


def classify_artifact(path: str, filename: str) -> ArtifactType | None:
    """Classify a file by its directory, then by its extension.

    Example:
        >>> classify_artifact("uploads/p1/frames/a.bin", "a.bin")
        <ArtifactType.SCREENSHOT: 'screenshot'>
        >>> classify_artifact("notes/build.err", "build.err")
        <ArtifactType.LOG: 'log'>
        >>> classify_artifact("misc/readme.md", "readme.md") is None
        True
    """
    lower_path = path.lower()
    for directory, artifact_type in _DIRECTORY_TYPES:
        if f"/{directory}/" in lower_path or f"\\{directory}\\" in lower_path:
            return artifact_type

    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension in SCREENSHOT_EXTENSIONS:
        return ArtifactType.SCREENSHOT
    if extension in TERMINAL_EXTENSIONS:
        return ArtifactType.TERMINAL
    if extension in LOG_EXTENSIONS:
        return ArtifactType.LOG
    return None


def create_artifact(
    path: str,
    filename: str,
    size: int | None = None,
    order: int | None = None,
) -> Artifact | None:
    """Build an Artifact stamped with the current time, or None if unclassifiable."""
    artifact_type = classify_artifact(path, filename)
    if artifact_type is None:
        return None
    return Artifact(
        type=artifact_type,
        path=path,
        filename=filename,
        size=size,
        order=order,
        uploaded_at=datetime.now(timezone.utc),
    )


def extract_order_from_filename(filename: str) -> int | None:
    """Extract a narration order number such as 1 from "frame-001.png"."""
    match = _ORDER_PATTERN.search(filename)
    return int(match.group(1)) if match else None


def sort_artifacts(artifacts: Iterable[Artifact]) -> list[Artifact]:
    """Sort by explicit order first, then artifacts without order by filename."""
    return sorted(
        artifacts,
        key=lambda a: (a.order is None, a.order if a.order is not None else 0, a.filename),
    )
