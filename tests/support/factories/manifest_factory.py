"""Manifest data factories for test data generation.

Builds Manifest models and their camelCase wire payloads with deterministic
defaults, and writes them to an object store at the canonical manifest key.
"""

from datetime import datetime, timezone
from typing import Any

from proof_of_build.clients.object_store import ObjectStore
from proof_of_build.constants import JSON_CONTENT_TYPE
from proof_of_build.schemas import Artifact, ArtifactCollection, ArtifactType, Manifest
from proof_of_build.utils.keys import build_manifest_key

FIXED_CREATED_AT = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def create_screenshot(filename: str = "001.png", order: int | None = 1, size: int | None = None) -> Artifact:
    return Artifact(
        type=ArtifactType.SCREENSHOT,
        path=f"frames/{filename}",
        filename=filename,
        order=order,
        size=size,
    )


def create_artifact_collection(
    screenshots: int = 1,
    terminal: int = 0,
    logs: int = 0,
) -> ArtifactCollection:
    """Create an ArtifactCollection with the given number of each kind."""
    return ArtifactCollection(
        screenshots=tuple(
            create_screenshot(f"{index:03d}.png", order=index, size=1024)
            for index in range(1, screenshots + 1)
        ),
        terminal=tuple(
            Artifact(
                type=ArtifactType.TERMINAL,
                path=f"terminal/{index:03d}.txt",
                filename=f"{index:03d}.txt",
                order=index,
                size=256,
            )
            for index in range(1, terminal + 1)
        ),
        logs=tuple(
            Artifact(
                type=ArtifactType.LOG,
                path=f"logs/build-{index}.log",
                filename=f"build-{index}.log",
                size=512,
            )
            for index in range(1, logs + 1)
        ),
    )


def create_manifest(
    project_id: str = "p1",
    artifacts: ArtifactCollection | None = None,
    **kwargs: Any,
) -> Manifest:
    """Create a Manifest with one ordered screenshot by default.

    Example:
        >>> manifest = create_manifest("p1")
        >>> manifest.artifacts.screenshots[0].filename
        '1.png'
    """
    if artifacts is None:
        artifacts = ArtifactCollection(screenshots=(create_screenshot("1.png", order=1),))
    return Manifest(
        project_id=project_id,
        created_at=kwargs.pop("created_at", FIXED_CREATED_AT),
        artifacts=artifacts,
        **kwargs,
    )


def manifest_payload(project_id: str = "p1", **overrides: Any) -> dict[str, Any]:
    """Minimal manifest wire payload as the upload tool writes it."""
    payload: dict[str, Any] = {
        "projectId": project_id,
        "version": "1.0",
        "createdAt": FIXED_CREATED_AT.isoformat(),
        "artifacts": {
            "screenshots": [{"filename": "1.png", "order": 1}],
            "terminal": [],
            "logs": [],
        },
    }
    payload.update(overrides)
    return payload


async def put_manifest(store: ObjectStore, manifest: Manifest) -> str:
    """Write ``manifest`` at its canonical key and return the key."""
    key = build_manifest_key(manifest.project_id)
    await store.put(key, manifest.to_json_bytes(), content_type=JSON_CONTENT_TYPE)
    return key
