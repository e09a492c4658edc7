"""Project ID and manifest helpers.

Project IDs are a base-36 millisecond timestamp, a dash and seven random
base-36 characters (e.g. "m1abcd2e-k3j9x0q"), generated once per project.
"""

import json
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError

from proof_of_build.exceptions import ManifestValidationError
from proof_of_build.schemas import ArtifactCollection, Manifest, ManifestMetadata
from proof_of_build.schemas.base import ProjectId

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_RANDOM_SUFFIX_LENGTH = 7

_project_id_adapter: TypeAdapter[str] = TypeAdapter(ProjectId)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_project_id() -> str:
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(_RANDOM_SUFFIX_LENGTH))
    return f"{timestamp}-{suffix}"


def validate_project_id(project_id: Any) -> str:
    """Return ``project_id`` if it is a 1-255 character string.

    Raises:
        pydantic.ValidationError: If the ID is invalid
    """
    return _project_id_adapter.validate_python(project_id)


def is_valid_project_id(project_id: Any) -> bool:
    try:
        validate_project_id(project_id)
    except ValidationError:
        return False
    return True


def create_manifest(project_id: str, artifacts: ArtifactCollection) -> Manifest:
    """Build a validated manifest with derived file count and total size.

    totalSize is omitted when no artifact reports a size.
    """
    total_size = artifacts.total_size
    return Manifest.model_validate(
        {
            "projectId": project_id,
            "version": "1.0",
            "createdAt": datetime.now(timezone.utc),
            "artifacts": artifacts,
            "metadata": ManifestMetadata(
                total_files=artifacts.total_files,
                total_size=total_size if total_size > 0 else None,
            ),
        }
    )


def validate_manifest(data: Any) -> Manifest:
    """Validate already-decoded manifest data.

    Raises:
        ManifestValidationError: If the data is not a valid manifest
    """
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestValidationError(
            f"Manifest failed validation: {e.error_count()} error(s)",
            details={"validation_errors": [error["msg"] for error in e.errors()]},
        ) from e


def is_valid_manifest(data: Any) -> bool:
    try:
        validate_manifest(data)
    except ManifestValidationError:
        return False
    return True


def parse_manifest(body: bytes | str) -> Manifest:
    """Decode and validate a manifest object body.

    Raises:
        ManifestValidationError: If the body is not JSON or not a valid manifest
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestValidationError(f"Manifest is not valid JSON: {e}") from e
    return validate_manifest(data)
