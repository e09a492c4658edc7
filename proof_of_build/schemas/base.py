"""Shared pydantic configuration for the persisted JSON entities.

Every entity in the object store is serialized with camelCase keys and
ISO-8601 timestamps, matching the upload tool and the playback UI.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# 1-255 character opaque identifier
ProjectId = Annotated[str, Field(min_length=1, max_length=255)]


class CamelModel(BaseModel):
    """Immutable base model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Return the wire representation (camelCase keys, None fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json_bytes(self, indent: int | None = None) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent).encode()
