"""In-memory object store that records every write, for asserting write sequences."""

import json
from typing import Any

from proof_of_build.clients.object_store import InMemoryObjectStore


class RecordingObjectStore(InMemoryObjectStore):
    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[str, bytes]] = []

    async def put(self, key: str, body: bytes | str, content_type: str | None = None) -> None:
        await super().put(key, body, content_type=content_type)
        stored = await self.get(key)
        self.history.append((key, stored.body))

    @property
    def put_keys(self) -> list[str]:
        return [key for key, _ in self.history]

    def writes_to(self, key: str) -> int:
        return self.put_keys.count(key)

    def snapshots(self, key: str) -> list[dict[str, Any]]:
        """Every JSON body written to ``key``, oldest first."""
        return [json.loads(body) for written_key, body in self.history if written_key == key]

    def stages_written(self, project_id: str) -> list[str]:
        return [snapshot["stage"] for snapshot in self.snapshots(f"state/{project_id}.json")]
