"""Key-addressed object store clients.

The orchestrator needs three primitives from its blob store: get, put and
list-by-prefix. Transport is assumed reliable; these clients do no retrying.

Implementations:
    - InMemoryObjectStore: process-local dict, used by tests and dry runs
    - LocalObjectStore: directory tree on disk, one file per key

Architecture Pattern:
    Simple async interface; blocking filesystem work runs through
    asyncio.to_thread so the polling loop never blocks the event loop.

Usage:
    from proof_of_build.clients.object_store import LocalObjectStore

    store = LocalObjectStore("/var/lib/proof-of-build")
    await store.put("state/p1.json", b"{...}", content_type="application/json")
    obj = await store.get("state/p1.json")
    keys = await store.list_keys("uploads/")
"""

import asyncio
import json
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)

# Sidecar directory holding per-key content types for LocalObjectStore
_META_DIR_NAME = ".meta"
_CONTENT_TYPE_SUFFIX = ".content-type"


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a uniquely named temp file and an atomic rename."""
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


@dataclass(frozen=True)
class StoredObject:
    """An object read from the store.

    Attributes:
        key: Object key
        body: Raw bytes
        content_type: Content type recorded at put time, if any
    """

    key: str
    body: bytes
    content_type: str | None = None

    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.body)


class ObjectStore(ABC):
    """Abstract key-addressed blob store (get / put / list-by-prefix)."""

    @abstractmethod
    async def get(self, key: str) -> StoredObject | None:
        """Return the object at ``key`` or None if absent."""

    @abstractmethod
    async def put(self, key: str, body: bytes | str, content_type: str | None = None) -> None:
        """Write ``body`` at ``key``, overwriting any existing object."""

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with ``prefix`` in lexicographic order."""

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


def _to_bytes(body: bytes | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else bytes(body)


class InMemoryObjectStore(ObjectStore):
    """Object store backed by a dict.

    Example:
        >>> store = InMemoryObjectStore()
        >>> await store.put("scripts/p1.json", "{}")
        >>> await store.list_keys("scripts/")
        ['scripts/p1.json']
    """

    def __init__(self) -> None:
        self._objects: dict[str, StoredObject] = {}

    async def get(self, key: str) -> StoredObject | None:
        return self._objects.get(key)

    async def put(self, key: str, body: bytes | str, content_type: str | None = None) -> None:
        self._objects[key] = StoredObject(key=key, body=_to_bytes(body), content_type=content_type)

    async def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._objects if key.startswith(prefix))


class LocalObjectStore(ObjectStore):
    """Object store backed by a directory tree.

    Each key maps to ``<root>/<key>``. Content types are kept in a sidecar
    tree under ``<root>/.meta/`` which is hidden from listings.

    Security:
        Keys are resolved and verified to stay within the root directory,
        preventing path traversal via crafted keys.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith("/"):
            raise ValueError(f"Invalid object key: {key!r}")
        path = (self.root / key).resolve()
        if path == self.root or not path.is_relative_to(self.root):
            raise ValueError(f"Object key escapes store root: {key!r}")
        if path.relative_to(self.root).parts[0] == _META_DIR_NAME:
            raise ValueError(f"Object key uses reserved prefix: {key!r}")
        return path

    def _meta_path_for(self, key: str) -> Path:
        return self.root / _META_DIR_NAME / f"{key}{_CONTENT_TYPE_SUFFIX}"

    async def get(self, key: str) -> StoredObject | None:
        path = self._path_for(key)

        def _read() -> StoredObject | None:
            if not path.is_file():
                return None
            meta_path = self._meta_path_for(key)
            content_type = meta_path.read_text().strip() if meta_path.is_file() else None
            return StoredObject(key=key, body=path.read_bytes(), content_type=content_type)

        return await asyncio.to_thread(_read)

    async def put(self, key: str, body: bytes | str, content_type: str | None = None) -> None:
        path = self._path_for(key)
        data = _to_bytes(body)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Readers never observe a partial snapshot; the last rename wins
            _atomic_write(path, data)
            meta_path = self._meta_path_for(key)
            if content_type:
                meta_path.parent.mkdir(parents=True, exist_ok=True)
                _atomic_write(meta_path, content_type.encode("utf-8"))
            else:
                meta_path.unlink(missing_ok=True)

        await asyncio.to_thread(_write)
        log.debug("object_written", key=key, size_bytes=len(data), content_type=content_type)

    async def list_keys(self, prefix: str = "") -> list[str]:
        def _list() -> list[str]:
            if not self.root.exists():
                return []
            keys = []
            for path in self.root.rglob("*"):
                if not path.is_file():
                    continue
                relative = path.relative_to(self.root)
                if relative.parts[0] == _META_DIR_NAME or (
                    path.name.startswith(".") and path.name.endswith(".tmp")
                ):
                    continue
                key = relative.as_posix()
                if key.startswith(prefix):
                    keys.append(key)
            return sorted(keys)

        return await asyncio.to_thread(_list)
