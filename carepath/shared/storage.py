"""
Persistent key-value store used for the local auth cache.

The host application selects one implementation at startup (in-memory for
web and tests, a JSON file for native installs) and injects it; nothing in
the session subsystem decides the backend on its own.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from .config import Settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class IKeyValueStore(Protocol):
    """
    Interface for the local persistent store.

    All values are strings. Implementations report failures as StorageError.
    """

    async def get_item(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""
        ...

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def remove_item(self, key: str) -> None:
        """Remove ``key``. Removing a missing key is not an error."""
        ...

    async def multi_remove(self, keys: Iterable[str]) -> None:
        """Remove several keys at once."""
        ...

    async def get_all_keys(self) -> list[str]:
        """List every key currently stored."""
        ...


class InMemoryStore:
    """
    Dict-backed store.

    Used on web builds and in tests. Contents vanish with the process.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._items.pop(key, None)

    async def get_all_keys(self) -> list[str]:
        return list(self._items.keys())


class FileStore:
    """
    Store persisted as a single JSON document on disk.

    Every mutation rewrites the document atomically (temp file + rename), so
    a crash mid-write leaves the previous contents intact. File IO runs in a
    worker thread to keep the event loop free.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError("read", message=f"Could not read {self._path}: {e}") from e
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError("read", message=f"Corrupt store file {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError("read", message=f"Corrupt store file {self._path}: not an object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".store-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, sort_keys=True)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError("write", message=f"Could not write {self._path}: {e}") from e

    async def get_item(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def remove_item(self, key: str) -> None:
        await self.multi_remove([key])

    async def multi_remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            removed = [k for k in keys if data.pop(k, None) is not None]
            if removed:
                await asyncio.to_thread(self._write, data)

    async def get_all_keys(self) -> list[str]:
        data = await asyncio.to_thread(self._read)
        return list(data.keys())


def create_store(settings: Settings) -> IKeyValueStore:
    """
    Build the store the host configured.

    Called once while wiring the application.
    """
    if settings.storage_backend == "memory":
        logger.debug("Using in-memory key-value store")
        return InMemoryStore()
    logger.debug(f"Using file key-value store at {settings.storage_path}")
    return FileStore(settings.storage_path)
