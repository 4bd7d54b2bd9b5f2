"""
Durable single-key string storage.

The conversation log is stored as one serialized value under one key, and
every write replaces the whole value.
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..exceptions import handle_persistence_error
from .json_manager import JSONRepository

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Asynchronous key-value store holding string values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key`` if present."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used by tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.write_count = 0

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self.write_count += 1

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JSONFileKeyValueStore(KeyValueStore):
    """Key-value store backed by a single JSON document on disk.

    Writes go through a temp file and an atomic rename, so a reader observes
    either the previous document or the complete new one. Disk I/O runs in a
    worker thread.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def backup_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".corrupt")

    @handle_persistence_error
    async def get(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(JSONRepository.load_json, self.path)
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            # Values are always stored as serialized strings
            return json.dumps(value)
        return value

    def _load_for_update(self) -> Dict[str, Any]:
        """Read the document before a write; an unreadable one is set aside."""
        try:
            return JSONRepository.load_json(self.path)
        except ValueError as e:
            os.replace(self.path, self.backup_path)
            logger.warning(
                f"Unreadable store document moved to {self.backup_path}: {e}"
            )
            return {}

    def _write(self, key: str, value: str) -> None:
        data = self._load_for_update()
        data[key] = value
        JSONRepository.save_json(self.path, data)

    def _delete(self, key: str) -> None:
        data = self._load_for_update()
        if data.pop(key, None) is not None:
            JSONRepository.save_json(self.path, data)

    @handle_persistence_error
    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, key, value)
        logger.debug(f"Stored {len(value)} chars under {key}")

    @handle_persistence_error
    async def remove(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete, key)
