"""Key-value caches used to remember finished synchronisations."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict


class KVStorage(ABC):
    """Asynchronous string key-value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value for ``key``, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: str, expire_ttl: int | None = None) -> None:
        """Store ``value`` under ``key``; ``expire_ttl`` is in seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class SimpleMemStorage(KVStorage):
    """Unbounded in-memory store; expiry is ignored."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str, expire_ttl: int | None = None) -> None:
        with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class LruStorage(KVStorage):
    """In-memory store that keeps at most ``capacity`` recently used entries."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._data: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key)
            return self._data[key]

    async def set(self, key: str, value: str, expire_ttl: int | None = None) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self._capacity:
                self._data.popitem(last=False)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)