"""Buffer that collects images for batched upload and tracks their total size."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

T = TypeVar("T")


def data_size(item: Any) -> int:
    """Return the payload size in bytes of raw data or of a ``(meta, data)`` pair."""
    if isinstance(item, (bytes, bytearray)):
        return len(item)
    if isinstance(item, memoryview):
        return item.nbytes
    if isinstance(item, tuple) and len(item) == 2:
        return data_size(item[1])
    raise TypeError(f"cannot determine data size of {type(item).__name__}")


class ImageBuffer(Generic[T]):
    """Items waiting to be uploaded together, with their summed size."""

    def __init__(self) -> None:
        self._items: list[T] = []
        self._size = 0

    def push(self, data: T) -> None:
        self._size += data_size(data)
        self._items.append(data)

    def swap(self) -> tuple[list[T], int]:
        """Take out all items and their total size, leaving the buffer empty."""
        items, size = self._items, self._size
        self._items = []
        self._size = 0
        return items, size

    def clear(self) -> None:
        self._items.clear()
        self._size = 0

    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._items)