"""Lazy asynchronous streams and a buffered decorator that runs items concurrently."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from typing import Awaitable, Generic, TypeVar

T = TypeVar("T")


class AsyncStream(ABC, Generic[T]):
    """A stream that hands out one awaitable per item, or None when exhausted.

    The awaitables do not depend on the stream, so several may run at once.
    """

    @abstractmethod
    def next(self) -> Awaitable[T] | None:
        """Return an awaitable for the next item, or None if there are no more."""

    def size_hint(self) -> tuple[int, int | None]:
        return (0, None)


class Buffered(AsyncStream[T]):
    """Runs up to ``buffer_size`` items of the inner stream ahead, keeping order.

    Must be used from within a running event loop.
    """

    def __init__(self, stream: AsyncStream[T], buffer_size: int) -> None:
        if buffer_size < 0:
            raise ValueError("buffer_size must not be negative")
        self._stream: AsyncStream[T] | None = stream
        self._queue: deque[asyncio.Future[T]] = deque()
        self._max = buffer_size

    def next(self) -> Awaitable[T] | None:
        while len(self._queue) < self._max and self._stream is not None:
            pending = self._stream.next()
            if pending is None:
                self._stream = None
                break
            self._queue.append(asyncio.ensure_future(pending))
        return self._queue.popleft() if self._queue else None

    def __repr__(self) -> str:
        return f"Buffered(stream={self._stream!r}, queued={len(self._queue)}, max={self._max})"