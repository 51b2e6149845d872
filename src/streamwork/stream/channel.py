"""
Flow-controlled buffer between the input and output side of a transform.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Generic, TypeVar

from streamwork.errors import CompositionError

T = TypeVar("T")


class EndOfStream(Exception):
    """Raised by Channel.get() once the channel is closed and drained."""


class Channel(Generic[T]):
    """Single-producer, single-consumer buffer with a high-water mark.

    ``put`` suspends while ``high_water_mark`` items are buffered, which is
    how backpressure travels from a slow reader to its writer. Closing is
    synchronous so it can be called from callbacks; items buffered before a
    close are still delivered, after which the close error (if any) is
    raised to the reader.
    """

    def __init__(self, high_water_mark: int) -> None:
        self._hwm = max(1, high_water_mark)
        self._items: deque[T] = deque()
        self._not_empty = asyncio.Event()
        self._not_full = asyncio.Event()
        self._not_full.set()
        self._closed = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> BaseException | None:
        return self._error

    def __len__(self) -> int:
        return len(self._items)

    async def put(self, item: T) -> None:
        """Append an item, waiting while the buffer is full."""
        while len(self._items) >= self._hwm and not self._closed:
            self._not_full.clear()
            await self._not_full.wait()
        if self._closed:
            if self._error is not None:
                raise self._error
            raise CompositionError("write after end", operator="push")
        self._items.append(item)
        self._not_empty.set()

    async def get(self) -> T:
        """Take the next item.

        Raises:
            EndOfStream: When closed cleanly and drained
            BaseException: The close error, once drained
        """
        while not self._items:
            if self._closed:
                if self._error is not None:
                    raise self._error
                raise EndOfStream
            self._not_empty.clear()
            await self._not_empty.wait()
        item = self._items.popleft()
        self._not_full.set()
        return item

    def close(self, error: BaseException | None = None) -> None:
        """Close the channel; the first close wins."""
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._not_empty.set()
        self._not_full.set()
