"""
Bounded-concurrency executor.

Applies an async callback to every item of a sync or async sequence while
keeping at most ``concurrency`` invocations in flight.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from streamwork.config import get_config
from streamwork.errors import ValidationError
from streamwork.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)


@dataclass
class PoolStats:
    """Counters of a TaskPool run.

    Attributes:
        started: Callback invocations started
        completed: Callback invocations settled successfully
        running: Invocations currently in flight
        peak_running: Highest observed value of ``running``
    """

    started: int = 0
    completed: int = 0
    running: int = 0
    peak_running: int = 0


class TaskPool(Generic[T]):
    """Scheduler behind for_each_async.

    Each scheduling step is queued with ``loop.call_soon`` instead of being
    called recursively, so arbitrarily long sequences never grow the stack.
    The first failure stops scheduling; invocations already in flight are
    cancelled and awaited before the error is re-raised.

    Example:
        >>> pool = TaskPool(fetch_row, concurrency=4)
        >>> await pool.run(row_ids)
        >>> pool.stats.peak_running
        4
    """

    def __init__(
        self,
        callback: Callable[[T, int], Awaitable[Any] | Any],
        concurrency: int | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            callback: Called as ``callback(item, index)`` for every item
            concurrency: Maximum in-flight invocations (default from config)

        Raises:
            ValidationError: If concurrency is below 1
        """
        if concurrency is None:
            concurrency = get_config().concurrency
        if concurrency < 1:
            raise ValidationError(
                "concurrency must be >= 1",
                field="concurrency",
                expected=">= 1",
                actual=concurrency,
            )

        self._callback = callback
        self._concurrency = concurrency
        self._stats = PoolStats()
        self._tasks: set[asyncio.Task[Any]] = set()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._done: asyncio.Future[None] | None = None
        self._sync_items: Iterator[T] | None = None
        self._async_items: AsyncIterator[T] | None = None

        self._cursor = 0
        self._pulling = False
        self._exhausted = False
        self._finished = False
        self._used = False

    @property
    def concurrency(self) -> int:
        """Get the in-flight limit."""
        return self._concurrency

    @property
    def stats(self) -> PoolStats:
        """Get run counters."""
        return self._stats

    async def run(self, items: Iterable[T] | AsyncIterable[T]) -> None:
        """Invoke the callback for every item.

        Args:
            items: Finite sync or async sequence

        Raises:
            Exception: The first error raised by the callback or the sequence
        """
        if self._used:
            raise RuntimeError("TaskPool.run() can only be called once")
        self._used = True

        self._loop = asyncio.get_running_loop()
        self._done = self._loop.create_future()
        if isinstance(items, AsyncIterable):
            self._async_items = aiter(items)
        else:
            self._sync_items = iter(items)

        logger.debug("Task pool started", concurrency=self._concurrency)
        self._loop.call_soon(self._step)
        try:
            await self._done
        finally:
            await self._shutdown()

        logger.debug(
            "Task pool finished",
            completed=self._stats.completed,
            peak_running=self._stats.peak_running,
        )

    def _step(self) -> None:
        if self._finished or self._pulling:
            return
        if self._stats.running >= self._concurrency:
            return
        if self._exhausted:
            if self._stats.running == 0:
                self._complete()
            return

        if self._sync_items is not None:
            try:
                item = next(self._sync_items)
            except StopIteration:
                self._exhausted = True
                if self._stats.running == 0:
                    self._complete()
                return
            except Exception as e:
                self._fail(e)
                return
            self._start(item)
        else:
            # async iterators allow one pending __anext__ at a time
            self._pulling = True
            self._track(self._get_loop().create_task(self._pull()))

    async def _pull(self) -> None:
        assert self._async_items is not None
        try:
            item = await anext(self._async_items)
        except StopAsyncIteration:
            self._pulling = False
            self._exhausted = True
            self._get_loop().call_soon(self._step)
            return
        except Exception as e:
            self._pulling = False
            self._fail(e)
            return

        self._pulling = False
        if not self._finished:
            self._start(item)

    def _start(self, item: T) -> None:
        index = self._cursor
        self._cursor += 1

        stats = self._stats
        stats.started += 1
        stats.running += 1
        stats.peak_running = max(stats.peak_running, stats.running)

        loop = self._get_loop()
        self._track(loop.create_task(self._invoke(item, index)))
        loop.call_soon(self._step)

    async def _invoke(self, item: T, index: int) -> None:
        try:
            result = self._callback(item, index)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._fail(e, index=index)
            return

        self._stats.running -= 1
        self._stats.completed += 1
        self._get_loop().call_soon(self._step)

    def _complete(self) -> None:
        self._finished = True
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _fail(self, error: Exception, index: int | None = None) -> None:
        if self._finished:
            return
        self._finished = True
        logger.warning(
            "Task pool stopped on error",
            index=index,
            error=repr(error),
            running=self._stats.running,
        )
        if self._done is not None and not self._done.done():
            self._done.set_exception(error)

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _shutdown(self) -> None:
        self._finished = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        assert self._loop is not None
        return self._loop


async def for_each_async(
    items: Iterable[T] | AsyncIterable[T],
    callback: Callable[[T, int], Awaitable[Any] | Any],
    concurrency: int | None = None,
) -> None:
    """Apply an async callback to every item with bounded concurrency.

    Args:
        items: Finite sync or async sequence
        callback: Called as ``callback(item, index)``
        concurrency: Maximum in-flight invocations (default: CPU count)

    Raises:
        ValidationError: If concurrency is below 1
        Exception: The first error raised by the callback
    """
    await TaskPool(callback, concurrency).run(items)


async def map_async(
    items: Iterable[T] | AsyncIterable[T],
    callback: Callable[[T, int], Awaitable[R] | R],
    concurrency: int | None = None,
) -> list[R]:
    """Like for_each_async, collecting the results in input order.

    Args:
        items: Finite sync or async sequence
        callback: Called as ``callback(item, index)``
        concurrency: Maximum in-flight invocations

    Returns:
        One result per item, ordered by index
    """
    results: dict[int, R] = {}

    async def collect(item: T, index: int) -> None:
        value = callback(item, index)
        if inspect.isawaitable(value):
            value = await value
        results[index] = value  # type: ignore[assignment]

    await for_each_async(items, collect, concurrency)
    return [results[i] for i in range(len(results))]
