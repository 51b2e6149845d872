"""
Stream roles: Source, Transform and Sink.

Every role wraps exactly one underlying object and is single-use. Roles are
connected with pipe()/merge() from streamwork.stream.compose; the transfer
loop between two connected roles starts lazily, the first time the
downstream role is iterated, written, ended or awaited.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from streamwork.config import get_config
from streamwork.errors import CompositionError
from streamwork.stream.channel import Channel, EndOfStream
from streamwork.telemetry import get_log_context, get_logger, set_log_context

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

I = TypeVar("I")  # noqa: E741
O = TypeVar("O")  # noqa: E741

logger = get_logger(__name__)


class RoleKind(str, Enum):
    """Tag of a stream role."""

    SOURCE = "source"
    TRANSFORM = "transform"
    SINK = "sink"


class Role(ABC):
    """Common base of the three stream roles."""

    kind: ClassVar[RoleKind]
    name: str

    def pipe(self, destination: Any) -> Any:
        """Connect this role to ``destination`` and return the destination."""
        from streamwork.stream.compose import pipe

        return pipe(self, destination)

    def merge(self, destination: Any) -> Any:
        """Connect this role to ``destination`` and return the pair as one role."""
        from streamwork.stream.compose import merge

        return merge(self, destination)

    @abstractmethod
    def destroy(self, error: BaseException | None = None) -> None:
        """Tear the role down, failing it with ``error``."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def _destroyed(name: str) -> CompositionError:
    return CompositionError(f"stream '{name}' was destroyed", operator=name)


class _Inlet(ABC):
    """Input side shared by transforms and sinks.

    Holds the single upstream role and the task that copies its items into
    ``write()``/``end()``. A failure on either end fails this role and
    destroys the upstream, so nothing upstream keeps running.
    """

    name: str
    _upstream: Role | None = None
    _pump_task: asyncio.Task[None] | None = None

    def _attach(self, upstream: Role) -> None:
        if self._upstream is not None:
            raise CompositionError(
                f"'{self.name}' already has an upstream ({self._upstream.name})",
                operator="pipe",
            )
        self._upstream = upstream

    def _start(self) -> None:
        if self._upstream is None or self._pump_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._pump_task = loop.create_task(self._pump(self._upstream))

    async def _pump(self, upstream: Role) -> None:
        # the task runs in a copy of the caller's context
        context = get_log_context()
        context.stage = self.name
        set_log_context(context)

        items = upstream.__aiter__()  # type: ignore[attr-defined]
        try:
            async for item in items:
                await self.write(item)
            await self.end()
        except Exception as e:
            logger.debug(
                "Pump stopped on error",
                upstream=upstream.name,
                downstream=self.name,
                error=repr(e),
            )
            self.fail(e)
            upstream.destroy(e)
        finally:
            await items.aclose()

    def _stop_pump(self) -> None:
        task = self._pump_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @abstractmethod
    async def write(self, item: Any) -> None: ...

    @abstractmethod
    async def end(self) -> None: ...

    @abstractmethod
    def fail(self, error: BaseException) -> None: ...


class Source(Role, Generic[O]):
    """Producer of a lazy, ordered, single-pass sequence.

    Wraps one async iterable: a reader adapter, an in-memory sequence or the
    output side of a Transform.
    """

    kind: ClassVar[RoleKind] = RoleKind.SOURCE

    def __init__(self, inner: AsyncIterable[O], *, name: str | None = None) -> None:
        self._inner = inner
        self._consumed = False
        self._error: BaseException | None = None
        self.name = name or getattr(inner, "name", None) or type(inner).__name__

    @property
    def inner(self) -> AsyncIterable[O]:
        return self._inner

    async def __aiter__(self) -> AsyncIterator[O]:
        if self._error is not None:
            raise self._error
        if self._consumed:
            raise CompositionError(f"stream '{self.name}' was already consumed", operator="iterate")
        self._consumed = True

        iterator = self._inner.__aiter__()
        try:
            async for item in iterator:
                yield item
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    def destroy(self, error: BaseException | None = None) -> None:
        if self._error is None:
            self._error = error or _destroyed(self.name)
        if isinstance(self._inner, Role):
            self._inner.destroy(error)


class Transform(_Inlet, Role, Generic[I, O]):
    """Consumer of I and producer of O at the same time."""

    kind: ClassVar[RoleKind] = RoleKind.TRANSFORM

    @abstractmethod
    async def write(self, item: I) -> None:
        """Feed one item; suspends while the transform cannot accept more."""
        ...

    @abstractmethod
    async def end(self) -> None:
        """Signal end of input."""
        ...

    @abstractmethod
    def fail(self, error: BaseException) -> None:
        """Fail the transform; only the first error is kept."""
        ...

    @property
    @abstractmethod
    def error(self) -> BaseException | None:
        """The terminal error, if the transform failed."""
        ...

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[O]: ...


class BufferedTransform(Transform[I, O]):
    """Transform backed by a flow-controlled output buffer.

    Subclasses implement ``_transform`` (and optionally ``_flush``) and emit
    output with ``push``, which suspends while the buffer is full.
    """

    def __init__(self, *, buffer_size: int | None = None, name: str | None = None) -> None:
        self.name = name or type(self).__name__
        self._output: Channel[O] = Channel(buffer_size or get_config().buffer_size)
        self._lock = asyncio.Lock()
        self._input_ended = False
        self._error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def ended(self) -> bool:
        """True once the output side has been closed."""
        return self._output.closed

    async def write(self, item: I) -> None:
        self._start()
        if self._error is not None:
            raise self._error
        if self._input_ended:
            raise CompositionError("write after end", operator=self.name)

        async with self._lock:
            try:
                await self._transform(item)
            except Exception as e:
                self.fail(e)
                raise

    async def end(self) -> None:
        self._start()
        if self._input_ended:
            return
        self._input_ended = True
        if self._error is not None:
            raise self._error

        async with self._lock:
            try:
                await self._flush()
            except Exception as e:
                self.fail(e)
                raise

        self._output.close()
        logger.debug("Transform ended", stage=self.name)

    async def push(self, item: O) -> None:
        """Emit one output item."""
        await self._output.put(item)

    def fail(self, error: BaseException) -> None:
        if self._error is not None or self._output.closed:
            return
        self._error = error
        self._output.close(error)
        logger.debug("Transform failed", stage=self.name, error=repr(error))
        self._on_fail(error)

    def destroy(self, error: BaseException | None = None) -> None:
        self.fail(error or _destroyed(self.name))
        self._stop_pump()

    async def __aiter__(self) -> AsyncIterator[O]:
        self._start()
        try:
            while True:
                try:
                    item = await self._output.get()
                except EndOfStream:
                    return
                yield item
        finally:
            # consumer stopped early: nothing will read the rest
            if not self._output.closed:
                self.destroy()

    @abstractmethod
    async def _transform(self, item: I) -> None: ...

    async def _flush(self) -> None:
        return None

    def _on_fail(self, error: BaseException) -> None:
        return None


class FunctionTransform(BufferedTransform[I, O]):
    """Applies a sync or async function to every item.

    A ``None`` result emits nothing, so a function can also filter.
    """

    def __init__(
        self,
        fn: Callable[[I], O | Awaitable[O] | None],
        *,
        buffer_size: int | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(buffer_size=buffer_size, name=name or getattr(fn, "__name__", None))
        self._fn = fn

    async def _transform(self, item: I) -> None:
        result = self._fn(item)
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            await self.push(result)


class Sink(_Inlet, Role, Generic[I]):
    """Consumer of a sequence, with a completion signal.

    ``await sink`` (or ``await sink.wait()``) returns once the sink consumed
    its input to the end, or raises the error that stopped it.
    """

    kind: ClassVar[RoleKind] = RoleKind.SINK

    @abstractmethod
    async def write(self, item: I) -> None: ...

    @abstractmethod
    async def end(self) -> None: ...

    @abstractmethod
    async def wait(self) -> None:
        """Wait for completion."""
        ...

    @abstractmethod
    def fail(self, error: BaseException) -> None: ...

    def __await__(self) -> Any:
        return self.wait().__await__()


class ConsumerSink(Sink[I]):
    """Sink with ``_write``/``_close`` hooks and a completion event."""

    def __init__(self, *, name: str | None = None) -> None:
        self.name = name or type(self).__name__
        self._lock = asyncio.Lock()
        self._finished = asyncio.Event()
        self._ended = False
        self._error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        return self._error

    async def write(self, item: I) -> None:
        self._start()
        if self._error is not None:
            raise self._error
        if self._ended:
            raise CompositionError("write after end", operator=self.name)

        async with self._lock:
            try:
                await self._write(item)
            except Exception as e:
                self.fail(e)
                raise

    async def end(self) -> None:
        self._start()
        if self._ended:
            return
        self._ended = True
        if self._error is not None:
            raise self._error

        async with self._lock:
            try:
                await self._close()
            except Exception as e:
                self.fail(e)
                raise

        self._finished.set()
        logger.debug("Sink finished", stage=self.name)

    async def wait(self) -> None:
        self._start()
        await self._finished.wait()
        if self._error is not None:
            raise self._error

    def fail(self, error: BaseException) -> None:
        if self._error is not None or self._finished.is_set():
            return
        self._error = error
        self._finished.set()
        logger.debug("Sink failed", stage=self.name, error=repr(error))

    def destroy(self, error: BaseException | None = None) -> None:
        self.fail(error or _destroyed(self.name))
        self._stop_pump()

    @abstractmethod
    async def _write(self, item: I) -> None: ...

    async def _close(self) -> None:
        return None


class FunctionSink(ConsumerSink[I]):
    """Calls a sync or async function for every item."""

    def __init__(self, fn: Callable[[I], Awaitable[None] | None], *, name: str | None = None) -> None:
        super().__init__(name=name or getattr(fn, "__name__", None))
        self._fn = fn

    async def _write(self, item: I) -> None:
        result = self._fn(item)
        if inspect.isawaitable(result):
            await result


class WriterSink(ConsumerSink[Any]):
    """Writes items to a file-like object (sync or async ``write``)."""

    def __init__(self, writer: Any, *, close_on_end: bool = False, name: str | None = None) -> None:
        super().__init__(name=name or getattr(writer, "name", None) or type(writer).__name__)
        self._writer = writer
        self._close_on_end = close_on_end

    async def _write(self, item: Any) -> None:
        result = self._writer.write(item)
        if inspect.isawaitable(result):
            await result

    async def _close(self) -> None:
        for method in ("flush", "close") if self._close_on_end else ("flush",):
            call = getattr(self._writer, method, None)
            if call is None:
                continue
            result = call()
            if inspect.isawaitable(result):
                await result


class StreamWriterSink(ConsumerSink[bytes]):
    """Writes bytes to an ``asyncio.StreamWriter``, honouring ``drain()``."""

    def __init__(self, writer: asyncio.StreamWriter, *, name: str | None = None) -> None:
        super().__init__(name=name or "StreamWriter")
        self._writer = writer

    async def _write(self, item: bytes) -> None:
        self._writer.write(item)
        await self._writer.drain()

    async def _close(self) -> None:
        if self._writer.can_write_eof():
            self._writer.write_eof()
        self._writer.close()
        await self._writer.wait_closed()
