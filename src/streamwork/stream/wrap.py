"""
Adapters that turn native Python objects into stream roles.

The accepted shapes are:

- an existing role (returned unchanged)
- ``asyncio.StreamReader`` / ``asyncio.StreamWriter``
- file-like objects exposing ``read`` or ``write`` (sync or async)
- a callable (becomes a FunctionTransform, or a FunctionSink via wrap_sink)
- ``str``/``bytes`` (a single-item source)
- any sync or async iterable
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, Iterable
from typing import TYPE_CHECKING, Any

from streamwork.config import get_config
from streamwork.stream.roles import (
    FunctionSink,
    FunctionTransform,
    Role,
    Sink,
    Source,
    StreamWriterSink,
    Transform,
    WriterSink,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

_SCALARS = (str, bytes, bytearray, memoryview)


async def _single(value: Any) -> AsyncIterator[Any]:
    yield value


async def _from_iterable(items: Iterable[Any]) -> AsyncIterator[Any]:
    iterator: Iterator[Any] = iter(items)
    for item in iterator:
        yield item


async def _read_stream(reader: asyncio.StreamReader, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            return
        yield chunk


async def _read_file(file: Any, chunk_size: int) -> AsyncIterator[Any]:
    read = file.read
    # aiofiles handles expose coroutine methods; plain files block, so they go to a thread
    is_async = inspect.iscoroutinefunction(read)
    while True:
        chunk = await read(chunk_size) if is_async else await asyncio.to_thread(read, chunk_size)
        if not chunk:
            return
        yield chunk


def _type_error(value: Any, role: str) -> TypeError:
    return TypeError(f"cannot wrap {type(value).__name__} as a stream {role}")


def wrap_source(value: Any, *, chunk_size: int | None = None) -> Source[Any]:
    """Wrap ``value`` as a Source.

    Args:
        value: Source, Transform, reader, file-like, str/bytes or iterable
        chunk_size: Read size for readers and files (default from config)

    Raises:
        TypeError: If the shape is not recognised
    """
    if isinstance(value, Source):
        return value
    if isinstance(value, Transform):
        return Source(value)

    size = chunk_size or get_config().read_chunk_size
    if isinstance(value, asyncio.StreamReader):
        return Source(_read_stream(value, size), name="StreamReader")
    if isinstance(value, _SCALARS):
        return Source(_single(value), name=type(value).__name__)
    if hasattr(value, "read"):
        return Source(_read_file(value, size), name=getattr(value, "name", None) or type(value).__name__)
    if isinstance(value, AsyncIterable):
        return Source(value)
    if isinstance(value, Iterable):
        return Source(_from_iterable(value), name=type(value).__name__)
    raise _type_error(value, "source")


def wrap_transform(value: Any) -> Transform[Any, Any]:
    """Wrap ``value`` as a Transform; callables become FunctionTransform."""
    if isinstance(value, Transform):
        return value
    if callable(value):
        return FunctionTransform(value)
    raise _type_error(value, "transform")


def wrap_sink(value: Any) -> Sink[Any]:
    """Wrap ``value`` as a Sink.

    Accepts a Sink, an ``asyncio.StreamWriter``, an object with ``write`` or
    a callable invoked for every item.
    """
    if isinstance(value, Sink):
        return value
    if isinstance(value, asyncio.StreamWriter):
        return StreamWriterSink(value)
    if hasattr(value, "write"):
        return WriterSink(value)
    if callable(value):
        return FunctionSink(value)
    raise _type_error(value, "sink")


def wrap(value: Any) -> Role:
    """Wrap ``value`` as whichever role its shape implies.

    Readers and iterables become sources, writers become sinks and
    callables become transforms.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, asyncio.StreamWriter):
        return wrap_sink(value)
    if callable(value):
        return wrap_transform(value)
    if isinstance(value, _SCALARS) or hasattr(value, "read"):
        return wrap_source(value)
    if hasattr(value, "write"):
        return wrap_sink(value)
    if isinstance(value, (AsyncIterable, Iterable)):
        return wrap_source(value)
    raise _type_error(value, "role")
