"""
Small building blocks: in-memory sources, collectors and trivial transforms.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, TypeVar

from streamwork.stream.roles import BufferedTransform, FunctionTransform, Role, Source, Transform
from streamwork.stream.wrap import wrap_source

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

T = TypeVar("T")


async def _items(values: Iterable[Any]) -> AsyncIterator[Any]:
    for value in values:
        yield value


def from_value(value: T) -> Source[T]:
    """Source that yields ``value`` once."""
    return Source(_items((value,)), name="from_value")


def from_array(values: Iterable[T]) -> Source[T]:
    """Source that yields every element of ``values`` in order."""
    return Source(_items(list(values)), name="from_array")


async def _drain(source: Any) -> AsyncIterator[Any]:
    readable = source if isinstance(source, Role) else wrap_source(source)
    async with aclosing(readable.__aiter__()) as items:  # type: ignore[attr-defined]
        async for item in items:
            yield item


async def to_array(source: Any) -> list[Any]:
    """Collect every item of a source or transform into a list."""
    return [item async for item in _drain(source)]


async def to_bytes(source: Any, encoding: str = "utf-8") -> bytes:
    """Concatenate a stream of bytes or str chunks."""
    chunks = [
        chunk.encode(encoding) if isinstance(chunk, str) else bytes(chunk)
        async for chunk in _drain(source)
    ]
    return b"".join(chunks)


async def to_string(source: Any, encoding: str = "utf-8", errors: str = "replace") -> str:
    """Concatenate a stream of bytes or str chunks and decode the result."""
    return (await to_bytes(source, encoding)).decode(encoding, errors)


class _Flatten(BufferedTransform[Any, Any]):
    async def _transform(self, item: Any) -> None:
        # only lists and tuples are expanded; anything else is dropped
        if isinstance(item, (list, tuple)):
            for element in item:
                await self.push(element)


class _PassThrough(BufferedTransform[Any, Any]):
    async def _transform(self, item: Any) -> None:
        await self.push(item)


def flatten() -> Transform[Any, Any]:
    """Transform emitting the elements of every incoming list."""
    return _Flatten(name="flatten")


def pass_through() -> Transform[Any, Any]:
    """Transform forwarding every item unchanged."""
    return _PassThrough(name="pass_through")


def skip_empty_lines() -> Transform[str, str]:
    """Transform dropping empty strings."""
    return FunctionTransform(lambda line: line or None, name="skip_empty_lines")


def as_bytes(encoding: str = "utf-8") -> Transform[Any, bytes]:
    """Transform encoding str chunks; bytes pass through."""

    def to_bytes_chunk(chunk: Any) -> bytes:
        return chunk.encode(encoding) if isinstance(chunk, str) else bytes(chunk)

    return FunctionTransform(to_bytes_chunk, name="as_bytes")
