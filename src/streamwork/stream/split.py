"""
Delimiter splitting of byte or text streams into records.

Two implementations share one contract (identical records for any chunking
of the same input):

- ByteSplitter, used when the delimiter is one ASCII character that the
  encoding maps to the same single byte. It collects raw chunks up to a
  threshold and scans the joined buffer once, decoding each record as it
  is emitted.
- TextSplitter, used for everything else. It decodes incrementally, so
  multi-byte characters split across chunks are handled, then splits on a
  literal string or a regular expression.
"""

from __future__ import annotations

import codecs
import re
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, Union

from streamwork.config import get_config
from streamwork.errors import CompositionError
from streamwork.stream.roles import BufferedTransform

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

Delimiter = Union[None, int, str, bytes, "re.Pattern[str]"]

LINE_BREAK = re.compile(r"\r?\n")
NEWLINE = 0x0A


def _fast_path_byte(code: int, encoding: str) -> int | None:
    try:
        encoded = chr(code).encode(encoding)
    except UnicodeError:
        return None
    return code if encoded == bytes([code]) else None


def _resolve(delimiter: Delimiter, encoding: str) -> tuple[int | None, str | re.Pattern[str] | None]:
    """Return (byte, None) for the byte path or (None, matcher) for the text path."""
    if isinstance(delimiter, bool):
        raise CompositionError("delimiter must not be a bool", operator="split")

    if isinstance(delimiter, int):
        if not 0 <= delimiter < 128:
            raise CompositionError(
                f"delimiter byte must be an ASCII code (0-127), got {delimiter}",
                operator="split",
            )
        byte = _fast_path_byte(delimiter, encoding)
        return (byte, None) if byte is not None else (None, chr(delimiter))

    if isinstance(delimiter, (bytes, bytearray)):
        if len(delimiter) == 1 and delimiter[0] < 128:
            return _resolve(delimiter[0], encoding)
        delimiter = bytes(delimiter).decode(encoding)

    if isinstance(delimiter, re.Pattern):
        if not isinstance(delimiter.pattern, str):
            raise CompositionError("delimiter pattern must be a str pattern", operator="split")
        if delimiter.groups:
            raise CompositionError(
                "delimiter pattern must not contain capturing groups",
                operator="split",
            )
        return None, delimiter

    if isinstance(delimiter, str):
        if not delimiter:
            raise CompositionError("delimiter must not be empty", operator="split")
        if len(delimiter) == 1 and ord(delimiter) < 128:
            byte = _fast_path_byte(ord(delimiter), encoding)
            if byte is not None:
                return byte, None
        return None, delimiter

    raise CompositionError(
        f"unsupported delimiter type: {type(delimiter).__name__}",
        operator="split",
    )


class ByteSplitter(BufferedTransform[Any, str]):
    """Splits raw bytes on a single delimiter byte."""

    def __init__(
        self,
        delimiter: int,
        encoding: str = "utf-8",
        *,
        keep_trailing_empty: bool = False,
        max_buffer_size: int | None = None,
        errors: str = "replace",
        buffer_size: int | None = None,
    ) -> None:
        super().__init__(buffer_size=buffer_size, name="split")
        self._separator = bytes([delimiter])
        self._encoding = encoding
        self._errors = errors
        self._keep_trailing_empty = keep_trailing_empty
        self._threshold = max_buffer_size or get_config().split_buffer_size

        self._chunks: list[bytes] = []
        self._size = 0
        self._tail = b""

    async def _transform(self, item: Any) -> None:
        chunk = item.encode(self._encoding) if isinstance(item, str) else bytes(item)
        self._chunks.append(chunk)
        self._size += len(chunk)
        if self._size >= self._threshold:
            await self._scan()

    async def _scan(self) -> None:
        buffer = b"".join([self._tail, *self._chunks])
        self._chunks = []
        self._size = 0

        *records, self._tail = buffer.split(self._separator)
        for record in records:
            await self.push(record.decode(self._encoding, self._errors))

    async def _flush(self) -> None:
        if self._chunks:
            await self._scan()
        if self._tail or self._keep_trailing_empty:
            tail, self._tail = self._tail, b""
            await self.push(tail.decode(self._encoding, self._errors))


class TextSplitter(BufferedTransform[Any, str]):
    """Splits decoded text on a literal string or a regular expression."""

    def __init__(
        self,
        matcher: str | re.Pattern[str],
        encoding: str = "utf-8",
        *,
        keep_trailing_empty: bool = False,
        errors: str = "replace",
        buffer_size: int | None = None,
    ) -> None:
        super().__init__(buffer_size=buffer_size, name="split")
        self._matcher = matcher
        self._decoder = codecs.getincrementaldecoder(encoding)(errors)
        self._keep_trailing_empty = keep_trailing_empty
        self._remainder = ""

    def _split(self, text: str) -> list[str]:
        if isinstance(self._matcher, re.Pattern):
            return self._matcher.split(text)
        return text.split(self._matcher)

    async def _emit(self, text: str) -> None:
        *records, self._remainder = self._split(self._remainder + text)
        for record in records:
            await self.push(record)

    async def _transform(self, item: Any) -> None:
        text = item if isinstance(item, str) else self._decoder.decode(bytes(item))
        if text:
            await self._emit(text)

    async def _flush(self) -> None:
        text = self._decoder.decode(b"", final=True)
        if text:
            await self._emit(text)
        if self._remainder or self._keep_trailing_empty:
            remainder, self._remainder = self._remainder, ""
            await self.push(remainder)


def split(
    delimiter: Delimiter = None,
    encoding: str = "utf-8",
    *,
    keep_trailing_empty: bool = False,
    max_buffer_size: int | None = None,
    errors: str = "replace",
) -> BufferedTransform[Any, str]:
    """Create a transform that turns chunks into delimiter-separated records.

    Args:
        delimiter: ``None`` for CR/LF or LF line breaks, a byte code (0-127),
            a string, a single byte or a compiled pattern without capturing
            groups
        encoding: Text encoding of the input
        keep_trailing_empty: Emit the final record even when it is empty
        max_buffer_size: Bytes collected before a scan on the byte path
            (default from config)
        errors: Decoding error handler

    Returns:
        Transform of bytes or str chunks into str records

    Raises:
        CompositionError: If the delimiter or encoding is invalid

    Example:
        >>> async for row in pipe(from_value(b"a,b,c"), split(",")):
        ...     print(row)
    """
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise CompositionError(f"unknown encoding: {encoding}", operator="split") from e

    byte, matcher = _resolve(LINE_BREAK if delimiter is None else delimiter, encoding)
    if byte is not None:
        return ByteSplitter(
            byte,
            encoding,
            keep_trailing_empty=keep_trailing_empty,
            max_buffer_size=max_buffer_size,
            errors=errors,
        )
    assert matcher is not None
    return TextSplitter(
        matcher,
        encoding,
        keep_trailing_empty=keep_trailing_empty,
        errors=errors,
    )


async def as_lines(source: Any, delimiter: Delimiter = None, encoding: str = "utf-8") -> AsyncIterator[str]:
    """Iterate the records of ``source`` split on ``delimiter``.

    Without a delimiter, lines are split on the newline byte, which takes
    the byte scanning path.
    """
    from streamwork.stream.compose import pipe

    lines = pipe(source, split(NEWLINE if delimiter is None else delimiter, encoding))
    async with aclosing(lines.__aiter__()) as records:
        async for record in records:
            yield record
