"""
Compression and decompression transforms.

gzip, bz2 and xz run in-process on the standard library codecs; brotli,
lz4 and zstd delegate to their command line tools through spawn_transform,
so those binaries must be on PATH.
"""

from __future__ import annotations

import bz2
import lzma
import zlib
from enum import Enum
from typing import TYPE_CHECKING, Any

from streamwork.errors import FormatError, ValidationError
from streamwork.stream.roles import BufferedTransform, Transform
from streamwork.stream.spawn import spawn_transform
from streamwork.stream.utils import pass_through

if TYPE_CHECKING:
    from collections.abc import Callable

_GZIP_WBITS = 16 + zlib.MAX_WBITS
_CODEC_ERRORS = (zlib.error, OSError, EOFError, lzma.LZMAError)


class Compression(str, Enum):
    """Supported compression formats."""

    GZIP = "gzip"
    BZ2 = "bz2"
    XZ = "xz"
    BROTLI = "brotli"
    LZ4 = "lz4"
    ZSTD = "zstd"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | Compression) -> Compression:
        """Parse a compression name.

        Raises:
            ValidationError: If the name is unknown
        """
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unsupported compression type: {value}",
                field="compression",
                expected=[c.value for c in cls],
                actual=value,
            ) from None


# Default compression levels
_DEFAULT_LEVELS = {
    Compression.GZIP: 5,
    Compression.BZ2: 9,
    Compression.XZ: 6,
    Compression.BROTLI: 5,
    Compression.LZ4: 1,
    Compression.ZSTD: 3,
}


class _Decompressor:
    """Decompresses concatenated streams (multi-member gzip, bz2 and xz)."""

    def __init__(self, factory: Callable[[], Any]) -> None:
        self._factory = factory
        self._codec = factory()
        self._pending = False

    def process(self, data: bytes) -> bytes:
        out = []
        while data:
            self._pending = True
            out.append(self._codec.decompress(data))
            if not self._codec.eof:
                break
            data = self._codec.unused_data
            self._codec = self._factory()
            self._pending = False
        return b"".join(out)

    def finish(self) -> bytes:
        if self._pending:
            raise EOFError("compressed stream ended before the end-of-stream marker")
        return b""


class _Compressor:
    def __init__(self, codec: Any) -> None:
        self._codec = codec

    def process(self, data: bytes) -> bytes:
        return self._codec.compress(data)

    def finish(self) -> bytes:
        return self._codec.flush()


class CodecTransform(BufferedTransform[bytes, bytes]):
    """Runs an incremental in-process codec over a byte stream."""

    def __init__(self, codec: _Decompressor | _Compressor, *, name: str) -> None:
        super().__init__(name=name)
        self._codec = codec

    def _codec_error(self, error: Exception) -> FormatError:
        return FormatError(f"{self.name} failed: {error}", format=self.name)

    async def _transform(self, item: bytes) -> None:
        try:
            data = self._codec.process(bytes(item))
        except _CODEC_ERRORS as e:
            raise self._codec_error(e) from e
        if data:
            await self.push(data)

    async def _flush(self) -> None:
        try:
            data = self._codec.finish()
        except _CODEC_ERRORS as e:
            raise self._codec_error(e) from e
        if data:
            await self.push(data)


def decompress(kind: str | Compression) -> Transform[bytes, bytes]:
    """Create a transform that decompresses ``kind``-compressed bytes.

    Args:
        kind: gzip, bz2, xz, brotli, lz4, zstd or none

    Raises:
        ValidationError: If the kind is unknown

    Example:
        >>> text = await to_string(merge(read_source, decompress("gzip")))
    """
    compression = Compression.parse(kind)
    match compression:
        case Compression.GZIP:
            return CodecTransform(
                _Decompressor(lambda: zlib.decompressobj(_GZIP_WBITS)), name="gunzip"
            )
        case Compression.BZ2:
            return CodecTransform(_Decompressor(bz2.BZ2Decompressor), name="bunzip2")
        case Compression.XZ:
            return CodecTransform(_Decompressor(lzma.LZMADecompressor), name="unxz")
        case Compression.BROTLI:
            return spawn_transform("brotli", ["-d", "-c"])
        case Compression.LZ4:
            return spawn_transform("lz4", ["-q", "-d", "-c"])
        case Compression.ZSTD:
            return spawn_transform("zstd", ["-q", "-d", "-c"])
        case _:
            return pass_through()


def compress(kind: str | Compression, level: int | None = None) -> Transform[bytes, bytes]:
    """Create a transform that compresses bytes as ``kind``.

    Args:
        kind: gzip, bz2, xz, brotli, lz4, zstd or none
        level: Compression level (defaults: gzip 5, bz2 9, xz 6, brotli 5,
            lz4 1, zstd 3)

    Raises:
        ValidationError: If the kind is unknown
    """
    compression = Compression.parse(kind)
    if compression is Compression.NONE:
        return pass_through()

    level = _DEFAULT_LEVELS[compression] if level is None else level
    match compression:
        case Compression.GZIP:
            codec = zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
            return CodecTransform(_Compressor(codec), name="gzip")
        case Compression.BZ2:
            return CodecTransform(_Compressor(bz2.BZ2Compressor(level)), name="bzip2")
        case Compression.XZ:
            return CodecTransform(_Compressor(lzma.LZMACompressor(preset=level)), name="xz")
        case Compression.BROTLI:
            return spawn_transform("brotli", ["-c", "-q", level])
        case Compression.LZ4:
            return spawn_transform("lz4", ["-q", "-c", f"-{level}"])
        case _:
            return spawn_transform("zstd", ["-q", "-c", f"-{level}"])
