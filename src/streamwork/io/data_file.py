"""
One-call reading of data files: acquire, decompress, parse.
"""

from __future__ import annotations

import os
from contextlib import aclosing
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from tqdm import tqdm

from streamwork.errors import ValidationError
from streamwork.io.compress import Compression, decompress
from streamwork.io.parser import DataFormat, parser
from streamwork.io.read import read
from streamwork.stream.compose import merge
from streamwork.stream.roles import Source
from streamwork.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


_COMPRESSION_EXTENSIONS = {
    ".gz": Compression.GZIP,
    ".br": Compression.BROTLI,
    ".bz2": Compression.BZ2,
    ".xz": Compression.XZ,
    ".zst": Compression.ZSTD,
    ".lz4": Compression.LZ4,
}

_FORMAT_EXTENSIONS = {
    ".csv": DataFormat.CSV,
    ".tsv": DataFormat.TSV,
    ".ndjson": DataFormat.NDJSON,
    ".jsonl": DataFormat.NDJSON,
    ".geojsonl": DataFormat.NDJSON,
    ".jsonseq": DataFormat.NDJSON,
    ".geojsonseq": DataFormat.NDJSON,
}


def _file_name(location: str | os.PathLike[str]) -> str:
    name = os.fspath(location)
    if name.startswith(("http://", "https://")):
        name = urlsplit(name).path
    return name.rsplit("/", 1)[-1].lower()


def infer_compression(location: str | os.PathLike[str]) -> Compression:
    """Compression named by the file extension, ``none`` if there is none."""
    _, ext = os.path.splitext(_file_name(location))
    return _COMPRESSION_EXTENSIONS.get(ext, Compression.NONE)


def infer_format(location: str | os.PathLike[str]) -> DataFormat:
    """Record format named by the extension, looking past a compression one.

    Unknown extensions read as ``lines``.
    """
    stem, ext = os.path.splitext(_file_name(location))
    if ext in _COMPRESSION_EXTENSIONS:
        _, ext = os.path.splitext(stem)
    return _FORMAT_EXTENSIONS.get(ext, DataFormat.LINES)


class DataFileOptions(BaseModel):
    """Options of read_data_file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    compression: Compression | None = Field(default=None, description="Compression of the file, None to infer it")
    format: DataFormat | None = Field(default=None, description="Record format, None to infer it")
    progress: bool = Field(default=False, description="Show a progress bar when the size is known")

    @classmethod
    def create(cls, **values: Any) -> DataFileOptions:
        """Validate options, raising the library's ValidationError."""
        try:
            return cls.model_validate(values)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ValidationError(
                f"Invalid data file options: {first['msg']}",
                field=field,
                actual=first.get("input"),
            ) from e


async def _with_progress(source: Source[bytes], total: int, desc: str) -> AsyncIterator[bytes]:
    with tqdm(total=total, unit="B", unit_scale=True, desc=desc) as bar:
        async with aclosing(source.__aiter__()) as chunks:  # type: ignore[type-var]
            async for chunk in chunks:
                bar.update(len(chunk))
                yield chunk


async def read_data_file(
    location: str | os.PathLike[str],
    *,
    compression: str | Compression | None = None,
    format: str | DataFormat | None = None,
    progress: bool = False,
    options: DataFileOptions | None = None,
) -> Source[Any]:
    """Read, decompress and parse a local or remote data file.

    Args:
        location: File path or HTTP(S) URL
        compression: Compression of the file, inferred from the extension when None
        format: Record format (csv, tsv, ndjson, lines), inferred from the
            extension when None; unknown extensions read as lines
        progress: Show a tqdm progress bar over the bytes read
        options: Pre-validated options, overriding the keyword arguments

    Returns:
        Source of parsed records

    Raises:
        ValidationError: If an option is invalid
        TransportError: If the location cannot be opened

    Example:
        >>> rows = await read_data_file("events.ndjson.gz")
        >>> async for row in rows:
        ...     print(row["id"])
    """
    opts = options or DataFileOptions.create(compression=compression, format=format, progress=progress)
    codec = opts.compression or infer_compression(location)
    data_format = opts.format or infer_format(location)

    result = await read(location)
    source = result.source
    if opts.progress and result.size:
        source = Source(_with_progress(source, result.size, source.name), name=source.name)

    logger.debug(
        "Reading data file",
        location=os.fspath(location),
        compression=codec.value,
        format=data_format.value,
    )

    if codec is not Compression.NONE:
        source = merge(source, decompress(codec))  # type: ignore[assignment]
    return merge(source, parser(data_format))  # type: ignore[return-value]
