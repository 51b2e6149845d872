"""
Byte sources for local files and HTTP(S) URLs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os
import httpx

from streamwork.config import get_config
from streamwork.errors import TransportError
from streamwork.stream.roles import Source
from streamwork.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

_DEFAULT_CONNECT_TIMEOUT = 10.0


@dataclass
class ReadResult:
    """An opened byte source.

    Attributes:
        source: Source of raw byte chunks
        size: Total size in bytes, when known
    """

    source: Source[bytes]
    size: int | None = None


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


async def _read_file(path: str, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as file:
        while chunk := await file.read(chunk_size):
            yield chunk


async def _read_response(
    client: httpx.AsyncClient,
    response: httpx.Response,
    chunk_size: int,
) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes(chunk_size):
            yield chunk
    except httpx.HTTPError as e:
        raise TransportError(
            f"Download interrupted: {e}",
            url=str(response.url),
            cause=e,
        ) from e
    finally:
        await response.aclose()
        await client.aclose()


async def _open_file(path: str, chunk_size: int) -> ReadResult:
    try:
        stat = await aiofiles.os.stat(path)
    except OSError as e:
        raise TransportError(f"Cannot open file: {e}", url=path, cause=e) from e

    logger.debug("Reading file", path=path, size=stat.st_size)
    return ReadResult(Source(_read_file(path, chunk_size), name=path), stat.st_size)


async def _open_url(url: str, chunk_size: int, timeout: float) -> ReadResult:
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(timeout, _DEFAULT_CONNECT_TIMEOUT)),
        follow_redirects=True,
    )

    try:
        response = await client.send(client.build_request("GET", url), stream=True)
    except httpx.ConnectError as e:
        await client.aclose()
        raise TransportError(f"Connection failed: {e}", url=url, cause=e) from e
    except httpx.TimeoutException as e:
        await client.aclose()
        raise TransportError(f"Request timed out: {e}", url=url, cause=e) from e
    except httpx.HTTPError as e:
        await client.aclose()
        raise TransportError(f"HTTP error: {e}", url=url, cause=e) from e

    if response.status_code >= 400:
        await response.aclose()
        await client.aclose()
        raise TransportError(
            f"HTTP {response.status_code} while reading {url}",
            url=url,
            status_code=response.status_code,
        )

    length = response.headers.get("content-length")
    size = int(length) if length and length.isdigit() else None
    logger.debug("Reading URL", url=url, status_code=response.status_code, size=size)
    return ReadResult(Source(_read_response(client, response, chunk_size), name=url), size)


async def read(
    location: str | os.PathLike[str],
    *,
    chunk_size: int | None = None,
    timeout: float | None = None,
) -> ReadResult:
    """Open a local file or an HTTP(S) URL as a byte source.

    Args:
        location: File path or ``http://``/``https://`` URL
        chunk_size: Bytes per chunk (default from config)
        timeout: HTTP timeout in seconds (default from config)

    Returns:
        The source and, when known, its size in bytes

    Raises:
        TransportError: If the file cannot be opened, the request fails or
            the server answers with status >= 400

    Example:
        >>> result = await read("https://example.com/data.ndjson")
        >>> result.size
        2048
    """
    config = get_config()
    size = chunk_size or config.read_chunk_size
    location = os.fspath(location)

    if _is_url(location):
        return await _open_url(location, size, timeout or config.http_timeout)
    return await _open_file(location, size)
