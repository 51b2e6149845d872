"""
Runtime configuration for streamwork.

Defaults can be overridden through environment variables or by installing
a custom configuration with set_config().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from streamwork.errors import ValidationError

DEFAULT_BUFFER_SIZE = 16
DEFAULT_SPLIT_BUFFER_SIZE = 16 * 1024 * 1024  # 16 MiB
DEFAULT_READ_CHUNK_SIZE = 64 * 1024
DEFAULT_HTTP_TIMEOUT = 30.0


def _cpu_count() -> int:
    return os.cpu_count() or 1


@dataclass
class StreamConfig:
    """Configuration shared by the streaming primitives.

    Attributes:
        concurrency: Default in-flight limit for for_each_async
        buffer_size: Items buffered on the output side of a transform
        split_buffer_size: Bytes accumulated by the fast splitter before a scan
        read_chunk_size: Bytes requested per read from files and processes
        http_timeout: Timeout for HTTP sources in seconds
    """

    concurrency: int = field(default_factory=_cpu_count)
    buffer_size: int = DEFAULT_BUFFER_SIZE
    split_buffer_size: int = DEFAULT_SPLIT_BUFFER_SIZE
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        for name in ("concurrency", "buffer_size", "split_buffer_size", "read_chunk_size"):
            value = getattr(self, name)
            if value < 1:
                raise ValidationError(
                    f"{name} must be >= 1",
                    field=name,
                    expected=">= 1",
                    actual=value,
                )
        if self.http_timeout <= 0:
            raise ValidationError(
                "http_timeout must be positive",
                field="http_timeout",
                actual=self.http_timeout,
            )

    @classmethod
    def from_env(cls) -> StreamConfig:
        """Create configuration from environment variables."""
        concurrency = int(os.getenv("STREAMWORK_CONCURRENCY", str(_cpu_count())))
        buffer_size = int(os.getenv("STREAMWORK_BUFFER_SIZE", str(DEFAULT_BUFFER_SIZE)))
        split_buffer_size = int(
            os.getenv("STREAMWORK_SPLIT_BUFFER_SIZE", str(DEFAULT_SPLIT_BUFFER_SIZE))
        )
        read_chunk_size = int(
            os.getenv("STREAMWORK_READ_CHUNK_SIZE", str(DEFAULT_READ_CHUNK_SIZE))
        )
        timeout_str = os.getenv("STREAMWORK_HTTP_TIMEOUT_SECS")
        http_timeout = float(timeout_str) if timeout_str else DEFAULT_HTTP_TIMEOUT

        return cls(
            concurrency=concurrency,
            buffer_size=buffer_size,
            split_buffer_size=split_buffer_size,
            read_chunk_size=read_chunk_size,
            http_timeout=http_timeout,
        )


_config: StreamConfig | None = None


def get_config() -> StreamConfig:
    """Get the active configuration, loading it from the environment once."""
    global _config
    if _config is None:
        _config = StreamConfig.from_env()
    return _config


def set_config(config: StreamConfig | None) -> None:
    """Install a configuration; None reloads from the environment on next use."""
    global _config
    _config = config
