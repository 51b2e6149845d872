"""异步流处理原语：有界并发执行、可组合的流角色与外部进程变换。

streamwork: composable async streaming primitives.

Bounded-concurrency execution, Source/Transform/Sink roles with
backpressure, delimiter splitting and external processes as transforms.
"""
from __future__ import annotations

from streamwork.concurrency import TaskPool, for_each_async, map_async
from streamwork.config import StreamConfig, get_config, set_config
from streamwork.errors import (
    CompositionError,
    FormatError,
    ProcessError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessStderrError,
    StreamError,
    TransportError,
    ValidationError,
)
from streamwork.io import compress, decompress, parser, read, read_data_file
from streamwork.stream import (
    RoleKind,
    Sink,
    Source,
    Transform,
    as_lines,
    from_array,
    from_value,
    merge,
    pipe,
    pipeline,
    spawn_transform,
    split,
    to_array,
    to_bytes,
    to_string,
    wrap,
    wrap_sink,
    wrap_source,
    wrap_transform,
)

__version__ = "0.1.0"

__all__ = [
    # Concurrency
    "TaskPool",
    "for_each_async",
    "map_async",
    # Config
    "StreamConfig",
    "get_config",
    "set_config",
    # Errors
    "CompositionError",
    "FormatError",
    "ProcessError",
    "ProcessExitError",
    "ProcessSpawnError",
    "ProcessStderrError",
    "StreamError",
    "TransportError",
    "ValidationError",
    # Roles
    "RoleKind",
    "Sink",
    "Source",
    "Transform",
    "wrap",
    "wrap_sink",
    "wrap_source",
    "wrap_transform",
    # Composition
    "merge",
    "pipe",
    "pipeline",
    # Transforms
    "as_lines",
    "spawn_transform",
    "split",
    # Helpers
    "from_array",
    "from_value",
    "to_array",
    "to_bytes",
    "to_string",
    # IO
    "compress",
    "decompress",
    "parser",
    "read",
    "read_data_file",
    # Version
    "__version__",
]
