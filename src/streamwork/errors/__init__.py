"""错误体系：流处理原语的结构化错误类型。

Error hierarchy for streamwork.
"""

from streamwork.errors.base import (
    CompositionError,
    ErrorContext,
    FormatError,
    ProcessError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessStderrError,
    StreamError,
    TransportError,
    ValidationError,
)

__all__ = [
    "CompositionError",
    "ErrorContext",
    "FormatError",
    "ProcessError",
    "ProcessExitError",
    "ProcessSpawnError",
    "ProcessStderrError",
    "StreamError",
    "TransportError",
    "ValidationError",
]
