"""错误基类：为流处理原语提供分层错误体系和结构化错误上下文。

Base error classes for streamwork.

Provides a layered error hierarchy:
- StreamError: Base class for all library errors
- CompositionError: A role failed after construction, or an invalid composition
- ValidationError: Invalid arguments or configuration
- ProcessError: External process failures (spawn, exit code, stderr)
- TransportError: HTTP/file acquisition errors
- FormatError: Record parsing errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'options.compression')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'composition', 'process', 'transport')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class StreamError(Exception):
    """Base class for all streamwork errors.

    All errors from this library inherit from this class, making it easy
    to catch all library errors with a single except clause.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> StreamError:
        """Add a hint to this error."""
        self.context.hint = hint
        self.args = (self._format_message(),)
        return self


class CompositionError(StreamError):
    """Error raised by a stream role or by the composition operators.

    Raised when:
    - Two roles cannot be combined by pipe/merge
    - A role already has an upstream
    - Data is written after end of input
    - A splitter is built with an unsupported delimiter
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        operator: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="composition")
        if operator:
            ctx.details["operator"] = operator
        super().__init__(message, ctx)
        self.operator = operator


class ValidationError(StreamError):
    """Validation error for arguments or configuration.

    Raised when:
    - A concurrency limit is below 1
    - An unknown compression or format name is requested
    - Data file options fail validation
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if expected is not None:
            ctx.details["expected"] = expected
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.expected = expected
        self.actual = actual


class ProcessError(CompositionError):
    """Terminal failure of an external process wrapped as a Transform.

    A process transform raises exactly one of the subclasses below,
    whichever condition is observed first.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        args: list[str] | None = None,
    ) -> None:
        ctx = ErrorContext(source="process")
        ctx.details["command"] = command
        if args:
            ctx.details["args"] = list(args)
        super().__init__(message, ctx, operator="spawn")
        self.command = command
        self.command_args = list(args or [])


class ProcessSpawnError(ProcessError):
    """The executable could not be started (e.g., not found)."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        reason = str(cause) if cause is not None else "unknown error"
        super().__init__(
            f'Failed to execute command "{command}": {reason}',
            command=command,
            args=args,
        )
        self.__cause__ = cause


class ProcessExitError(ProcessError):
    """The process exited with a non-zero code."""

    def __init__(
        self,
        command: str,
        returncode: int,
        args: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"Process exited with code {returncode}",
            command=command,
            args=args,
        )
        self.context.details["returncode"] = returncode
        self.returncode = returncode


class ProcessStderrError(ProcessError):
    """The process wrote to its standard error."""

    def __init__(
        self,
        command: str,
        stderr: str,
        args: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"Process stderr: {stderr}",
            command=command,
            args=args,
        )
        self.stderr = stderr


class TransportError(StreamError):
    """Error while acquiring a source.

    Raised when:
    - Network connection failure
    - HTTP error status
    - Local file cannot be opened
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        if status_code:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.url = url
        self.status_code = status_code
        self.__cause__ = cause


class FormatError(StreamError):
    """A record could not be parsed in the requested format."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        format: str | None = None,
        record: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="parser")
        if format:
            ctx.details["format"] = format
        if record is not None:
            ctx.details["record"] = record[:200]
        super().__init__(message, ctx)
        self.format = format
        self.record = record
