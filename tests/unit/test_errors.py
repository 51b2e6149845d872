"""Tests for error module."""

from streamwork.errors import (
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


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_empty_context(self) -> None:
        """Test empty context string representation."""
        assert str(ErrorContext()) == ""

    def test_context_with_source(self) -> None:
        """Test context with source."""
        assert "[process]" in str(ErrorContext(source="process"))

    def test_context_with_field_path(self) -> None:
        """Test context with field path."""
        ctx = ErrorContext(field_path="options.compression")
        assert "at 'options.compression'" in str(ctx)

    def test_context_with_hint(self) -> None:
        """Test context with hint."""
        ctx = ErrorContext(hint="Install zstd")
        assert "(hint: Install zstd)" in str(ctx)


class TestStreamError:
    """Tests for base error class."""

    def test_basic_error(self) -> None:
        """Test basic error creation."""
        error = StreamError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_with_hint(self) -> None:
        """Test adding a hint updates the message."""
        error = StreamError("Missing tool").with_hint("Install lz4")
        assert "(hint: Install lz4)" in str(error)

    def test_hierarchy(self) -> None:
        """Test every error derives from StreamError."""
        for cls in (CompositionError, ValidationError, TransportError, FormatError):
            assert issubclass(cls, StreamError)
        assert issubclass(ProcessError, CompositionError)


class TestCompositionError:
    """Tests for CompositionError."""

    def test_operator(self) -> None:
        """Test the operator is recorded."""
        error = CompositionError("cannot merge", operator="merge")
        assert error.operator == "merge"
        assert error.context.details["operator"] == "merge"
        assert "[composition]" in str(error)


class TestValidationError:
    """Tests for ValidationError."""

    def test_fields(self) -> None:
        """Test expected and actual values are recorded."""
        error = ValidationError("bad", field="concurrency", expected=">= 1", actual=0)
        assert error.field == "concurrency"
        assert error.expected == ">= 1"
        assert error.actual == 0
        assert error.context.details == {"expected": ">= 1", "actual": 0}


class TestProcessErrors:
    """Tests for process errors."""

    def test_spawn_error_message(self) -> None:
        """Test the spawn error names the command and keeps the cause."""
        cause = FileNotFoundError(2, "No such file or directory")
        error = ProcessSpawnError("zstd", ["-d"], cause=cause)

        assert error.message.startswith('Failed to execute command "zstd"')
        assert error.__cause__ is cause
        assert error.command == "zstd"
        assert error.command_args == ["-d"]

    def test_exit_error(self) -> None:
        """Test the exit error message and code."""
        error = ProcessExitError("sh", 3)
        assert error.message == "Process exited with code 3"
        assert error.returncode == 3
        assert error.context.details["returncode"] == 3

    def test_stderr_error(self) -> None:
        """Test the stderr error message."""
        error = ProcessStderrError("gzip", "gzip: stdin: not in gzip format")
        assert error.message == "Process stderr: gzip: stdin: not in gzip format"
        assert error.stderr == "gzip: stdin: not in gzip format"


class TestTransportError:
    """Tests for TransportError."""

    def test_status_code(self) -> None:
        """Test URL and status are recorded."""
        error = TransportError("HTTP 404", url="https://example.com/x", status_code=404)
        assert error.status_code == 404
        assert error.context.details["url"] == "https://example.com/x"


class TestFormatError:
    """Tests for FormatError."""

    def test_record_is_truncated(self) -> None:
        """Test long records are shortened in the context."""
        error = FormatError("bad json", format="ndjson", record="x" * 500)
        assert error.record == "x" * 500
        assert len(error.context.details["record"]) == 200
