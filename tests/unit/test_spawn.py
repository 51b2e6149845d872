"""Tests for process transforms."""

import asyncio
from contextlib import aclosing

import pytest

from streamwork.errors import (
    CompositionError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessStderrError,
)
from streamwork.stream import (
    ProcessState,
    from_array,
    merge,
    pipe,
    spawn_transform,
    to_array,
    to_bytes,
)

pytestmark = pytest.mark.posix


async def endless(chunk: bytes):
    while True:
        yield chunk
        await asyncio.sleep(0)


class TestProcessTransform:
    """Tests for ProcessTransform."""

    @pytest.mark.asyncio
    async def test_cat_round_trip(self, require_binary) -> None:
        """Test bytes pass through cat unchanged."""
        require_binary("cat")
        data = [bytes(range(256)), b"\x00\xff" * 1000, b"tail"]

        output = await to_bytes(pipe(from_array(data), spawn_transform("cat")))

        assert output == b"".join(data)

    @pytest.mark.asyncio
    async def test_str_input_is_utf8(self, require_binary) -> None:
        """Test text input is encoded as UTF-8."""
        require_binary("cat")
        output = await to_bytes(pipe(from_array(["héllo"]), spawn_transform("cat")))
        assert output == "héllo".encode()

    @pytest.mark.asyncio
    async def test_state_transitions(self, require_binary) -> None:
        """Test the process state across a successful run."""
        require_binary("cat")
        transform = spawn_transform("cat")
        await asyncio.sleep(0.05)
        assert transform.state is ProcessState.RUNNING
        assert transform.pid is not None

        await to_array(pipe(from_array([b"x"]), transform))

        assert transform.state is ProcessState.CLOSED
        assert transform.returncode == 0

    @pytest.mark.asyncio
    async def test_created_outside_loop(self, require_binary) -> None:
        """Test a transform built without a running loop spawns on first use."""
        require_binary("cat")
        transform = await asyncio.to_thread(spawn_transform, "cat")
        assert transform.state is ProcessState.CREATED

        output = await to_bytes(pipe(from_array([b"lazy"]), transform))

        assert output == b"lazy"

    @pytest.mark.asyncio
    async def test_head_stops_early(self, require_binary) -> None:
        """Test a process exiting before the end of input ends the output."""
        require_binary("head")
        transform = pipe(endless(b"0123456789"), spawn_transform("head", ["-c", "8"]))

        output = await asyncio.wait_for(to_bytes(transform), timeout=5)

        assert output == b"01234567"

    @pytest.mark.asyncio
    async def test_no_input(self, require_binary) -> None:
        """Test a process producing output without any input."""
        require_binary("sh")
        transform = spawn_transform("sh", ["-c", "printf hello"])

        output = await asyncio.wait_for(to_bytes(transform), timeout=5)

        assert output == b"hello"

    @pytest.mark.asyncio
    async def test_stdin_backpressure(self, require_binary) -> None:
        """Test writes suspend on stdin while nobody reads the output."""
        require_binary("cat")
        transform = spawn_transform("cat", buffer_size=1)
        chunk = b"x" * 65536
        accepted = 0

        async def produce() -> None:
            nonlocal accepted
            for _ in range(64):
                await transform.write(chunk)
                accepted += 1
            await transform.end()

        producer = asyncio.create_task(produce())
        await asyncio.sleep(0.3)
        assert accepted < 64
        assert not producer.done()

        output = await asyncio.wait_for(to_bytes(transform), timeout=10)
        await producer
        assert len(output) == 64 * len(chunk)
        assert accepted == 64

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_kills_process(self, require_binary) -> None:
        """Test breaking out of the output kills the process and stops the input."""
        require_binary("cat")
        transform = spawn_transform("cat")
        output = pipe(from_array([b"x" * 65536] * 200), transform)

        async with aclosing(output.__aiter__()) as chunks:
            async for _ in chunks:
                break

        for _ in range(100):
            if transform.returncode is not None:
                break
            await asyncio.sleep(0.01)
        assert transform.returncode is not None
        assert transform.state is ProcessState.FAILED
        assert isinstance(transform.error, CompositionError)


class TestProcessFailures:
    """Tests for the terminal process errors."""

    @pytest.mark.asyncio
    async def test_missing_executable(self) -> None:
        """Test a missing binary fails with a spawn error."""
        transform = pipe(from_array([b"x"]), spawn_transform("streamwork-no-such-binary"))

        with pytest.raises(ProcessSpawnError) as exc_info:
            await to_array(transform)

        assert 'Failed to execute command "streamwork-no-such-binary"' in str(exc_info.value)
        assert isinstance(exc_info.value, CompositionError)
        assert transform.state is ProcessState.FAILED

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, require_binary) -> None:
        """Test a non-zero exit status fails the transform."""
        require_binary("sh")
        transform = pipe(from_array([b"ignored"]), spawn_transform("sh", ["-c", "cat > /dev/null; exit 3"]))

        with pytest.raises(ProcessExitError) as exc_info:
            await to_array(transform)

        assert exc_info.value.returncode == 3
        assert "Process exited with code 3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_stderr_output(self, require_binary) -> None:
        """Test output on stderr fails the transform."""
        require_binary("sh")
        transform = spawn_transform("sh", ["-c", "echo oops >&2; exec sleep 5"])

        with pytest.raises(ProcessStderrError) as exc_info:
            await asyncio.wait_for(to_array(transform), timeout=5)

        assert "Process stderr: oops" in str(exc_info.value)
        assert exc_info.value.stderr.strip() == "oops"

    @pytest.mark.asyncio
    async def test_failure_kills_process(self, require_binary) -> None:
        """Test a failed transform kills its process."""
        require_binary("sleep")
        transform = spawn_transform("sleep", ["30"])
        await asyncio.sleep(0.05)

        transform.fail(RuntimeError("stop"))
        output = asyncio.create_task(to_array(transform))
        with pytest.raises(RuntimeError):
            await output

        for _ in range(100):
            if transform.returncode is not None:
                break
            await asyncio.sleep(0.01)
        assert transform.returncode is not None
        assert transform.state is ProcessState.FAILED

    @pytest.mark.asyncio
    async def test_error_reported_once(self, require_binary) -> None:
        """Test the first terminal error is kept."""
        require_binary("sh")
        transform = spawn_transform("sh", ["-c", "echo bad >&2; exit 4"])

        with pytest.raises(ProcessStderrError):
            await asyncio.wait_for(to_array(transform), timeout=5)

        await asyncio.sleep(0.05)
        assert isinstance(transform.error, ProcessStderrError)

    @pytest.mark.asyncio
    async def test_failure_inside_merge(self, require_binary) -> None:
        """Test a process failure surfaces through a merged source."""
        require_binary("sh")
        merged = merge(from_array([b"data"]), spawn_transform("sh", ["-c", "cat > /dev/null; exit 1"]))

        with pytest.raises(ProcessExitError):
            await asyncio.wait_for(to_bytes(merged), timeout=5)
