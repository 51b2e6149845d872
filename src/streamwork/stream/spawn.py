"""
External process as a bytes-to-bytes transform.

Input chunks go to the child's stdin, stdout chunks come out unchanged. Any
stderr output, a non-zero exit status or a failed launch fails the
transform, and a failed transform kills its process.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import TYPE_CHECKING, Any

from streamwork.config import get_config
from streamwork.errors import ProcessExitError, ProcessSpawnError, ProcessStderrError
from streamwork.stream.roles import BufferedTransform
from streamwork.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

_PIPE_ERRORS = (BrokenPipeError, ConnectionResetError)


class ProcessState(str, Enum):
    """Lifecycle of a ProcessTransform."""

    CREATED = "created"
    RUNNING = "running"
    CLOSED = "closed"
    FAILED = "failed"


class ProcessTransform(BufferedTransform[Any, bytes]):
    """Transform backed by a child process.

    The process is started as soon as the transform is created inside a
    running event loop, otherwise on first use. Output ends once the
    process exited with status 0 and its stdout was drained, even if the
    process stopped before all input was written (``head -c 8``).
    """

    def __init__(
        self,
        command: str,
        args: Sequence[Any] = (),
        *,
        chunk_size: int | None = None,
        buffer_size: int | None = None,
    ) -> None:
        super().__init__(buffer_size=buffer_size, name=command)
        self._command = command
        self._args = tuple(str(arg) for arg in args)
        self._chunk_size = chunk_size or get_config().read_chunk_size

        self._state = ProcessState.CREATED
        self._process: asyncio.subprocess.Process | None = None
        self._spawn_task: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._stdin_open = True

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._ensure_spawned()

    @property
    def command(self) -> str:
        return self._command

    @property
    def args(self) -> tuple[str, ...]:
        return self._args

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    def _create_task(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _ensure_spawned(self) -> asyncio.Task[None]:
        if self._spawn_task is None:
            self._spawn_task = self._create_task(self._spawn())
        return self._spawn_task

    def _start(self) -> None:
        super()._start()
        self._ensure_spawned()

    async def _spawn(self) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self._command,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.fail(ProcessSpawnError(self._command, self._args, cause=e))
            return

        self._process = process
        if self._state is ProcessState.CREATED:
            self._state = ProcessState.RUNNING
        logger.debug("Process started", command=self._command, pid=process.pid)

        assert process.stdout is not None and process.stderr is not None
        readers = (
            self._create_task(self._read_stdout(process.stdout)),
            self._create_task(self._read_stderr(process.stderr)),
        )
        self._watcher = self._create_task(self._watch(process, readers))

        if self._error is not None:
            self._kill()

    async def _ready(self) -> asyncio.subprocess.Process:
        await asyncio.shield(self._ensure_spawned())
        if self._error is not None:
            raise self._error
        assert self._process is not None
        return self._process

    async def _read_stdout(self, stream: asyncio.StreamReader) -> None:
        try:
            while chunk := await stream.read(self._chunk_size):
                await self.push(chunk)
        except Exception as e:
            self.fail(e)

    async def _read_stderr(self, stream: asyncio.StreamReader) -> None:
        chunk = await stream.read(self._chunk_size)
        if chunk:
            self.fail(
                ProcessStderrError(
                    self._command,
                    chunk.decode("utf-8", errors="replace"),
                    self._args,
                )
            )

    async def _watch(self, process: asyncio.subprocess.Process, readers: Sequence[asyncio.Task[None]]) -> None:
        await asyncio.gather(*readers, return_exceptions=True)
        returncode = await process.wait()

        if self._error is not None:
            return
        if returncode != 0:
            self.fail(ProcessExitError(self._command, returncode, self._args))
            return

        self._state = ProcessState.CLOSED
        self._output.close()
        logger.debug("Process exited", command=self._command, pid=process.pid)

        if not self._input_ended:
            # the process is done with its input; stop pulling from upstream
            self._stop_pump()
            if self._upstream is not None:
                self._upstream.destroy()

    async def _transform(self, item: Any) -> None:
        process = await self._ready()
        if not self._stdin_open or process.returncode is not None:
            return
        data = item.encode("utf-8") if isinstance(item, str) else bytes(item)

        assert process.stdin is not None
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except _PIPE_ERRORS:
            self._stdin_open = False
            logger.debug("Process stopped reading input", command=self._command)

    async def _flush(self) -> None:
        process = await self._ready()
        if self._stdin_open:
            self._stdin_open = False
            assert process.stdin is not None
            with contextlib.suppress(*_PIPE_ERRORS):
                process.stdin.close()
                await process.stdin.wait_closed()

        assert self._watcher is not None
        await asyncio.shield(self._watcher)
        if self._error is not None:
            raise self._error

    def _on_fail(self, error: BaseException) -> None:
        self._state = ProcessState.FAILED
        logger.warning("Process failed", command=self._command, error=str(error))
        self._kill()

    def _kill(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()


def spawn_transform(
    command: str,
    args: Sequence[Any] = (),
    *,
    chunk_size: int | None = None,
    buffer_size: int | None = None,
) -> ProcessTransform:
    """Run ``command`` as a transform from stdin to stdout.

    Example:
        >>> first_bytes = pipe(source, spawn_transform("head", ["-c", "8"]))
    """
    return ProcessTransform(command, args, chunk_size=chunk_size, buffer_size=buffer_size)
