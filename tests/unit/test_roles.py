"""Tests for stream roles and the flow-controlled channel."""

import asyncio
import io
from contextlib import aclosing

import pytest

from streamwork.errors import CompositionError
from streamwork.stream import (
    Channel,
    EndOfStream,
    FunctionSink,
    FunctionTransform,
    RoleKind,
    Source,
    WriterSink,
    from_array,
    pipe,
    to_array,
)
from streamwork.stream.roles import _Inlet


async def agen(items):
    for item in items:
        yield item


async def feed(transform, items) -> None:
    for item in items:
        await transform.write(item)
    await transform.end()


class TestChannel:
    """Tests for Channel."""

    @pytest.mark.asyncio
    async def test_delivers_in_order_then_ends(self) -> None:
        """Test buffered items are delivered before end of stream."""
        channel: Channel[int] = Channel(4)
        await channel.put(1)
        await channel.put(2)
        channel.close()

        assert await channel.get() == 1
        assert await channel.get() == 2
        with pytest.raises(EndOfStream):
            await channel.get()

    @pytest.mark.asyncio
    async def test_error_after_buffered_items(self) -> None:
        """Test the close error is raised once the buffer is drained."""
        channel: Channel[int] = Channel(4)
        error = RuntimeError("failed")
        await channel.put(1)
        channel.close(error)

        assert await channel.get() == 1
        with pytest.raises(RuntimeError) as exc_info:
            await channel.get()
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_first_close_wins(self) -> None:
        """Test a second close does not replace the first outcome."""
        channel: Channel[int] = Channel(1)
        channel.close()
        channel.close(ValueError("late"))

        assert channel.error is None
        with pytest.raises(EndOfStream):
            await channel.get()

    @pytest.mark.asyncio
    async def test_put_blocks_at_high_water_mark(self) -> None:
        """Test put suspends while the buffer is full."""
        channel: Channel[int] = Channel(2)
        await channel.put(1)
        await channel.put(2)

        blocked = asyncio.create_task(channel.put(3))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        assert await channel.get() == 1
        await asyncio.wait_for(blocked, timeout=1)
        assert len(channel) == 2

    @pytest.mark.asyncio
    async def test_put_after_close(self) -> None:
        """Test writing into a closed channel fails."""
        channel: Channel[int] = Channel(1)
        channel.close()

        with pytest.raises(CompositionError):
            await channel.put(1)


class TestFunctionTransform:
    """Tests for FunctionTransform."""

    @pytest.mark.asyncio
    async def test_maps_items(self) -> None:
        """Test a sync function is applied to every item."""
        transform = FunctionTransform(lambda x: x * 2)
        producer = asyncio.create_task(feed(transform, [1, 2, 3]))

        assert await to_array(transform) == [2, 4, 6]
        await producer

    @pytest.mark.asyncio
    async def test_async_function(self) -> None:
        """Test coroutine functions are awaited."""

        async def upper(text: str) -> str:
            await asyncio.sleep(0)
            return text.upper()

        transform = FunctionTransform(upper)
        producer = asyncio.create_task(feed(transform, ["a", "b"]))

        assert await to_array(transform) == ["A", "B"]
        await producer

    @pytest.mark.asyncio
    async def test_none_result_filters(self) -> None:
        """Test a None result emits nothing."""
        transform = FunctionTransform(lambda x: x if x % 2 else None)
        producer = asyncio.create_task(feed(transform, range(6)))

        assert await to_array(transform) == [1, 3, 5]
        await producer

    @pytest.mark.asyncio
    async def test_write_after_end(self) -> None:
        """Test writing after end of input fails."""
        transform = FunctionTransform(lambda x: x)
        await transform.end()

        with pytest.raises(CompositionError):
            await transform.write(1)

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self) -> None:
        """Test ending twice is harmless."""
        transform = FunctionTransform(lambda x: x)
        await transform.end()
        await transform.end()

        assert await to_array(transform) == []

    @pytest.mark.asyncio
    async def test_function_error_fails_transform(self) -> None:
        """Test a raising function fails the transform with that error."""
        error = ValueError("bad")

        def boom(x: int) -> int:
            raise error

        transform = FunctionTransform(boom)
        with pytest.raises(ValueError):
            await transform.write(1)

        assert transform.error is error
        with pytest.raises(ValueError) as exc_info:
            await to_array(transform)
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_first_failure_wins(self) -> None:
        """Test later failures are ignored."""
        transform = FunctionTransform(lambda x: x)
        first = RuntimeError("first")
        transform.fail(first)
        transform.fail(RuntimeError("second"))

        assert transform.error is first

    @pytest.mark.asyncio
    async def test_backpressure(self) -> None:
        """Test writes suspend while the output buffer is full."""
        transform = FunctionTransform(lambda x: x, buffer_size=2)
        written = 0

        async def produce() -> None:
            nonlocal written
            for i in range(10):
                await transform.write(i)
                written += 1
            await transform.end()

        producer = asyncio.create_task(produce())
        await asyncio.sleep(0.01)
        assert written == 2

        assert await to_array(transform) == list(range(10))
        await producer
        assert written == 10


class TestSource:
    """Tests for Source."""

    @pytest.mark.asyncio
    async def test_kind(self) -> None:
        """Test the role tag."""
        assert from_array([1]).kind is RoleKind.SOURCE

    @pytest.mark.asyncio
    async def test_single_use(self) -> None:
        """Test iterating a consumed source raises instead of yielding nothing."""
        source = Source(agen([1, 2]))

        assert await to_array(source) == [1, 2]
        with pytest.raises(CompositionError, match="already consumed"):
            await to_array(source)

    @pytest.mark.asyncio
    async def test_destroyed_source_raises(self) -> None:
        """Test iterating a destroyed source raises the destroy error."""
        source = Source(agen([1, 2]))
        error = RuntimeError("gone")
        source.destroy(error)

        with pytest.raises(RuntimeError, match="gone"):
            await to_array(source)

    @pytest.mark.asyncio
    async def test_lazy(self) -> None:
        """Test nothing is pulled before iteration."""
        pulled = []

        async def tracked():
            for i in range(3):
                pulled.append(i)
                yield i

        source = Source(tracked())
        transform = pipe(source, FunctionTransform(lambda x: x))
        await asyncio.sleep(0.01)
        assert pulled == []

        assert await to_array(transform) == [0, 1, 2]


class TestPipe:
    """Tests for piping roles together."""

    @pytest.mark.asyncio
    async def test_source_through_transform(self) -> None:
        """Test items flow through a piped transform."""
        transform = pipe(from_array([1, 2, 3]), FunctionTransform(lambda x: x + 1))
        assert await to_array(transform) == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_second_upstream_rejected(self) -> None:
        """Test a role accepts only one upstream."""
        transform = FunctionTransform(lambda x: x)
        pipe(from_array([1]), transform)

        with pytest.raises(CompositionError):
            pipe(from_array([2]), transform)

    @pytest.mark.asyncio
    async def test_transform_error_reaches_consumer(self) -> None:
        """Test a failing transform surfaces its error downstream."""

        def fail_on_two(x: int) -> int:
            if x == 2:
                raise ValueError("two")
            return x

        first = pipe(from_array([1, 2, 3]), FunctionTransform(fail_on_two))
        second = pipe(first, FunctionTransform(lambda x: x * 10))

        seen = []
        with pytest.raises(ValueError, match="two"):
            async for item in second:
                seen.append(item)
        assert seen == [10]

    @pytest.mark.asyncio
    async def test_downstream_failure_destroys_upstream(self) -> None:
        """Test a failing consumer tears down the transform feeding it."""
        upstream = pipe(from_array(range(100)), FunctionTransform(lambda x: x))

        def boom(x: int) -> None:
            raise RuntimeError("sink failed")

        sink = pipe(upstream, FunctionSink(boom))
        with pytest.raises(RuntimeError):
            await sink

        assert upstream.error is not None

    @pytest.mark.asyncio
    async def test_sink_cannot_be_piped_from(self) -> None:
        """Test a sink has no output to pipe."""
        with pytest.raises(CompositionError):
            pipe(FunctionSink(print), FunctionTransform(lambda x: x))

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_tears_down_chain(self) -> None:
        """Test breaking out of iteration destroys the transform and its upstream."""
        finished = asyncio.Event()

        async def endless():
            try:
                i = 0
                while True:
                    yield i
                    i += 1
            finally:
                finished.set()

        transform = pipe(Source(endless()), FunctionTransform(lambda x: x, buffer_size=1))
        async with aclosing(transform.__aiter__()) as items:
            async for item in items:
                assert item == 0
                break

        await asyncio.wait_for(finished.wait(), timeout=1)
        assert isinstance(transform.error, CompositionError)
        assert transform.ended

    @pytest.mark.asyncio
    async def test_full_iteration_does_not_destroy(self) -> None:
        """Test a transform iterated to its end keeps no error."""
        transform = pipe(from_array([1, 2]), FunctionTransform(lambda x: x))
        async with aclosing(transform.__aiter__()) as items:
            assert [item async for item in items] == [1, 2]
        assert transform.error is None

    def test_inlet_hooks_are_abstract(self) -> None:
        """Test an inlet without write, end and fail cannot be created."""

        class Incomplete(_Inlet):
            name = "incomplete"

        with pytest.raises(TypeError):
            Incomplete()


class TestSinks:
    """Tests for sinks."""

    @pytest.mark.asyncio
    async def test_function_sink(self) -> None:
        """Test a function sink consumes everything and completes."""
        collected = []
        sink = pipe(from_array(["a", "b"]), FunctionSink(collected.append))

        await sink

        assert collected == ["a", "b"]

    @pytest.mark.asyncio
    async def test_wait_is_repeatable(self) -> None:
        """Test the completion signal can be awaited more than once."""
        sink = pipe(from_array([1]), FunctionSink(lambda x: None))
        await sink.wait()
        await sink.wait()

    @pytest.mark.asyncio
    async def test_writer_sink(self) -> None:
        """Test bytes are written to a file-like object."""
        buffer = io.BytesIO()
        sink = pipe(from_array([b"hello ", b"world"]), WriterSink(buffer))

        await sink

        assert buffer.getvalue() == b"hello world"

    @pytest.mark.asyncio
    async def test_manual_write_and_end(self) -> None:
        """Test a sink can be driven without an upstream."""
        collected = []
        sink = FunctionSink(collected.append)
        await sink.write(1)
        await sink.write(2)
        await sink.end()

        await sink
        assert collected == [1, 2]
