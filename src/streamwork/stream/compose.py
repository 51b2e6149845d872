"""
Composition of stream roles.

pipe() connects two roles, merge() connects them and presents the pair as a
single role, pipeline() connects a whole chain and waits for it to finish.
"""

from __future__ import annotations

import uuid
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from streamwork.errors import CompositionError
from streamwork.stream.roles import Role, RoleKind, Sink, Source, Transform
from streamwork.stream.wrap import wrap, wrap_sink, wrap_source, wrap_transform
from streamwork.telemetry import LogContext, get_log_context, get_logger, set_log_context

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = get_logger(__name__)

_PIPEABLE = {
    (RoleKind.SOURCE, RoleKind.TRANSFORM),
    (RoleKind.SOURCE, RoleKind.SINK),
    (RoleKind.TRANSFORM, RoleKind.TRANSFORM),
    (RoleKind.TRANSFORM, RoleKind.SINK),
}


def pipe(upstream: Any, downstream: Any) -> Any:
    """Connect ``upstream`` to ``downstream`` and return the downstream role.

    Data starts flowing once the downstream role is iterated, written or
    awaited. A failure on either side fails the downstream role and
    destroys the upstream one.

    Raises:
        CompositionError: If the pair cannot be connected, or the downstream
            role is already connected
    """
    source, target = wrap(upstream), wrap(downstream)
    if (source.kind, target.kind) not in _PIPEABLE:
        raise CompositionError(
            f"cannot pipe a {source.kind.value} into a {target.kind.value}",
            operator="pipe",
        )
    target._attach(source)  # type: ignore[attr-defined]
    logger.debug("Roles piped", upstream=source.name, downstream=target.name)
    return target


class CompositeTransform(Transform[Any, Any]):
    """Two connected transforms presented as one.

    Writes go to the head, reads come from the tail.
    """

    def __init__(self, head: Transform[Any, Any], tail: Transform[Any, Any]) -> None:
        self._head = head
        self._tail = tail
        self.name = f"{head.name}+{tail.name}"

    @property
    def head(self) -> Transform[Any, Any]:
        return self._head

    @property
    def tail(self) -> Transform[Any, Any]:
        return self._tail

    @property
    def error(self) -> BaseException | None:
        return self._tail.error or self._head.error

    async def write(self, item: Any) -> None:
        self._start()
        self._tail._start()
        await self._head.write(item)

    async def end(self) -> None:
        self._start()
        self._tail._start()
        await self._head.end()

    def fail(self, error: BaseException) -> None:
        self._head.fail(error)
        self._tail.fail(error)

    def destroy(self, error: BaseException | None = None) -> None:
        self._head.destroy(error)
        self._tail.destroy(error)
        self._stop_pump()

    async def __aiter__(self) -> AsyncIterator[Any]:
        self._start()
        drained = False
        try:
            async with aclosing(self._tail.__aiter__()) as items:  # type: ignore[type-var]
                async for item in items:
                    yield item
            drained = True
        finally:
            if not drained:
                self.destroy()


class CompositeSink(Sink[Any]):
    """A transform feeding a sink, presented as one sink."""

    def __init__(self, head: Transform[Any, Any], tail: Sink[Any]) -> None:
        self._head = head
        self._tail = tail
        self.name = f"{head.name}+{tail.name}"

    async def write(self, item: Any) -> None:
        self._start()
        self._tail._start()
        await self._head.write(item)

    async def end(self) -> None:
        self._start()
        self._tail._start()
        await self._head.end()

    async def wait(self) -> None:
        self._start()
        self._tail._start()
        await self._tail.wait()

    def fail(self, error: BaseException) -> None:
        self._head.fail(error)
        self._tail.fail(error)

    def destroy(self, error: BaseException | None = None) -> None:
        self._head.destroy(error)
        self._tail.destroy(error)
        self._stop_pump()


_MERGERS: dict[tuple[RoleKind, RoleKind], Callable[[Any, Any], Role]] = {
    (RoleKind.SOURCE, RoleKind.TRANSFORM): lambda head, tail: Source(tail, name=f"{head.name}+{tail.name}"),
    (RoleKind.TRANSFORM, RoleKind.TRANSFORM): CompositeTransform,
    (RoleKind.TRANSFORM, RoleKind.SINK): CompositeSink,
}


def merge(first: Any, second: Any) -> Role:
    """Connect two roles and return them as a single role.

    - Source + Transform gives a Source producing the transform's output
    - Transform + Transform gives a Transform
    - Transform + Sink gives a Sink

    Raises:
        CompositionError: For any other pair
    """
    head, tail = wrap(first), wrap(second)
    merger = _MERGERS.get((head.kind, tail.kind))
    if merger is None:
        raise CompositionError(
            f"cannot merge a {head.kind.value} with a {tail.kind.value}",
            operator="merge",
        )
    pipe(head, tail)
    return merger(head, tail)


async def pipeline(source: Any, *stages: Any) -> None:
    """Connect ``source`` through every stage and wait for the last one.

    The last stage is wrapped as a sink, the ones in between as transforms.

    Example:
        >>> await pipeline(open("data.txt", "rb"), split(), parse_row, store_row)

    Raises:
        CompositionError: If no sink is given
        Exception: The first error raised anywhere in the chain
    """
    if not stages:
        raise CompositionError("pipeline needs at least a sink", operator="pipeline")

    # pump tasks copy this context, so their records carry the pipeline id
    previous = get_log_context()
    set_log_context(LogContext(pipeline_id=uuid.uuid4().hex[:12], extra=previous.extra))
    try:
        *transforms, last = stages
        current: Role = wrap_source(source)
        for stage in transforms:
            current = pipe(current, wrap_transform(stage))
        sink = pipe(current, wrap_sink(last))
        logger.debug("Pipeline started", stages=len(stages) + 1)
        await sink.wait()
    finally:
        set_log_context(previous)
