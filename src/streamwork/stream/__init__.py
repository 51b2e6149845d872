"""
Stream roles and their composition.

Provides the Source/Transform/Sink roles, adapters from native objects,
pipe/merge/pipeline composition, delimiter splitting and process
transforms.
"""

from streamwork.stream.channel import Channel, EndOfStream
from streamwork.stream.compose import CompositeSink, CompositeTransform, merge, pipe, pipeline
from streamwork.stream.roles import (
    BufferedTransform,
    ConsumerSink,
    FunctionSink,
    FunctionTransform,
    Role,
    RoleKind,
    Sink,
    Source,
    StreamWriterSink,
    Transform,
    WriterSink,
)
from streamwork.stream.spawn import ProcessState, ProcessTransform, spawn_transform
from streamwork.stream.split import ByteSplitter, TextSplitter, as_lines, split
from streamwork.stream.utils import (
    as_bytes,
    flatten,
    from_array,
    from_value,
    pass_through,
    skip_empty_lines,
    to_array,
    to_bytes,
    to_string,
)
from streamwork.stream.wrap import wrap, wrap_sink, wrap_source, wrap_transform

__all__ = [
    "BufferedTransform",
    "ByteSplitter",
    "Channel",
    "CompositeSink",
    "CompositeTransform",
    "ConsumerSink",
    "EndOfStream",
    "FunctionSink",
    "FunctionTransform",
    "ProcessState",
    "ProcessTransform",
    "Role",
    "RoleKind",
    "Sink",
    "Source",
    "StreamWriterSink",
    "TextSplitter",
    "Transform",
    "WriterSink",
    "as_bytes",
    "as_lines",
    "flatten",
    "from_array",
    "from_value",
    "merge",
    "pass_through",
    "pipe",
    "pipeline",
    "skip_empty_lines",
    "spawn_transform",
    "split",
    "to_array",
    "to_bytes",
    "to_string",
    "wrap",
    "wrap_sink",
    "wrap_source",
    "wrap_transform",
]
