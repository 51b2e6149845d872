#!/usr/bin/env python3
"""
External process example.

This example streams data through OS processes: `sort` orders the
lines and `gzip` compresses them, both without loading the whole input.

Usage:
    python examples/processes.py
"""

import asyncio

from streamwork import ProcessExitError, from_array, merge, spawn_transform, split, to_array, to_bytes


async def main() -> None:
    """Run process example."""
    lines = [f"{n}\n".encode() for n in (5, 3, 9, 1)]

    # Chain processes like a shell pipeline
    sorted_lines = merge(merge(from_array(lines), spawn_transform("sort", ["-n"])), split())
    print(f"Sorted: {await to_array(sorted_lines)}")

    compressed = await to_bytes(merge(from_array(lines), spawn_transform("gzip", ["-c"])))
    print(f"Compressed to {len(compressed)} bytes")

    # A non-zero exit status fails the stream
    try:
        await to_array(merge(from_array([b"x"]), spawn_transform("sh", ["-c", "cat; exit 3"])))
    except ProcessExitError as e:
        print(f"Failed as expected: {e} (code {e.returncode})")


if __name__ == "__main__":
    asyncio.run(main())
