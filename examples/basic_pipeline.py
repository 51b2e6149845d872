#!/usr/bin/env python3
"""
Basic pipeline example.

This example builds a small pipeline from plain Python values: a list
as the source, functions as transforms and a list's append as the sink.

Usage:
    python examples/basic_pipeline.py
"""

import asyncio

from streamwork import from_array, merge, pipeline, split, to_array


async def main() -> None:
    """Run basic pipeline example."""
    chunks = [b"alpha\nbe", b"ta\ngam", b"ma\n"]

    # Method 1: pipeline() wraps every stage and awaits the sink
    collected: list[str] = []
    await pipeline(chunks, split(), str.upper, collected.append)
    print(f"Collected: {collected}")

    # Method 2: merge stages into a single source and drain it
    words = merge(merge(from_array(chunks), split()), lambda word: word if len(word) > 4 else None)
    print(f"Filtered: {await to_array(words)}")


if __name__ == "__main__":
    asyncio.run(main())
