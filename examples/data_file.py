#!/usr/bin/env python3
"""
Data file example.

This example reads a (possibly compressed, possibly remote) data file and
processes its records with bounded concurrency. Compression and format
are inferred from the extension unless a format is given.

Usage:
    python examples/data_file.py data.csv.gz
    python examples/data_file.py https://example.com/export ndjson
"""

import asyncio
import sys

from streamwork import for_each_async, read_data_file
from streamwork.telemetry import LogLevel, StreamLogger


async def main() -> None:
    """Run data file example."""
    StreamLogger.configure(level=LogLevel.DEBUG, format="text")

    location = sys.argv[1] if len(sys.argv) > 1 else "data.csv"
    data_format = sys.argv[2] if len(sys.argv) > 2 else None

    source = await read_data_file(location, format=data_format, progress=True)

    count = 0

    async def handle(record: dict, index: int) -> None:
        nonlocal count
        count += 1
        # Simulate an async lookup per record
        await asyncio.sleep(0)

    await for_each_async(source, handle, 8)
    print(f"Processed {count} records")


if __name__ == "__main__":
    asyncio.run(main())
