#!/usr/bin/env python3
"""
Splitter and executor benchmarks.

Measures throughput of the delimiter splitter paths and the bounded
concurrency executor.
"""

import asyncio
import re
import time
from typing import Any

from streamwork import for_each_async, from_array, merge, split, to_array


def generate_chunks(lines: int, chunk_size: int = 65536) -> list[bytes]:
    """Generate newline-delimited data cut into fixed-size chunks."""
    data = "".join(f"record {i};value {i * 7}\n" for i in range(lines)).encode()
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


async def benchmark_split(name: str, delimiter: Any, lines: int) -> dict[str, Any]:
    """Benchmark one splitter configuration."""
    chunks = generate_chunks(lines)

    start = time.perf_counter()
    records = await to_array(merge(from_array(chunks), split(delimiter)))
    elapsed = time.perf_counter() - start

    return {
        "name": name,
        "records": len(records),
        "elapsed_seconds": elapsed,
        "throughput_rps": len(records) / elapsed,
        "mb_per_second": sum(len(c) for c in chunks) / elapsed / 1_000_000,
    }


async def benchmark_executor(items: int, concurrency: int) -> dict[str, Any]:
    """Benchmark for_each_async scheduling overhead."""

    async def callback(item: int, index: int) -> None:
        await asyncio.sleep(0)

    start = time.perf_counter()
    await for_each_async(range(items), callback, concurrency)
    elapsed = time.perf_counter() - start

    return {
        "name": f"for_each_async(K={concurrency})",
        "records": items,
        "elapsed_seconds": elapsed,
        "throughput_rps": items / elapsed,
    }


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Split Benchmarks")
    print("=" * 60)
    print()

    results = [
        await benchmark_split("ByteSplitter (newline)", None, 200_000),
        await benchmark_split("TextSplitter (literal)", ";value", 200_000),
        await benchmark_split("TextSplitter (regex)", re.compile(r"\n"), 200_000),
        await benchmark_executor(50_000, 1),
        await benchmark_executor(50_000, 64),
    ]

    for result in results:
        print(f"{result['name']}:")
        for key, value in result.items():
            if key == "name":
                continue
            if isinstance(value, float):
                print(f"  {key}: {value:,.2f}")
            else:
                print(f"  {key}: {value:,}")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
