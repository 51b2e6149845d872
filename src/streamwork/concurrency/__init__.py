"""
Concurrency module for streamwork.

Provides bounded parallel execution of async callbacks over sequences.
"""

from streamwork.concurrency.executor import PoolStats, TaskPool, for_each_async, map_async

__all__ = [
    "PoolStats",
    "TaskPool",
    "for_each_async",
    "map_async",
]
