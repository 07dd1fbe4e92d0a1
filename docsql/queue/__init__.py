"""
Queue module for per-table write batching.

Provides the WriteQueue buffer and the WriterRegistry that owns one
queue per destination table of a collection.
"""

from docsql.queue.writers import WriteQueue, WriterRegistry, FlushCallback


__all__ = [
    "WriteQueue",
    "WriterRegistry",
    "FlushCallback",
]
