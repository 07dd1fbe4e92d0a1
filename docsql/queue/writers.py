"""
Per-table write batching.

A WriterRegistry owns one WriteQueue per destination table of a
collection: the main table plus one per related table. Queues buffer
rows and hand them to an injected flush callback once `capacity` rows
are pending, or when flushed explicitly.

Queues are not thread-safe. Each table's queue must be owned by a single
writer, or calls to enqueue()/flush() serialized externally.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from docsql.common.metrics import queue_depth, rows_enqueued_total
from docsql.mapping.columns import CollectionSchema

logger = logging.getLogger(__name__)

Row = List[Any]
FlushCallback = Callable[[str, str, List[Row]], Any]


class WriteQueue:
    """
    Buffer of rows bound for one table.

    The buffer is cleared after every flush, including a flush whose
    callback raised; retry policy belongs to the callback.
    """

    def __init__(self, table: str, ns: str, capacity: int, flush: FlushCallback):
        """
        Initialize write queue.

        Args:
            table: Destination table
            ns: Namespace whose rows land in the table
            capacity: Pending rows that trigger a flush
            flush: Callback invoked as flush(table, ns, rows)
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.table = table
        self.ns = ns
        self.capacity = capacity
        self._flush = flush
        self.pending: List[Row] = []
        self.total = 0

    def __len__(self) -> int:
        return len(self.pending)

    def append(self, row: Row) -> None:
        """Add a row, flushing when the queue reaches capacity."""
        self.pending.append(row)
        self.total += 1
        rows_enqueued_total.labels(table=self.table).inc()
        queue_depth.labels(table=self.table).set(len(self.pending))
        if len(self.pending) >= self.capacity:
            self.flush()

    def extend(self, rows: List[Row]) -> None:
        for row in rows:
            self.append(row)

    def flush(self) -> Any:
        """
        Hand pending rows to the callback and clear the buffer.

        Returns:
            The callback's result, or None when nothing was pending
        """
        result = None
        try:
            if self.pending:
                logger.debug(f"Flushing {len(self.pending)} rows to '{self.table}' ({self.ns})")
                result = self._flush(self.table, self.ns, list(self.pending))
        finally:
            self.pending.clear()
            queue_depth.labels(table=self.table).set(0)
        return result


class WriterRegistry:
    """One WriteQueue per destination table of a collection."""

    def __init__(
        self,
        schema: CollectionSchema,
        ns: str,
        capacity: int,
        flush: FlushCallback,
    ):
        """
        Initialize writer registry.

        Args:
            schema: Collection schema (main table and related tables)
            ns: Collection namespace ("db.collection")
            capacity: Batch size of every queue
            flush: Callback shared by every queue
        """
        self.schema = schema
        self.ns = ns
        self.capacity = capacity
        self._flush = flush
        self._queues: Dict[str, WriteQueue] = {}

        self.add(schema.meta.table)
        for table in schema.related:
            self.add(table, table)

    def add(self, table: str, suffix: Optional[str] = None) -> WriteQueue:
        """Register a queue for a table, scoped under ns[.suffix]."""
        scoped_ns = ".".join(p for p in (self.ns, suffix) if p)
        queue = WriteQueue(table, scoped_ns, self.capacity, self._flush)
        self._queues[table] = queue
        return queue

    def __getitem__(self, table: str) -> WriteQueue:
        return self._queues[table]

    def __contains__(self, table: str) -> bool:
        return table in self._queues

    def get(self, table: Optional[str] = None) -> WriteQueue:
        """Queue for a table, defaulting to the main table."""
        return self._queues[table or self.schema.meta.table]

    def enqueue(self, table: Optional[str], row: Row) -> None:
        """Append a row to a table's queue (None: the main table)."""
        self.get(table).append(row)

    def flush(self, table: Optional[str] = None) -> Any:
        return self.get(table).flush()

    def flush_all(self) -> None:
        """Flush every queue, main table first."""
        for queue in self._queues.values():
            queue.flush()

    def each_table(self) -> Iterator[str]:
        return iter(list(self._queues))

    def total(self, table: Optional[str] = None) -> int:
        return self.get(table).total
