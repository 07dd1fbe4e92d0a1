"""
Bulk loader: the flush callback of the write queues.

Encodes a batch of rows into COPY lines for the batch's namespace and
streams them to the sink. Connection-level failures are retried with
exponential backoff; anything else, or exhausting the retries, raises
SinkError to the caller.
"""

import logging
from typing import Any, List

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from docsql.common.logging_config import PerformanceTracker
from docsql.common.metrics import track_flush
from docsql.ingest.copy_encoder import encode_rows
from docsql.mapping.schema import SchemaModel, copy_columns
from docsql.sink.interface import SinkBackend, SinkError

logger = logging.getLogger(__name__)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, SinkError) and error.transient


class BulkLoader:
    """
    Flush callback loading rows through the sink's COPY interface.

    Usage:
        loader = BulkLoader(schema, sink)
        registry = WriterRegistry(collection, "blog.posts", 1000, loader)
    """

    def __init__(
        self,
        schema: SchemaModel,
        sink: SinkBackend,
        retry_attempts: int = 3,
        retry_max_wait: float = 10.0,
    ):
        """
        Initialize bulk loader.

        Args:
            schema: Mapping used to resolve each batch's namespace
            sink: Sink receiving the COPY data
            retry_attempts: Attempts per batch for transient failures
            retry_max_wait: Upper bound of the backoff between attempts
        """
        self.schema = schema
        self.sink = sink
        self._copy = retry(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(max(1, retry_attempts)),
            wait=wait_exponential(multiplier=0.5, max=retry_max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(self.sink.copy_lines)

    def __call__(self, table: str, ns: str, rows: List[List[Any]]) -> int:
        return self.copy_rows(table, ns, rows)

    def copy_rows(self, table: str, ns: str, rows: List[List[Any]]) -> int:
        """
        Load one batch of rows.

        Args:
            table: Destination table
            ns: Namespace the rows were transformed for
            rows: Transformed rows

        Returns:
            Number of rows loaded

        Raises:
            SinkError: If the load fails
        """
        columns = copy_columns(self.schema.find_ns_strict(ns))
        lines = list(encode_rows(rows))

        @track_flush(table)
        def load() -> int:
            with PerformanceTracker("bulk_load", logger, table=table, ns=ns, rows=len(lines)):
                return self._copy(table, columns, lines)

        return load()
