"""
Sink backends for DDL and bulk loading.

Provides the PostgreSQL and in-memory backends and a factory selecting
one from configuration.
"""

from docsql.sink.interface import SinkBackend, SinkError, ColumnDef
from docsql.sink.memory import InMemorySink
from docsql.sink.postgres import PostgresSink
from docsql.sink.factory import create_sink_backend

__all__ = [
    "SinkBackend",
    "SinkError",
    "ColumnDef",
    "InMemorySink",
    "PostgresSink",
    "create_sink_backend",
]
