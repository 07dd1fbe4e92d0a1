"""
In-process sink backend.

Records tables, indexes and COPY lines instead of talking to a database.
Used for dry runs (`memory://`) and tests.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from docsql.sink.interface import ColumnDef, SinkBackend, SinkError


@dataclass
class MemoryTable:
    """A table created on the in-memory sink."""
    name: str
    columns: List[ColumnDef]
    primary_key: List[str]
    lines: List[str] = field(default_factory=list)
    copies: List[List[str]] = field(default_factory=list)  # column list per COPY

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]


class InMemorySink(SinkBackend):
    """
    In-memory sink backend.

    Thread-safe; mirrors PostgreSQL's create-if-absent and drop-and-create
    semantics so DDL can be exercised without a server.
    """

    def __init__(self):
        self.tables: Dict[str, MemoryTable] = {}
        self.indexes: Set[Tuple[str, str]] = set()
        self.created: List[str] = []  # every CREATE issued, in order
        self._lock = threading.Lock()
        self._closed = False

    def create_table(
        self,
        name: str,
        columns: List[ColumnDef],
        primary_key: List[str],
        clobber: bool = False,
    ) -> None:
        self._check_open()
        names = [col.name for col in columns]
        for key in primary_key:
            if key not in names:
                raise SinkError(f"Primary key column '{key}' missing from '{name}'", table=name)

        with self._lock:
            if name in self.tables and not clobber:
                return
            self.tables[name] = MemoryTable(name, list(columns), list(primary_key))
            self.indexes = {(t, c) for t, c in self.indexes if t != name}
            self.created.append(name)

    def add_index(self, table: str, column: str, concurrently: bool = True) -> None:
        self._check_open()
        with self._lock:
            if table not in self.tables:
                raise SinkError(f"Table '{table}' does not exist", table=table)
            if column not in self.tables[table].column_names:
                raise SinkError(f"Column '{column}' does not exist in '{table}'", table=table)
            self.indexes.add((table, column))

    def copy_lines(self, table: str, columns: List[str], lines: Iterable[str]) -> int:
        self._check_open()
        lines = list(lines)
        with self._lock:
            if table not in self.tables:
                raise SinkError(f"Table '{table}' does not exist", table=table)
            unknown = [c for c in columns if c not in self.tables[table].column_names]
            if unknown:
                raise SinkError(
                    f"Columns {', '.join(unknown)} do not exist in '{table}'", table=table)
            for line in lines:
                if not line.endswith("\n"):
                    raise SinkError(f"Unterminated COPY line for '{table}': {line!r}", table=table)
                fields = line[:-1].split("\t")
                if len(fields) != len(columns):
                    raise SinkError(
                        f"COPY line for '{table}' has {len(fields)} fields, "
                        f"expected {len(columns)}", table=table)
            self.tables[table].lines.extend(lines)
            self.tables[table].copies.append(list(columns))
        return len(lines)

    def rows(self, table: str) -> List[List[str]]:
        """Copied lines of a table split into raw (still escaped) fields."""
        return [line[:-1].split("\t") for line in self.tables[table].lines]

    def close(self) -> None:
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise SinkError("Sink is closed")
