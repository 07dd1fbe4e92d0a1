"""
Sink interface for table creation and bulk loading.

Defines the abstract interface for sink backends (PostgreSQL, in-memory)
that receive DDL and COPY data produced from the mapping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional


class SinkError(Exception):
    """Exception raised for DDL or bulk-load failures."""

    def __init__(self, message: str, table: Optional[str] = None, transient: bool = False):
        super().__init__(message)
        self.table = table
        self.transient = transient


@dataclass(frozen=True)
class ColumnDef:
    """Destination column definition used for table creation."""
    name: str
    type: str
    default_now: bool = False
    autoincrement: bool = False


class SinkBackend(ABC):
    """
    Abstract base class for sink backends.

    All sink implementations must provide these methods for creating
    tables and indexes and streaming COPY data.
    """

    @abstractmethod
    def create_table(
        self,
        name: str,
        columns: List[ColumnDef],
        primary_key: List[str],
        clobber: bool = False,
    ) -> None:
        """
        Create a table.

        Args:
            name: Table name
            columns: Ordered column definitions
            primary_key: Primary key column names (empty for none)
            clobber: Drop and recreate an existing table instead of keeping it

        Raises:
            SinkError: If table creation fails
        """
        pass

    @abstractmethod
    def add_index(self, table: str, column: str, concurrently: bool = True) -> None:
        """
        Create a single-column index if it does not exist.

        Args:
            table: Table name
            column: Column name
            concurrently: Build without blocking concurrent writers

        Raises:
            SinkError: If index creation fails
        """
        pass

    @abstractmethod
    def copy_lines(self, table: str, columns: List[str], lines: Iterable[str]) -> int:
        """
        Bulk load encoded lines into a table.

        Args:
            table: Table name
            columns: Column names, in the order values appear on each line
            lines: Newline-terminated COPY text lines

        Returns:
            Number of lines loaded

        Raises:
            SinkError: If the load fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the sink backend and release connections."""
        pass
