"""
PostgreSQL sink backend.

Creates tables and indexes through SQLAlchemy schema objects and streams
rows with `COPY ... FROM STDIN` over the raw psycopg2 connection.
"""

import io
import logging
from typing import Iterable, List

import psycopg2

from sqlalchemy import (
    BigInteger,
    Column,
    Index,
    MetaData,
    Table,
    create_engine,
    func,
)
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.types import NullType, UserDefinedType

from docsql.common.logging_config import PerformanceTracker
from docsql.sink.interface import ColumnDef, SinkBackend, SinkError

logger = logging.getLogger(__name__)


class RawType(UserDefinedType):
    """Column type rendered verbatim from the mapping ("TEXT", "INT[]", ...)."""

    cache_ok = True

    def __init__(self, spec: str):
        self.spec = spec

    def get_col_spec(self, **kw):
        return self.spec


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class PostgresSink(SinkBackend):
    """
    Sink backend for PostgreSQL.

    The session time zone is fixed per connection from the `timezone`
    argument, so timestamps without offset are interpreted consistently.
    """

    def __init__(self, database_url: str, timezone: str = "UTC", echo: bool = False):
        """
        Initialize PostgreSQL sink.

        Args:
            database_url: SQLAlchemy URL (postgresql://...)
            timezone: Session time zone of every connection
            echo: Log emitted SQL
        """
        self.timezone = timezone
        self.engine = create_engine(
            database_url,
            pool_pre_ping=True,
            echo=echo,
            connect_args={"options": f"-c timezone={timezone}"},
        )

    def _table(self, name: str, columns: List[ColumnDef], primary_key: List[str]) -> Table:
        cols = []
        for col in columns:
            if col.autoincrement:
                cols.append(Column(col.name, BigInteger, primary_key=col.name in primary_key,
                                   autoincrement=True))
                continue
            kwargs = {}
            if col.default_now:
                kwargs["server_default"] = func.now()
            cols.append(Column(col.name, RawType(col.type),
                               primary_key=col.name in primary_key, **kwargs))
        return Table(name, MetaData(), *cols)

    def create_table(
        self,
        name: str,
        columns: List[ColumnDef],
        primary_key: List[str],
        clobber: bool = False,
    ) -> None:
        table = self._table(name, columns, primary_key)
        try:
            with self.engine.begin() as conn:
                if clobber:
                    table.drop(conn, checkfirst=True)
                    table.create(conn)
                else:
                    table.create(conn, checkfirst=True)
        except SQLAlchemyError as e:
            raise SinkError(f"Failed to create table '{name}': {e}", table=name)

    def _index(self, table: str, column: str, concurrently: bool) -> Index:
        sa_table = Table(table, MetaData(), Column(column, NullType()))
        return Index(
            f"{table}_{column}_index",
            sa_table.c[column],
            postgresql_concurrently=concurrently,
        )

    def add_index(self, table: str, column: str, concurrently: bool = True) -> None:
        index = self._index(table, column, concurrently)
        try:
            # CREATE INDEX CONCURRENTLY cannot run inside a transaction
            with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
                index.create(conn, checkfirst=True)
        except SQLAlchemyError as e:
            raise SinkError(f"Failed to create index on '{table}.{column}': {e}", table=table)

    def copy_lines(self, table: str, columns: List[str], lines: Iterable[str]) -> int:
        buffer = io.StringIO()
        count = 0
        for line in lines:
            buffer.write(line)
            count += 1
        buffer.seek(0)

        sql = "COPY {} ({}) FROM STDIN".format(
            _quote_ident(table), ",".join(_quote_ident(c) for c in columns))

        try:
            raw = self.engine.raw_connection()
        except (SQLAlchemyError, psycopg2.Error) as e:
            raise SinkError(f"No connection for COPY into '{table}': {e}", table=table,
                            transient=isinstance(e, (OperationalError, psycopg2.OperationalError)))

        try:
            with PerformanceTracker("copy", logger, log_level=logging.DEBUG,
                                    table=table, rows=count):
                cursor = raw.cursor()
                try:
                    cursor.copy_expert(sql, buffer)
                finally:
                    cursor.close()
                raw.commit()
        except psycopg2.Error as e:
            if isinstance(e, psycopg2.OperationalError):
                raw.invalidate()
            else:
                raw.rollback()
            raise SinkError(f"COPY into '{table}' failed: {e}", table=table,
                            transient=isinstance(e, psycopg2.OperationalError))
        finally:
            raw.close()
        return count

    def close(self) -> None:
        self.engine.dispose()

