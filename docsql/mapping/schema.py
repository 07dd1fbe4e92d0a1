"""
Schema model for mapping document collections onto relational tables.

Built once from the raw collection configuration:

    {
        "blog": {
            "meta": {"alias": ["^blog_\\d+$"]},
            "posts": {
                "columns": [{"id": "TEXT"}, ...],
                "meta": {"table": "posts", "extra_props": "JSONB"},
                "related": {"post_tags": [...]},
            },
        },
    }

Resolves namespaces ("db.collection" or "db.collection.relation") to
CollectionSchema entries and drives table/index creation on a sink.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from docsql.common.logging_config import PerformanceTracker
from docsql.mapping.columns import (
    EXTRA_PROPS_COLUMN,
    ID_SOURCE,
    TIMESTAMP_SOURCE,
    CollectionSchema,
    ColumnSpec,
    Meta,
    SchemaError,
    check_columns,
    compile_aliases,
    normalize_columns,
)
from docsql.sink.interface import ColumnDef, SinkBackend

logger = logging.getLogger(__name__)

DB_META_KEY = "meta"


@dataclass
class DatabaseSpec:
    """Mapping for every collection of one source database."""
    meta: Meta
    collections: Dict[str, CollectionSchema] = field(default_factory=dict)


def parse_meta(raw: Any) -> Meta:
    """Normalize database-level metadata (alias patterns)."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SchemaError(f"Invalid meta {raw!r}")
    return Meta(alias=compile_aliases(raw.get("alias")))


def parse_spec(ns: str, spec: Any) -> CollectionSchema:
    """
    Normalize and validate one collection mapping.

    Args:
        ns: Namespace ("db.collection") used in error messages
        spec: Raw mapping with columns and optional meta/related

    Returns:
        Validated CollectionSchema

    Raises:
        SchemaError: If the mapping is malformed
    """
    if not isinstance(spec, dict):
        raise SchemaError(f"In spec for {ns}: expected a mapping, got {spec!r}")
    if "columns" not in spec:
        raise SchemaError(f"In spec for {ns}: key not found: 'columns'")

    columns = normalize_columns(spec["columns"])
    check_columns(ns, columns)

    raw_meta = spec.get("meta") or {}
    if not isinstance(raw_meta, dict):
        raise SchemaError(f"In spec for {ns}: invalid meta {raw_meta!r}")
    if not raw_meta.get("table"):
        raise SchemaError(f"In spec for {ns}: key not found: 'table'")

    composite_key = raw_meta.get("composite_key")
    if composite_key is not None:
        if not isinstance(composite_key, list) or not composite_key:
            raise SchemaError(f"In spec for {ns}: composite_key must be a non-empty list")
        if raw_meta.get("id") is True:
            raise SchemaError(
                f"In spec for {ns}: composite_key and id are mutually exclusive")
        names = {col.name for col in columns}
        missing = [k for k in composite_key if k not in names]
        if missing:
            raise SchemaError(
                f"In spec for {ns}: composite_key columns not defined: {', '.join(missing)}")

    meta = Meta(
        table=raw_meta["table"],
        indexes=list(raw_meta.get("indexes") or []) + [ID_SOURCE],
        composite_key=list(composite_key) if composite_key else None,
        extra_props=raw_meta.get("extra_props"),
        alias=compile_aliases(raw_meta.get("alias")),
        id=raw_meta.get("id"),
    )

    related = {}
    for reltable, details in (spec.get("related") or {}).items():
        related[reltable] = normalize_columns(details)
        check_columns(f"{ns}.{reltable}", related[reltable])

    return CollectionSchema(columns=columns, meta=meta, related=related)


def all_columns(schema: CollectionSchema, copy: bool = False) -> List[str]:
    """
    Destination column names of a schema.

    Args:
        schema: Collection schema
        copy: Drop columns that are filled by the sink ($timestamp)

    Returns:
        Column names, with the extra properties column last when configured
    """
    cols = [col.name for col in schema.columns if not copy or col.is_copied]
    if schema.meta.extra_props:
        cols.append(EXTRA_PROPS_COLUMN)
    return cols


def copy_columns(schema: CollectionSchema) -> List[str]:
    """Column list transmitted with every COPY for this schema."""
    return all_columns(schema, copy=True)


class SchemaModel:
    """
    In-memory mapping configuration.

    Immutable after construction except for the alias resolution cache,
    which memoizes find_db() answers (including misses) per database name.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Build the model from raw configuration.

        Args:
            config: Mapping of database name to collection mappings

        Raises:
            SchemaError: If any collection mapping is invalid
        """
        if not isinstance(config, dict):
            raise SchemaError(f"Configuration must be a mapping, got {config!r}")

        self._databases: Dict[str, DatabaseSpec] = {}
        for dbname, db in config.items():
            if not isinstance(db, dict):
                raise SchemaError(f"In spec for {dbname}: expected a mapping, got {db!r}")
            dbspec = DatabaseSpec(meta=parse_meta(db.get(DB_META_KEY)))
            for cname, spec in db.items():
                if cname == DB_META_KEY:
                    continue
                dbspec.collections[cname] = parse_spec(f"{dbname}.{cname}", spec)
            self._databases[dbname] = dbspec

        self._resolved: Dict[str, Optional[DatabaseSpec]] = dict(self._databases)
        self._lock = threading.Lock()

    def find_db(self, name: str) -> Optional[DatabaseSpec]:
        """
        Resolve a database name, falling back to alias patterns.

        The answer is cached under the literal name, misses included.
        """
        try:
            return self._resolved[name]
        except KeyError:
            pass

        found = None
        for spec in self._databases.values():
            if any(pattern.search(name) for pattern in spec.meta.alias):
                found = spec
                break

        with self._lock:
            self._resolved.setdefault(name, found)
        return found

    def find_ns(self, ns: str) -> Optional[CollectionSchema]:
        """
        Resolve a namespace to its collection schema.

        "db.collection.relation" yields a schema for the promoted related
        table: its column list and a meta carrying only the table name.

        Returns:
            CollectionSchema, or None if the namespace is not mapped
        """
        parts = ns.split(".")
        dbname = parts[0]
        collection = parts[1] if len(parts) > 1 else None
        relation = parts[2] if len(parts) > 2 else None

        spec = self.find_db(dbname)
        if spec is None:
            return None

        schema = spec.collections.get(collection)
        if schema is None:
            logger.debug(f"No mapping for ns: {ns}")
            return None

        if relation:
            columns = schema.related.get(relation)
            if columns is None:
                logger.debug(f"No related mapping for ns: {ns}")
                return None
            schema = CollectionSchema(columns=columns, meta=Meta(table=relation))

        return schema

    def find_ns_strict(self, ns: str) -> CollectionSchema:
        """Resolve a namespace or raise SchemaError."""
        schema = self.find_ns(ns)
        if schema is None:
            raise SchemaError(f"No mapping for namespace: {ns}")
        return schema

    def table_for_ns(self, ns: str) -> str:
        return self.find_ns_strict(ns).meta.table

    def primary_key_columns_for(self, ns: str) -> List[str]:
        """
        Columns identifying a row of the namespace's table.

        The composite key when configured, otherwise the column fed
        from _id (unless it is flagged key: false).
        """
        schema = self.find_ns_strict(ns)
        if schema.meta.composite_key:
            return list(schema.meta.composite_key)

        for col in schema.columns:
            if col.source == ID_SOURCE and col.key:
                return [col.name]
        raise SchemaError(f"No primary key column for namespace: {ns}")

    def all_databases(self) -> List[str]:
        return list(self._databases)

    def collections_for_db(self, db: str) -> List[str]:
        spec = self._databases.get(db)
        return list(spec.collections) if spec else []

    def iter_collections(self):
        """Yield (namespace, CollectionSchema) for every configured collection."""
        for dbname, dbspec in self._databases.items():
            for cname, collection in dbspec.collections.items():
                yield f"{dbname}.{cname}", collection

    def table_definition(self, ns: str, collection: CollectionSchema) -> Tuple[List[ColumnDef], List[str]]:
        """
        Column definitions and primary key for a collection's main table.

        Without composite_key or id: false the table is keyed on a column
        named "id"; a surrogate auto-increment id is added when no such
        column is mapped.
        """
        meta = collection.meta
        columns = [
            ColumnDef(name=col.name, type=col.sql_type,
                      default_now=col.source == TIMESTAMP_SOURCE)
            for col in collection.columns
        ]

        if meta.composite_key:
            primary_key = list(meta.composite_key)
        elif meta.id is False:
            id_cols = [col.name for col in collection.columns
                       if col.source == ID_SOURCE and col.key]
            if not id_cols:
                raise SchemaError(f"In spec for {ns}: id is false but no column maps _id")
            primary_key = id_cols[:1]
        else:
            if not any(col.name == "id" for col in columns):
                columns.insert(0, ColumnDef(name="id", type="BIGINT", autoincrement=True))
            primary_key = ["id"]

        if meta.extra_props_type:
            columns.append(ColumnDef(name=EXTRA_PROPS_COLUMN, type=meta.extra_props_type))

        return columns, primary_key

    def create_schema(self, sink: SinkBackend, clobber: bool = False) -> None:
        """
        Create one table per collection plus one per related table.

        Args:
            sink: Sink backend receiving the DDL
            clobber: Replace existing tables instead of keeping them
        """
        for ns, collection in self.iter_collections():
            columns, primary_key = self.table_definition(ns, collection)
            logger.info(f"Creating table '{collection.meta.table}'...")
            with PerformanceTracker("create_table", logger, log_level=logging.DEBUG,
                                    table=collection.meta.table):
                sink.create_table(collection.meta.table, columns, primary_key, clobber=clobber)

            for reltable, details in collection.related.items():
                logger.info(f"Creating table '{reltable}'...")
                sink.create_table(
                    reltable,
                    [ColumnDef(name=col.name, type=col.sql_type) for col in details],
                    [],
                    clobber=clobber,
                )

    def create_indexes(self, sink: SinkBackend) -> None:
        """Index every column whose source is listed in meta.indexes."""
        for _, collection in self.iter_collections():
            meta = collection.meta

            logger.info(f"Creating indexes on '{meta.table}'...")
            for col in collection.columns:
                if col.source in meta.indexes:
                    sink.add_index(meta.table, col.name, concurrently=True)

            for reltable, details in collection.related.items():
                logger.info(f"Creating indexes on '{reltable}'...")
                for col in details:
                    if col.source in meta.indexes:
                        sink.add_index(reltable, col.name, concurrently=True)


def build_schema(config: Dict[str, Any]) -> SchemaModel:
    """Build a SchemaModel from raw configuration."""
    return SchemaModel(config)
