"""
Mapping module for the document-to-table schema.

Provides column normalization, collection schemas and namespace
resolution for the replication pipeline.
"""

from docsql.mapping.columns import (
    ColumnSpec,
    Meta,
    CollectionSchema,
    SchemaError,
    normalize_column,
    normalize_columns,
    EXTRA_PROPS_COLUMN,
)
from docsql.mapping.schema import (
    SchemaModel,
    DatabaseSpec,
    build_schema,
    all_columns,
    copy_columns,
)

__all__ = [  # ruff: noqa: RUF022
    # Columns
    "ColumnSpec",
    "Meta",
    "CollectionSchema",
    "SchemaError",
    "normalize_column",
    "normalize_columns",
    "EXTRA_PROPS_COLUMN",
    # Schema model
    "SchemaModel",
    "DatabaseSpec",
    "build_schema",
    "all_columns",
    "copy_columns",
]
