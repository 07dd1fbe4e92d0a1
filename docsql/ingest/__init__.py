"""
Ingest module for document transformation.

Provides path extraction, BSON value coercion, row flattening, COPY
encoding and the pipeline feeding per-table write queues.
"""

from docsql.ingest.values import SINK_NOW, Blob, PgArray, JsonValue
from docsql.ingest.extraction import (
    TransformError,
    extract_path,
    fetch_exists,
)
from docsql.ingest.flattener import flatten_row, synchronized_cyclic_zip
from docsql.ingest.transformer import DocumentTransformer, transform_primitive, sanitize
from docsql.ingest.copy_encoder import quote_copy, encode_row, encode_rows
from docsql.ingest.bulk_loader import BulkLoader
from docsql.ingest.pipeline import ReplicationPipeline, create_pipeline

__all__ = [  # ruff: noqa: RUF022
    # Values
    "SINK_NOW",
    "Blob",
    "PgArray",
    "JsonValue",
    # Extraction
    "TransformError",
    "extract_path",
    "fetch_exists",
    # Flattening
    "flatten_row",
    "synchronized_cyclic_zip",
    # Transformation
    "DocumentTransformer",
    "transform_primitive",
    "sanitize",
    # Encoding
    "quote_copy",
    "encode_row",
    "encode_rows",
    # Loading
    "BulkLoader",
    "ReplicationPipeline",
    "create_pipeline",
]
