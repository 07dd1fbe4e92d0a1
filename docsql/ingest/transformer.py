"""
Document Transformer.

Converts one document into rows for its mapped table: path extraction,
pseudo sources, BSON value coercion, nested object/array handling,
capture of unmapped properties, and flattening of array columns.
"""

import base64
import logging
import math
import uuid
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from bson import json_util
from bson.code import Code
from bson.dbref import DBRef

from docsql.ingest.extraction import TransformError, extract_path, fetch_special_source
from docsql.ingest.flattener import flatten_row
from docsql.ingest.values import Blob, JsonValue, PgArray
from docsql.mapping.columns import CollectionSchema
from docsql.mapping.schema import SchemaModel

logger = logging.getLogger(__name__)

JSON_TYPES = ("JSON", "JSONB")

Row = List[Any]


def _is_uuid_type(col_type: Optional[str]) -> bool:
    return bool(col_type) and col_type.lower() == "uuid"


def transform_primitive(value: Any, col_type: Optional[str] = None) -> Any:
    """
    Coerce a single BSON value for its destination column.

    Args:
        value: Extracted value
        col_type: Destination column type, drives binary rendering

    Returns:
        Coerced value
    """
    if isinstance(value, Mapping):
        # Nested keys lose their underscores
        return {
            str(k).replace("_", ""): transform_primitive(v)
            for k, v in value.items()
        }
    if isinstance(value, (ObjectId, Code)):
        return str(value)
    if isinstance(value, uuid.UUID):
        value = value.bytes
    if isinstance(value, bytes):
        if _is_uuid_type(col_type):
            return bytes(value).hex()
        return Blob(value)
    if isinstance(value, DBRef):
        return str(value.id)
    return value


def sanitize(value: Any) -> Any:
    """
    Make captured extra properties serializable as JSON.

    Binary becomes base64 text and NaN becomes None.
    """
    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    if isinstance(value, uuid.UUID):
        value = value.bytes
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


class DocumentTransformer:
    """
    Transforms documents into rows according to a SchemaModel.

    Stateless apart from the schema model's namespace cache; one
    instance may be shared by any number of workers.
    """

    def __init__(self, schema: SchemaModel):
        """
        Initialize transformer.

        Args:
            schema: Mapping used to resolve namespaces
        """
        self.schema = schema

    def transform(
        self,
        ns: str,
        document: Dict[str, Any],
        schema: Optional[CollectionSchema] = None,
    ) -> List[Row]:
        """
        Transform one document into one or more rows.

        Args:
            ns: Namespace of the document ("db.collection[.relation]")
            document: Source document; never modified
            schema: Pre-resolved collection schema

        Returns:
            Rows in column order; more than one when array columns expand

        Raises:
            SchemaError: If the namespace is unmapped or a source is unknown
            TransformError: If the document does not fit the mapping
        """
        if schema is None:
            schema = self.schema.find_ns_strict(ns)

        working: Any = document
        row: Row = []

        for col in schema.columns:
            if col.is_pseudo:
                value = fetch_special_source(col.source, document)
            else:
                try:
                    value, working = extract_path(working, col.source)
                except TransformError as e:
                    raise TransformError(
                        f"{ns}: column {col.name} ({col.source}): {e}",
                        ns=ns, column=col.name,
                    )
                value = self._transform_value(value, col.type, col.array_type)
            row.append(value)

        if schema.meta.extra_props:
            row.append(json_util.dumps(sanitize(working)))

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Transformed: {row!r}")

        return flatten_row(row)

    def _transform_value(self, value: Any, col_type: str, array_type: Optional[str]) -> Any:
        if isinstance(value, Mapping):
            return json_util.dumps({k: transform_primitive(v) for k, v in value.items()})

        if isinstance(value, list):
            values = [transform_primitive(v, col_type) for v in value]
            if array_type:
                return PgArray(values, array_type)
            if col_type.upper() in JSON_TYPES:
                return JsonValue(values, col_type.upper())
            return values

        return transform_primitive(value, col_type)
