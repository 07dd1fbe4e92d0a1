"""
Dotted-path extraction from documents.

Paths are dotted key sequences ("author.name"); a segment ending in "[]"
projects an array field, applying the rest of the path to each element
("comments[].author").

extract_path() never mutates its input. It returns the extracted value
and a copy of the document with the consumed key removed, copying only
the containers along the path, so a caller can thread the working
document through a sequence of extractions.
"""

from typing import Any, Mapping, Tuple

from docsql.ingest.values import SINK_NOW
from docsql.mapping.columns import SchemaError, TIMESTAMP_SOURCE

ARRAY_SUFFIX = "[]"
EXISTS_PREFIX = "$exists "


class TransformError(Exception):
    """Exception raised when a document does not fit its mapping."""

    def __init__(self, message: str, ns: str = None, column: str = None):
        super().__init__(message)
        self.ns = ns
        self.column = column


def _without(obj: Mapping, key: str) -> dict:
    return {k: v for k, v in obj.items() if k != key}


def extract_path(obj: Any, dotted: str) -> Tuple[Any, Any]:
    """
    Extract and remove the value at a dotted path.

    Args:
        obj: Document (or sub-document) to read
        dotted: Dotted path, optionally with "[]" array segments

    Returns:
        Tuple of (value, remaining document); value is None when absent

    Raises:
        TransformError: If an array segment names a non-array value
    """
    key, _, rest = dotted.partition(".")

    if key.endswith(ARRAY_SUFFIX):
        field = key[:-len(ARRAY_SUFFIX)]
        if not isinstance(obj, Mapping):
            return [], obj
        values = obj.get(field)
        if values is None:
            values = []
        if not isinstance(values, list):
            raise TransformError(
                f"Expected: Array for piece {key}, got {type(values).__name__}")

        if not rest:
            if field in obj:
                return values, _without(obj, field)
            return values, obj

        if field not in obj or obj[field] is None:
            return [], obj

        extracted = []
        remaining = []
        for element in values:
            value, element = extract_path(element, rest)
            extracted.append(value)
            remaining.append(element)
        return extracted, {**obj, field: remaining}

    if not isinstance(obj, Mapping):
        return None, obj

    if not rest:
        if key in obj:
            return obj[key], _without(obj, key)
        return None, obj

    child = obj.get(key)
    value, new_child = extract_path(child, rest)
    if new_child is not child:
        obj = {**obj, key: new_child}
    return value, obj


def fetch_exists(obj: Any, dotted: str) -> bool:
    """Whether every level of a dotted path exists as a key."""
    pieces = dotted.split(".")
    for key in pieces[:-1]:
        if not isinstance(obj, Mapping):
            return False
        obj = obj.get(key)
    if not isinstance(obj, Mapping):
        return False
    return pieces[-1] in obj


def fetch_special_source(source: str, original: Any) -> Any:
    """
    Resolve a pseudo source ("$timestamp", "$exists <path>").

    Args:
        source: Column source starting with "$"
        original: The document as received, before any extraction

    Raises:
        SchemaError: If the pseudo source is unknown
    """
    if source == TIMESTAMP_SOURCE:
        return SINK_NOW
    if source.startswith(EXISTS_PREFIX) and len(source) > len(EXISTS_PREFIX):
        return fetch_exists(original, source[len(EXISTS_PREFIX):])
    raise SchemaError(f"Unknown source: {source}")
