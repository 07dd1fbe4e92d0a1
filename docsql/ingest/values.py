"""
Value wrappers produced by the document transformer.

Each wrapper tells the COPY encoder how a coerced value must be rendered
in the destination's bulk-load text format.
"""

from typing import Any, List, Optional


class SinkNow:
    """Marker for "use the sink's current time" ($timestamp columns)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SINK_NOW"


SINK_NOW = SinkNow()


class Blob(bytes):
    """Opaque binary value stored in a bytea column."""

    def __repr__(self) -> str:
        return f"Blob({bytes(self)!r})"


class PgArray:
    """Native typed array value (e.g. INT[] or TEXT[])."""

    def __init__(self, values: List[Any], element_type: str):
        self.values = list(values)
        self.element_type = element_type

    def __eq__(self, other):
        if not isinstance(other, PgArray):
            return NotImplemented
        return self.values == other.values and self.element_type == other.element_type

    def __repr__(self) -> str:
        return f"PgArray({self.values!r}, {self.element_type!r})"


class JsonValue:
    """Structured-text (JSON/JSONB) value holding an array or mapping."""

    def __init__(self, value: Any, json_type: Optional[str] = "JSON"):
        self.value = value
        self.json_type = json_type

    def __eq__(self, other):
        if not isinstance(other, JsonValue):
            return NotImplemented
        return self.value == other.value

    def __repr__(self) -> str:
        return f"JsonValue({self.value!r})"
