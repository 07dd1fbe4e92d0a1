"""
Column and collection definitions for the document-to-table mapping.

Normalizes the two accepted column-entry shapes of a collection
configuration into ColumnSpec records:

    # explicit
    - source: author.name
      type: TEXT
      author_name:

    # shorthand (source and destination share the name)
    - title: TEXT
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Union

# Keys of an explicit entry that are options rather than the column name
OPTION_KEYS = ("source", "type", "array_type", "key")

ARRAY_TYPE_RE = re.compile(r"\A(.+)\s+array\Z", re.IGNORECASE)

TIMESTAMP_SOURCE = "$timestamp"
ID_SOURCE = "_id"
EXTRA_PROPS_COLUMN = "_extra_props"


class SchemaError(Exception):
    """Exception raised for invalid mapping configuration."""
    pass


@dataclass(frozen=True)
class ColumnSpec:
    """One destination column and the document path that feeds it."""
    source: str
    name: str
    type: str
    array_type: Optional[str] = None
    key: bool = True  # False excludes an _id column from primary key lookup

    @property
    def is_pseudo(self) -> bool:
        return self.source.startswith("$")

    @property
    def is_copied(self) -> bool:
        """Whether the column is part of the COPY column list."""
        return self.source != TIMESTAMP_SOURCE

    @property
    def sql_type(self) -> str:
        if self.array_type:
            return f"{self.array_type}[]"
        return self.type


@dataclass
class Meta:
    """Per-collection (or per-database) mapping metadata."""
    table: Optional[str] = None
    indexes: List[str] = field(default_factory=list)
    composite_key: Optional[List[str]] = None
    extra_props: Union[None, bool, str] = None
    alias: List[Pattern] = field(default_factory=list)
    id: Optional[bool] = None

    @property
    def extra_props_type(self) -> Optional[str]:
        if not self.extra_props:
            return None
        if isinstance(self.extra_props, str) and self.extra_props.upper() in ("JSON", "JSONB"):
            return self.extra_props.upper()
        return "TEXT"


@dataclass
class CollectionSchema:
    """Mapping of one collection (or one promoted array) onto a table."""
    columns: List[ColumnSpec]
    meta: Meta
    related: Dict[str, List[ColumnSpec]] = field(default_factory=dict)

    @property
    def table(self) -> str:
        return self.meta.table


def normalize_column(entry: Any) -> ColumnSpec:
    """
    Convert one raw column entry into a ColumnSpec.

    Args:
        entry: Explicit {source, type, <name>: ...} mapping or shorthand {name: type}

    Returns:
        Normalized ColumnSpec

    Raises:
        SchemaError: If the entry matches neither shape
    """
    if (
        isinstance(entry, dict)
        and isinstance(entry.get("source"), str)
        and isinstance(entry.get("type"), str)
    ):
        names = [k for k in entry if k not in OPTION_KEYS]
        if not names:
            raise SchemaError(f"Invalid ordered hash entry {entry!r}")
        source = entry["source"]
        name = str(names[0])
        col_type = entry["type"]
        array_type = entry.get("array_type")
        key = entry.get("key", True) is not False
    elif (
        isinstance(entry, dict)
        and len(entry) == 1
        and isinstance(next(iter(entry.values())), str)
    ):
        name, col_type = next(iter(entry.items()))
        source = name = str(name)
        array_type = None
        key = True
    else:
        raise SchemaError(f"Invalid ordered hash entry {entry!r}")

    if array_type is None:
        match = ARRAY_TYPE_RE.match(col_type)
        if match:
            array_type = match.group(1)
            col_type = array_type

    return ColumnSpec(source=source, name=name, type=col_type, array_type=array_type, key=key)


def normalize_columns(entries: Any) -> List[ColumnSpec]:
    """Normalize an ordered list of raw column entries."""
    if not isinstance(entries, list):
        raise SchemaError(f"Column list must be a sequence, got {entries!r}")
    return [normalize_column(entry) for entry in entries]


def check_columns(ns: str, columns: List[ColumnSpec]) -> None:
    """Reject duplicate sources within one collection."""
    seen = set()
    for col in columns:
        if col.source in seen:
            raise SchemaError(
                f"Duplicate source {col.source} in column definition {col.name} for {ns}.")
        seen.add(col.source)


def compile_aliases(alias: Any) -> List[Pattern]:
    """Compile a scalar or list of alias patterns."""
    if alias is None:
        return []
    if not isinstance(alias, list):
        alias = [alias]
    try:
        return [re.compile(pattern) for pattern in alias]
    except (re.error, TypeError) as e:
        raise SchemaError(f"Invalid alias pattern in {alias!r}: {e}")
