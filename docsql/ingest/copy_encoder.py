"""
COPY text-format encoder.

Renders transformed rows as lines of PostgreSQL's tab-delimited
`COPY ... FROM STDIN` text protocol.

Values from $timestamp columns (SINK_NOW) are dropped from the line.
Such columns are also dropped from copy_columns(), so the two stay
aligned and the table default (now()) fills them.
"""

import datetime
import re
from typing import Any, Iterable, Iterator, List

from bson import json_util

from docsql.ingest.values import SINK_NOW, Blob, JsonValue, PgArray

NULL = "\\N"

_ESCAPE_RE = re.compile(r"([\\\t\n\r])")
_ESCAPES = {"\\": "\\\\", "\t": "\\t", "\n": "\\n", "\r": "\\r"}
_ARRAY_SPECIAL_RE = re.compile(r'[{},"\\\s]')


def escape_copy(text: str) -> str:
    """Backslash-escape backslash, tab, newline and carriage return."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


def _format_datetime(value: datetime.datetime) -> str:
    # Naive datetimes from the document store are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.isoformat(timespec="microseconds")


def _array_element(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, PgArray):
        return array_literal(value)
    if isinstance(value, bool):
        text = "t" if value else "f"
    elif isinstance(value, datetime.datetime):
        text = _format_datetime(value)
    elif isinstance(value, Blob):
        text = "\\x" + value.hex()
    elif isinstance(value, (dict, list)):
        text = json_util.dumps(value)
    else:
        text = str(value)
    if text == "" or text.upper() == "NULL" or _ARRAY_SPECIAL_RE.search(text):
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return text


def array_literal(value: PgArray) -> str:
    """Render a PgArray as a PostgreSQL array literal ("{1,2,3}")."""
    return "{" + ",".join(_array_element(v) for v in value.values) + "}"


def quote_copy(value: Any):
    """
    Render one value for a COPY text line.

    Returns:
        Field text, or None when the value must be omitted (SINK_NOW)
    """
    if value is None:
        return NULL
    if value is True:
        return "t"
    if value is False:
        return "f"
    if value is SINK_NOW:
        return None
    if isinstance(value, datetime.datetime):
        return _format_datetime(value)
    if isinstance(value, Blob):
        # Doubled backslash: COPY unescapes it before bytea input sees \x
        return "\\\\x" + value.hex()
    if isinstance(value, PgArray):
        return escape_copy(array_literal(value))
    if isinstance(value, JsonValue):
        return escape_copy(json_util.dumps(value.value))
    if isinstance(value, (dict, list)):
        return escape_copy(json_util.dumps(value))
    return escape_copy(str(value))


def encode_row(row: List[Any]) -> str:
    """Encode a row as one newline-terminated COPY line."""
    fields = (quote_copy(value) for value in row)
    return "\t".join(f for f in fields if f is not None) + "\n"


def encode_rows(rows: Iterable[List[Any]]) -> Iterator[str]:
    """Encode rows lazily."""
    for row in rows:
        yield encode_row(row)
