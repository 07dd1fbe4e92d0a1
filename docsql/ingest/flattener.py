"""
Row flattening for array-valued columns.

A transformed row may hold plain lists next to scalars. Such a row is
expanded with a synchronized cyclic zip: every column becomes a sequence
of depth = max(len) values (scalars repeated, shorter lists wrapped
around) and the i-th output row takes the i-th value of each column.

    [5, [1, 2, 3], ["a", "b"]]
    -> [5, 1, "a"], [5, 2, "b"], [5, 3, "a"]

This is not a Cartesian product: two lists of length 3 give 3 rows, not 9.
"""

from itertools import cycle, islice
from typing import Any, List


def _flatten(values: List[Any]) -> List[Any]:
    """Flatten nested plain lists, e.g. from "a[].b[]" paths."""
    flat = []
    for value in values:
        if isinstance(value, list):
            flat.extend(_flatten(value))
        else:
            flat.append(value)
    return flat


def cyclic_take(values: List[Any], depth: int) -> List[Any]:
    """
    Repeat a sequence cyclically to exactly depth items.

    An empty sequence yields None values.
    """
    if not values:
        return [None] * depth
    return list(islice(cycle(values), depth))


def synchronized_cyclic_zip(columns: List[List[Any]]) -> List[List[Any]]:
    """
    Zip column sequences of different lengths, wrapping shorter ones.

    Args:
        columns: One value sequence per column

    Returns:
        max(1, longest) rows
    """
    depth = max([1] + [len(col) for col in columns])
    expanded = [cyclic_take(col, depth) for col in columns]
    return [list(row) for row in zip(*expanded)]


def flatten_row(row: List[Any]) -> List[List[Any]]:
    """
    Expand a row holding list values into sibling rows.

    Args:
        row: Transformed row

    Returns:
        [row] when no value is a list, otherwise the zipped rows
    """
    if not any(isinstance(value, list) for value in row):
        return [row]

    columns = [
        _flatten(value) if isinstance(value, list) else [value]
        for value in row
    ]
    return synchronized_cyclic_zip(columns)
