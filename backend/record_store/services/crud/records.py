"""
Row snapshot helpers.
"""

from typing import Any, Iterable, Mapping


def diff_rows(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    """
    Values of new that differ from old (or that old does not have).

    Columns present only in old are not reported.
    """
    return {
        column: value
        for column, value in new.items()
        if column not in old or old[column] != value
    }


def rows_by_key(rows: Iterable[Mapping[str, Any]], key: str = "id") -> dict[Any, Mapping[str, Any]]:
    """
    Re-key a list of rows by one of their column values.

    Later rows win when values repeat.
    """
    return {row[key]: row for row in rows}
