"""SQL fragments shared by the statement builder and the join resolver."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from seaquel.dialect import Dialect
from seaquel.values import ABSENT


class ParamList:
    """Growing parameter list shared by every fragment of one statement."""

    def __init__(self, dialect: Dialect):
        self._dialect = dialect
        self.values: list[Any] = []

    def __len__(self) -> int:
        return len(self.values)

    def bind(self, value: Any) -> str:
        """Append ``value`` and return its placeholder."""
        self.values.append(value)
        return self._dialect.placeholder(len(self.values) - 1)


def split_key(key: str) -> tuple[str, str | None]:
    """Split ``"id >"`` into ``("id", ">")``; a bare name has no operator."""
    column, _, operator = key.strip().partition(" ")
    return column, operator.strip() or None


def present_items(values: Mapping[str, Any]) -> list[tuple[str, Any]]:
    return [(key, value) for key, value in values.items() if value is not ABSENT]


def column_ref(dialect: Dialect, column: str, qualifier: str | None = None) -> str:
    """Quote a column, qualifying it unless it is already dotted."""
    if "." in column:
        return dialect.qualify(*column.split("."))
    if qualifier:
        return dialect.qualify(qualifier, column)
    return dialect.quote(column)


def where_clause(
    dialect: Dialect,
    where: Mapping[str, Any],
    params: ParamList,
    qualifier: str | None = None,
) -> str:
    """AND-joined conditions; empty string when nothing is present."""
    conditions = []
    for key, value in present_items(where):
        column, operator = split_key(key)
        ref = column_ref(dialect, column, qualifier)
        if operator is None:
            conditions.append(f"{ref} = {params.bind(value)}")
        elif value is None:
            conditions.append(f"{ref} {operator} NULL")
        else:
            conditions.append(f"{ref} {operator} {params.bind(value)}")
    return " AND ".join(conditions)


__all__ = [
    "ParamList",
    "column_ref",
    "present_items",
    "split_key",
    "where_clause",
]
