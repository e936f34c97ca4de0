"""Statement builder: table + plain mapping → SQL text and ordered parameters.

Manifesto:
    SQL is generated, never concatenated from caller values.  Identifiers
    are quoted by the dialect, values are always bound, and every fragment
    of one statement draws its placeholders from a single shared
    :class:`ParamList`, so ``$k`` always matches ``params[k - 1]`` no matter
    how SET, WHERE and JOIN fragments are composed.

Architecture::

    values / filters (dict)
          │
          ▼
    ┌──────────────┐   hooks    ┌──────────────┐  bind()  ┌────────────┐
    │ apply_*_hooks│ ─────────► │ *_clause()   │ ───────► │ ParamList  │
    └──────────────┘            └──────────────┘          └────────────┘
                                       │                        │
                                       ▼                        ▼
                               Statement(sql, params)  ◄────────┘

Key conventions:
    - A key that is missing, or whose value is ``ABSENT``, is left out.
      ``None`` is kept and bound as NULL.
    - Filter keys are ``"column"`` (equality) or ``"column op"`` where
      ``op`` is a raw SQL comparison operator taken after the first space.
      ``None`` with an operator renders ``column op NULL`` unbound, so
      ``{"deleted_at IS": None}`` works.
    - ``Increment(n)`` in a SET clause renders ``col = col ± $k``.
    - GROUP BY / ORDER BY / LIMIT / OFFSET fragments are caller-trusted and
      inserted verbatim.

Examples:
    >>> stmt = build_update_where(users, {"banned": True}, {"id >": 10})
    >>> stmt.sql
    'UPDATE "public"."users" SET "banned" = $1 WHERE "id" > $2'
    >>> stmt.params
    [True, 10]

Tags:
    sql, statement-builder, placeholders, seaquel

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from seaquel.dialect import Dialect
from seaquel.errors import StatementError
from seaquel.fragments import (
    ParamList,
    column_ref,
    present_items,
    split_key,
    where_clause,
)
from seaquel.joins import Join, RowShape, join_clause, resolve_joins, select_list
from seaquel.values import ABSENT, Increment

if TYPE_CHECKING:
    from seaquel.schema import Table


@dataclass(frozen=True)
class Statement:
    """Generated SQL with its parameters in placeholder order."""

    sql: str
    params: list[Any] = field(default_factory=list)


# =============================================================================
# Fragments
# =============================================================================


def assignment_clause(dialect: Dialect, items: Iterable[tuple[str, Any]], params: ParamList) -> str:
    assignments = []
    for key, value in items:
        ref = dialect.quote(key)
        if isinstance(value, Increment):
            assignments.append(f"{ref} = {ref} {value.operator} {params.bind(value.magnitude)}")
        else:
            assignments.append(f"{ref} = {params.bind(value)}")
    return ", ".join(assignments)


def apply_insert_hooks(table: Table, values: Mapping[str, Any]) -> dict[str, Any]:
    return _apply_hooks(table, values, "on_insert")


def apply_update_hooks(table: Table, values: Mapping[str, Any]) -> dict[str, Any]:
    return _apply_hooks(table, values, "on_update")


def _apply_hooks(table: Table, values: Mapping[str, Any], hook_name: str) -> dict[str, Any]:
    result = dict(values)
    for column in table.columns:
        hook = getattr(column, hook_name)
        if hook is None:
            continue
        value = hook(result.get(column.name, ABSENT))
        if value is ABSENT:
            result.pop(column.name, None)
        else:
            result[column.name] = value
    return result


def _check_columns(table: Table, keys: Iterable[str]) -> None:
    known = set(table.column_names)
    unknown = [key for key in keys if key not in known]
    if unknown:
        raise StatementError(
            f"Unknown column(s) {unknown} for table {table.name!r}"
        ).with_context(table=table.name)


def _primary_key_where(table: Table, values: Mapping[str, Any], params: ParamList) -> str:
    if not table.primary_keys:
        raise StatementError(
            f"Table {table.name!r} has no primary key"
        ).with_context(table=table.name)
    missing = [pk for pk in table.primary_keys if values.get(pk, ABSENT) is ABSENT]
    if missing:
        raise StatementError(
            f"Missing primary key value(s) {missing} for table {table.name!r}"
        ).with_context(table=table.name)
    return where_clause(table.dialect, {pk: values[pk] for pk in table.primary_keys}, params)


def _require_where(table: Table, clause: str) -> str:
    if not clause:
        raise StatementError(
            f"Refusing to run an unconditioned statement on {table.name!r}; "
            "pass at least one filter"
        ).with_context(table=table.name)
    return clause


# =============================================================================
# Statements
# =============================================================================


def build_insert(table: Table, values: Mapping[str, Any]) -> Statement:
    """``INSERT ... RETURNING *`` after running every on_insert hook."""
    items = present_items(apply_insert_hooks(table, values))
    _check_columns(table, (key for key, _ in items))
    for key, value in items:
        if isinstance(value, Increment):
            raise StatementError(
                f"increment() is only valid in updates (column {key!r})"
            ).with_context(table=table.name)

    dialect = table.dialect
    params = ParamList(dialect)
    if not items:
        return Statement(f"INSERT INTO {table.qualified_name} DEFAULT VALUES RETURNING *")

    columns = ", ".join(dialect.quote(key) for key, _ in items)
    placeholders = ", ".join(params.bind(value) for _, value in items)
    sql = f"INSERT INTO {table.qualified_name} ({columns}) VALUES ({placeholders}) RETURNING *"
    return Statement(sql, params.values)


def build_update(table: Table, values: Mapping[str, Any]) -> Statement:
    """Update one row by primary key; SET takes every other present key."""
    hooked = apply_update_hooks(table, values)
    items = [(key, value) for key, value in present_items(hooked) if key not in table.primary_keys]
    _check_columns(table, (key for key, _ in items))
    if not items:
        raise StatementError(
            f"Nothing to update on {table.name!r}"
        ).with_context(table=table.name)

    params = ParamList(table.dialect)
    assignments = assignment_clause(table.dialect, items, params)
    where = _primary_key_where(table, hooked, params)
    return Statement(f"UPDATE {table.qualified_name} SET {assignments} WHERE {where}", params.values)


def build_update_where(
    table: Table,
    values: Mapping[str, Any],
    where: Mapping[str, Any],
) -> Statement:
    items = present_items(apply_update_hooks(table, values))
    _check_columns(table, (key for key, _ in items))
    if not items:
        raise StatementError(
            f"Nothing to update on {table.name!r}"
        ).with_context(table=table.name)

    params = ParamList(table.dialect)
    assignments = assignment_clause(table.dialect, items, params)
    condition = _require_where(table, where_clause(table.dialect, where, params))
    return Statement(f"UPDATE {table.qualified_name} SET {assignments} WHERE {condition}", params.values)


def build_delete(table: Table, values: Mapping[str, Any]) -> Statement:
    params = ParamList(table.dialect)
    where = _primary_key_where(table, values, params)
    return Statement(f"DELETE FROM {table.qualified_name} WHERE {where}", params.values)


def build_delete_where(table: Table, where: Mapping[str, Any]) -> Statement:
    params = ParamList(table.dialect)
    condition = _require_where(table, where_clause(table.dialect, where, params))
    return Statement(f"DELETE FROM {table.qualified_name} WHERE {condition}", params.values)


def build_select(
    table: Table,
    where: Mapping[str, Any] | None = None,
    *,
    group_by: str | None = None,
    order_by: str | None = None,
    limit: int | str | None = None,
    offset: int | str | None = None,
    join: Sequence[Join | Mapping[str, Any]] | None = None,
) -> tuple[Statement, RowShape | None]:
    """SELECT with optional joins.

    Returns the statement and, when joins were requested, the
    :class:`RowShape` that turns flat rows back into per-table mappings.
    """
    dialect = table.dialect
    params = ParamList(dialect)
    parts: list[str] = []
    shape: RowShape | None = None
    qualifier: str | None = None

    if join:
        resolved = resolve_joins(table, join)
        columns, shape = select_list(table, resolved)
        parts.append(f"SELECT {columns} FROM {table.qualified_name}")
        parts.extend(join_clause(table, item, params) for item in resolved)
        qualifier = table.name
    else:
        parts.append(f"SELECT * FROM {table.qualified_name}")

    condition = where_clause(dialect, where or {}, params, qualifier)
    if condition:
        parts.append(f"WHERE {condition}")
    if group_by:
        parts.append(f"GROUP BY {group_by}")
    if order_by:
        parts.append(f"ORDER BY {order_by}")
    if limit is not None:
        parts.append(f"LIMIT {limit}")
    if offset is not None:
        parts.append(f"OFFSET {offset}")

    return Statement(" ".join(parts), params.values), shape


__all__ = [
    "ParamList",
    "Statement",
    "apply_insert_hooks",
    "apply_update_hooks",
    "assignment_clause",
    "build_delete",
    "build_delete_where",
    "build_insert",
    "build_select",
    "build_update",
    "build_update_where",
    "column_ref",
    "split_key",
    "where_clause",
]
