"""Join resolution and row reshaping.

A join request names the related table and an alias; the ON condition is
never written by the caller.  It is derived from the base table's
foreign-key index, keyed by ``(referenced table, sorted local columns)``:

- with ``through`` the lookup is a single dict access;
- without it exactly one foreign key to that table must exist, otherwise
  :class:`~seaquel.errors.AmbiguousJoinError` lists the candidates.

Joined columns are selected as ``"_<as>"."col" AS "_<as>_col"`` and base
columns as ``"<table>"."col" AS "<table>_col"``; :class:`RowShape` maps each
flat row back to ``{<table>: {...}, <as>: {...}}``.

Examples:
    >>> rows = await notifications.select_all(join=[
    ...     Join(users, "user", where={"first_name": "Darth"}, type="left"),
    ... ])
    >>> rows[0]["user"]["first_name"]
    'Darth'
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from seaquel.errors import AmbiguousJoinError, JoinResolutionError, StatementError
from seaquel.fragments import ParamList, where_clause

if TYPE_CHECKING:
    from seaquel.schema import Constraint, Table

# PostgreSQL truncates longer identifiers (NAMEDATALEN - 1)
MAX_IDENTIFIER_BYTES = 63

JOIN_TYPES: dict[str, str] = {
    "inner": "INNER",
    "left": "LEFT",
    "right": "RIGHT",
    "full": "FULL",
}


@dataclass(frozen=True)
class Join:
    """One requested join.

    Attributes:
        table: Joined table, or its registered name
        as_: Alias; the joined fields appear under this key
        through: Local foreign-key column(s) selecting the constraint
        where: Conditions on the joined table (same key convention as filters)
        type: ``inner`` (default), ``left``, ``right`` or ``full``
        filter_only: Join only to narrow rows; select nothing from it
    """

    table: Table | str
    as_: str
    through: str | Sequence[str] | None = None
    where: Mapping[str, Any] | None = None
    type: str = "inner"
    filter_only: bool = False

    @classmethod
    def coerce(cls, spec: Join | Mapping[str, Any]) -> Join:
        """Accept a :class:`Join` or a mapping with ``table``/``as`` keys."""
        if isinstance(spec, Join):
            return spec
        try:
            table = spec["table"] if "table" in spec else spec["model"]
            alias = spec["as"] if "as" in spec else spec["as_"]
        except KeyError as exc:
            raise StatementError(f"Join spec {dict(spec)!r} needs 'table' and 'as'") from exc
        return cls(
            table=table,
            as_=alias,
            through=spec.get("through"),
            where=spec.get("where"),
            type=spec.get("type") or "inner",
            filter_only=bool(spec.get("filter_only", spec.get("filterOnly", False))),
        )

    @property
    def table_name(self) -> str:
        return self.table if isinstance(self.table, str) else self.table.name

    @property
    def through_columns(self) -> tuple[str, ...] | None:
        if self.through is None:
            return None
        if isinstance(self.through, str):
            return (self.through,)
        return tuple(self.through)


@dataclass(frozen=True)
class ResolvedJoin:
    """A join bound to its table and foreign-key constraint."""

    join: Join
    table: Table
    constraint: Constraint

    @property
    def alias(self) -> str:
        return f"_{self.join.as_}"

    @property
    def prefix(self) -> str:
        return f"{self.alias}_"

    @property
    def keyword(self) -> str:
        kind = self.join.type.lower()
        if kind not in JOIN_TYPES:
            raise StatementError(
                f"Unsupported join type {self.join.type!r}; use one of {sorted(JOIN_TYPES)}"
            )
        return JOIN_TYPES[kind]


def resolve_join(base: Table, spec: Join | Mapping[str, Any]) -> ResolvedJoin:
    join = Join.coerce(spec)
    joined = join.table if not isinstance(join.table, str) else base.schema.get_table(join.table)
    candidates = base.foreign_keys_to(join.table_name)

    through = join.through_columns
    if through is not None:
        constraint = candidates.get(tuple(sorted(through)))
        if constraint is None:
            raise JoinResolutionError(
                f"No foreign key on {base.name!r} through {list(through)} "
                f"references {join.table_name!r}"
            ).with_context(table=base.name)
    elif not candidates:
        raise JoinResolutionError(
            f"No foreign key on {base.name!r} references {join.table_name!r}"
        ).with_context(table=base.name)
    elif len(candidates) > 1:
        names = sorted(c.name for c in candidates.values())
        raise AmbiguousJoinError(
            f"{len(names)} foreign keys on {base.name!r} reference {join.table_name!r}; "
            "pass through= to pick one",
            candidates=names,
        ).with_context(table=base.name)
    else:
        (constraint,) = candidates.values()

    return ResolvedJoin(join=join, table=joined, constraint=constraint)


def resolve_joins(base: Table, specs: Sequence[Join | Mapping[str, Any]]) -> list[ResolvedJoin]:
    resolved = [resolve_join(base, spec) for spec in specs]
    aliases = [item.join.as_ for item in resolved]
    duplicates = sorted({alias for alias in aliases if aliases.count(alias) > 1})
    if duplicates or base.name in aliases:
        raise StatementError(
            f"Join aliases must be unique and differ from {base.name!r}: {aliases}"
        ).with_context(table=base.name)
    return resolved


def join_clause(base: Table, resolved: ResolvedJoin, params: ParamList) -> str:
    """``<TYPE> JOIN <table> "_<as>" ON <fk match> [AND <where>]``."""
    d = base.dialect
    alias = resolved.alias
    constraint = resolved.constraint
    conditions = [
        f"{d.qualify(base.name, local)} = {d.qualify(alias, remote)}"
        for local, remote in zip(constraint.columns, constraint.referenced_columns, strict=True)
    ]
    extra = where_clause(d, resolved.join.where or {}, params, qualifier=alias)
    if extra:
        conditions.append(extra)
    return (
        f"{resolved.keyword} JOIN {resolved.table.qualified_name} {d.quote(alias)} "
        f"ON {' AND '.join(conditions)}"
    )


# =============================================================================
# Row shaping
# =============================================================================


@dataclass(frozen=True)
class RowShape:
    """How flat, prefixed result columns map back to nested mappings.

    ``prefixes`` maps each output key to its column prefix and ``columns``
    lists the fields each key owns, in select order.
    """

    prefixes: dict[str, str] = field(default_factory=dict)
    columns: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def reshape(self, row: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        nested: dict[str, dict[str, Any]] = {}
        for key, prefix in self.prefixes.items():
            nested[key] = {name: row.get(prefix + name) for name in self.columns[key]}
        return nested

    def flatten(self, nested: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
        """Inverse of :meth:`reshape`."""
        flat: dict[str, Any] = {}
        for key, fields in nested.items():
            prefix = self.prefixes[key]
            for name, value in fields.items():
                flat[prefix + name] = value
        return flat


def flatten_row(nested: Mapping[str, Mapping[str, Any]], shape: RowShape) -> dict[str, Any]:
    return shape.flatten(nested)


def _column_alias(prefix: str, name: str) -> str:
    alias = prefix + name
    if len(alias.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
        raise StatementError(
            f"Column alias {alias!r} exceeds {MAX_IDENTIFIER_BYTES} bytes and would be truncated; "
            "use a shorter join alias"
        )
    return alias


def select_list(base: Table, resolved: Sequence[ResolvedJoin]) -> tuple[str, RowShape]:
    """Aliased SELECT list for the base table and every fetching join.

    Raises:
        StatementError: When a generated column alias is longer than
            :data:`MAX_IDENTIFIER_BYTES`.
    """
    d = base.dialect
    prefixes = {base.name: f"{base.name}_"}
    columns = {base.name: tuple(base.column_names)}
    selected = [
        f"{d.qualify(base.name, name)} AS {d.quote(_column_alias(prefixes[base.name], name))}"
        for name in base.column_names
    ]
    for item in resolved:
        if item.join.filter_only:
            continue
        prefixes[item.join.as_] = item.prefix
        columns[item.join.as_] = tuple(item.table.column_names)
        selected.extend(
            f"{d.qualify(item.alias, name)} AS {d.quote(_column_alias(item.prefix, name))}"
            for name in item.table.column_names
        )
    return ", ".join(selected), RowShape(prefixes=prefixes, columns=columns)


__all__ = [
    "JOIN_TYPES",
    "MAX_IDENTIFIER_BYTES",
    "Join",
    "ResolvedJoin",
    "RowShape",
    "flatten_row",
    "join_clause",
    "resolve_join",
    "resolve_joins",
    "select_list",
]
