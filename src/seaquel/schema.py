"""
Schema registry: the in-memory model of tables, columns, constraints,
indexes and sequences.

The registry is declared once at startup and only read afterwards.  It has
two consumers: the statement builder, which turns a :class:`Table` plus a
plain mapping into SQL, and the schema-diff collaborator, which receives
:meth:`Schema.describe` and compares it with the live database.

Manifesto:
    - **Declare once:** Tables, columns and constraints live in one place
    - **Describe, never apply:** The model produces a description for a
      diff tool; DDL is always reviewed and run by a human
    - **Constraints drive joins:** Foreign keys are the only source of join
      conditions, indexed for O(1) lookup

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────┐
        │ Schema (dialect="postgres")                                │
        │   tables:    [Table, ...]        (ordered)                 │
        │   sequences: [Sequence, ...]     (from SERIAL columns)     │
        └───────────────────────────────────────────────────────────┘
                 │
                 ▼
        ┌───────────────────────────────────────────────────────────┐
        │ Table "users" (namespace "public")                         │
        │   columns:     id, email, ...   (ColumnBuilder → Column)   │
        │   constraints: users_id_pk, users_email_unique, ...        │
        │   indexes:     index_users_banned (BTREE)                  │
        │   fk index:    {"teams": {("team_id",): users_team_id_fk}} │
        └───────────────────────────────────────────────────────────┘

Examples:
    >>> db = connect("postgres://localhost/app")
    >>> users = db.add_table("users")
    >>> users.add_column("id", "serial").primary_key()
    >>> users.add_column("email", str).unique()
    >>> db.table_names()
    ['users']

Guardrails:
    ❌ DON'T: Register two tables with the same name (accepted, but the
       name lookup returns the last one and a warning is logged)
    ✅ DO: Declare every table once at startup

    ❌ DON'T: Mutate the schema while statements are being issued
    ✅ DO: Treat the registry as read-only after setup

Tags:
    schema, registry, ddl-description, constraints, seaquel

Doc-Types:
    - API Reference
    - Schema Documentation
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from seaquel.builder import (
    build_delete,
    build_delete_where,
    build_insert,
    build_select,
    build_update,
    build_update_where,
)
from seaquel.columns import Column, ColumnBuilder, ColumnType, sequence_name
from seaquel.dialect import Dialect, get_dialect
from seaquel.errors import ConfigError, SchemaError
from seaquel.joins import Join
from seaquel.logging import get_logger
from seaquel.timestamps import utc_now_naive

if TYPE_CHECKING:
    from seaquel.adapters.base import DatabaseClient

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "public"


class ConstraintKind(str, Enum):
    PRIMARY = "primary"
    UNIQUE = "unique"
    FOREIGN = "foreign"


class IndexMethod(str, Enum):
    GIST = "GIST"
    BTREE = "BTREE"


@dataclass(frozen=True)
class Constraint:
    name: str
    kind: ConstraintKind
    columns: tuple[str, ...]
    namespace: str = DEFAULT_NAMESPACE
    referenced_table: str | None = None
    referenced_columns: tuple[str, ...] = ()

    def describe(self) -> dict[str, Any]:
        description: dict[str, Any] = {
            "name": self.name,
            "schema": self.namespace,
            "type": self.kind.value,
            "columns": list(self.columns),
        }
        if self.kind is ConstraintKind.FOREIGN:
            description["referenced_table"] = self.referenced_table
            description["referenced_columns"] = list(self.referenced_columns)
        return description


@dataclass(frozen=True)
class Index:
    name: str
    columns: tuple[str, ...]
    method: IndexMethod = IndexMethod.GIST

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.method.value, "columns": list(self.columns)}


@dataclass(frozen=True)
class Sequence:
    """Auto-increment generator behind a SERIAL column (64-bit signed bounds)."""

    name: str
    namespace: str = DEFAULT_NAMESPACE
    data_type: str = "bigint"
    numeric_precision: int = 64
    numeric_precision_radix: int = 2
    numeric_scale: int = 0
    start_value: str = "1"
    minimum_value: str = "1"
    maximum_value: str = "9223372036854775807"
    increment: str = "1"
    cycle: bool = False

    def describe(self) -> dict[str, Any]:
        return {
            "data_type": self.data_type,
            "numeric_precision": self.numeric_precision,
            "numeric_precision_radix": self.numeric_precision_radix,
            "numeric_scale": self.numeric_scale,
            "start_value": self.start_value,
            "minimum_value": self.minimum_value,
            "maximum_value": self.maximum_value,
            "increment": self.increment,
            "schema": self.namespace,
            "name": self.name,
            "cycle": self.cycle,
        }


def _as_tuple(columns: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(columns, str):
        return (columns,)
    return tuple(columns)


class Table:
    """A registered table: declaration API plus async CRUD.

    CRUD methods build a statement and hand it to the schema's client, which
    routes it to the ambient transaction's connection when there is one.
    """

    def __init__(self, schema: Schema, name: str, namespace: str = DEFAULT_NAMESPACE):
        self.schema = schema
        self.name = name
        self.namespace = namespace
        self._columns: dict[str, ColumnBuilder] = {}
        self.constraints: list[Constraint] = []
        self.indexes: list[Index] = []
        self.primary_keys: list[str] = []
        self._foreign_keys: dict[str, dict[tuple[str, ...], Constraint]] = {}

    def __repr__(self) -> str:
        return f"Table({self.namespace}.{self.name}, columns={self.column_names})"

    @property
    def dialect(self) -> Dialect:
        return self.schema.dialect

    @property
    def qualified_name(self) -> str:
        return self.dialect.qualify(self.namespace, self.name)

    # -- columns -----------------------------------------------------------

    def add_column(self, name: str, column_type: ColumnType | str | type) -> ColumnBuilder:
        kind = ColumnType.coerce(column_type)
        if name in self._columns:
            raise SchemaError(f"Column {name!r} already declared on {self.name!r}").with_context(
                table=self.name
            )
        builder = ColumnBuilder(self, name, kind)
        self._columns[name] = builder
        if kind.is_sequence_backed:
            self.schema.add_sequence(Sequence(sequence_name(self.name), namespace=self.namespace))
        return builder

    def get_column(self, name: str) -> ColumnBuilder:
        try:
            return self._columns[name]
        except KeyError:
            raise SchemaError(f"Unknown column {name!r} on {self.name!r}").with_context(
                table=self.name
            ) from None

    @property
    def columns(self) -> list[Column]:
        return [builder.build() for builder in self._columns.values()]

    @property
    def column_names(self) -> list[str]:
        return list(self._columns)

    def add_foreign_key(self, name: str, referenced: ColumnBuilder) -> ColumnBuilder:
        """Add a column typed like ``referenced`` and a foreign key to it."""
        builder = self.add_column(name, referenced.type.reference_type)
        builder.foreign_key(referenced.table, [referenced.name])
        return builder

    def add_created_at_column(self, name: str = "created_at") -> ColumnBuilder:
        """Timestamp set to the current UTC time on insert."""
        return self.add_column(name, ColumnType.DATETIME).on_insert(lambda value: utc_now_naive())

    def add_updated_at_column(self, name: str = "updated_at") -> ColumnBuilder:
        """Timestamp set to the current UTC time on insert and on every update."""
        return (
            self.add_column(name, ColumnType.DATETIME)
            .on_insert(lambda value: utc_now_naive())
            .on_update(lambda value: utc_now_naive())
        )

    def column_list(self, alias: str | None = None, aliased: bool = True) -> str:
        """Quoted column list, optionally prefixed with ``alias`` and renamed ``<alias>_<col>``."""
        d = self.dialect
        if not alias:
            return ", ".join(d.quote(name) for name in self._columns)
        if aliased:
            return ", ".join(
                f"{alias}.{d.quote(name)} AS {d.quote(f'{alias}_{name}')}" for name in self._columns
            )
        return ", ".join(f"{alias}.{d.quote(name)}" for name in self._columns)

    # -- constraints and indexes -------------------------------------------

    def primary_key(self, name: str, *columns: str) -> Table:
        self.constraints.append(
            Constraint(name, ConstraintKind.PRIMARY, tuple(columns), namespace=self.namespace)
        )
        self.primary_keys.extend(columns)
        return self

    def unique(self, name: str, *columns: str) -> Table:
        self.constraints.append(
            Constraint(name, ConstraintKind.UNIQUE, tuple(columns), namespace=self.namespace)
        )
        return self

    def foreign_key(
        self,
        name: str,
        columns: str | Iterable[str],
        referenced_table: Table | str,
        referenced_columns: str | Iterable[str],
    ) -> Table:
        ref_name = referenced_table if isinstance(referenced_table, str) else referenced_table.name
        constraint = Constraint(
            name,
            ConstraintKind.FOREIGN,
            _as_tuple(columns),
            namespace=self.namespace,
            referenced_table=ref_name,
            referenced_columns=_as_tuple(referenced_columns),
        )
        if len(constraint.columns) != len(constraint.referenced_columns):
            raise SchemaError(
                f"Foreign key {name!r} maps {len(constraint.columns)} column(s) "
                f"to {len(constraint.referenced_columns)}"
            ).with_context(table=self.name)

        key = tuple(sorted(constraint.columns))
        by_columns = self._foreign_keys.setdefault(ref_name, {})
        if key in by_columns:
            raise SchemaError(
                f"Foreign key {name!r} duplicates {by_columns[key].name!r}"
            ).with_context(table=self.name)
        by_columns[key] = constraint
        self.constraints.append(constraint)
        return self

    def foreign_keys_to(self, table_name: str) -> Mapping[tuple[str, ...], Constraint]:
        """Foreign keys referencing ``table_name``, keyed by sorted local columns."""
        return self._foreign_keys.get(table_name, {})

    def add_index(
        self, name: str, columns: str | Iterable[str], method: IndexMethod | str | None = None
    ) -> Table:
        if isinstance(method, str):
            try:
                method = IndexMethod(method.upper())
            except ValueError:
                raise SchemaError(
                    f"Unsupported index method {method!r}; use GIST or BTREE"
                ).with_context(table=self.name) from None
        self.indexes.append(Index(name, _as_tuple(columns), method or IndexMethod.GIST))
        return self

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schema": self.namespace,
            "columns": [column.describe() for column in self.columns],
            "constraints": [constraint.describe() for constraint in self.constraints],
            "indexes": [index.describe() for index in self.indexes],
        }

    # -- statements ----------------------------------------------------------

    def _client(self) -> DatabaseClient:
        client = self.schema.client
        if client is None:
            raise ConfigError(f"Table {self.name!r} is not attached to a database client")
        return client

    async def insert(self, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Insert one row and return it as stored (``RETURNING *``)."""
        stmt = build_insert(self, values)
        return await self._client().find_one(stmt.sql, stmt.params)

    async def update(self, values: Mapping[str, Any]) -> int:
        """Update the row identified by the primary key in ``values``."""
        stmt = build_update(self, values)
        return await self._client().execute(stmt.sql, stmt.params)

    async def update_where(self, values: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        stmt = build_update_where(self, values, where)
        return await self._client().execute(stmt.sql, stmt.params)

    async def delete(self, values: Mapping[str, Any]) -> int:
        stmt = build_delete(self, values)
        return await self._client().execute(stmt.sql, stmt.params)

    async def delete_where(self, where: Mapping[str, Any]) -> int:
        stmt = build_delete_where(self, where)
        return await self._client().execute(stmt.sql, stmt.params)

    async def select_one(self, where: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        stmt, _ = build_select(self, where, limit=1)
        return await self._client().find_one(stmt.sql, stmt.params)

    async def select_all(
        self,
        where: Mapping[str, Any] | None = None,
        *,
        group_by: str | None = None,
        order_by: str | None = None,
        limit: int | str | None = None,
        offset: int | str | None = None,
        join: list[Join | Mapping[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows; with ``join`` every row is nested per table/alias."""
        stmt, shape = build_select(
            self,
            where,
            group_by=group_by,
            order_by=order_by,
            limit=limit,
            offset=offset,
            join=join,
        )
        rows = await self._client().find(stmt.sql, stmt.params)
        if shape is None:
            return rows
        return [shape.reshape(row) for row in rows]


class Schema:
    """Root of the model: ordered tables and sequences plus a dialect tag."""

    def __init__(self, dialect: Dialect | str = "postgres", client: DatabaseClient | None = None):
        self.dialect: Dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect
        self.client = client
        self.tables: list[Table] = []
        self.sequences: list[Sequence] = []
        self._by_name: dict[str, Table] = {}

    def add_table(self, name: str, namespace: str = DEFAULT_NAMESPACE) -> Table:
        if name in self._by_name:
            logger.warning("schema.duplicate_table", table=name)
        table = Table(self, name, namespace)
        self.tables.append(table)
        self._by_name[name] = table
        return table

    def get_table(self, name: str) -> Table:
        try:
            return self._by_name[name]
        except KeyError:
            raise SchemaError(f"Unknown table {name!r}").with_context(table=name) from None

    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    def add_sequence(self, sequence: Sequence) -> None:
        self.sequences.append(sequence)

    def describe(self) -> dict[str, Any]:
        """Plain-data description handed to the schema-diff collaborator."""
        return {
            "dialect": self.dialect.name,
            "sequences": [sequence.describe() for sequence in self.sequences],
            "tables": [table.describe() for table in self.tables],
        }


__all__ = [
    "Constraint",
    "ConstraintKind",
    "DEFAULT_NAMESPACE",
    "Index",
    "IndexMethod",
    "Schema",
    "Sequence",
    "Table",
]
