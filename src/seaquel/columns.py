"""Column descriptors.

A column is declared through a fluent :class:`ColumnBuilder` and read by
everything else as an immutable :class:`Column` record::

    users.add_column("id", ColumnType.SERIAL).primary_key()
    users.add_column("email", str).unique()
    users.add_column("banned", bool).index(method="btree").default(False)
    users.add_column("password", str).nullable()

Modifiers that create constraints or indexes (``unique``, ``primary_key``,
``foreign_key``, ``index``) register them on the owning table immediately;
the column-local attributes (nullability, default, hooks) live in the
builder until :meth:`ColumnBuilder.build` freezes them.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from seaquel.errors import SchemaError

if TYPE_CHECKING:
    from seaquel.schema import Table

ValueHook = Callable[[Any], Any]


class ColumnType(str, Enum):
    """Closed set of column kinds.

    Each kind knows its storage type, whether it is backed by a sequence, and
    which kind a foreign key pointing at it should use.
    """

    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    SERIAL = "serial"

    @property
    def storage_type(self) -> str:
        return _STORAGE_TYPES[self]

    @property
    def is_sequence_backed(self) -> bool:
        return self is ColumnType.SERIAL

    @property
    def reference_type(self) -> ColumnType:
        """Kind of a column holding a foreign key to a column of this kind."""
        if self is ColumnType.SERIAL:
            return ColumnType.INTEGER
        return self

    @classmethod
    def coerce(cls, token: Any) -> ColumnType:
        """Map a type token (enum member, its value, or a Python type) to a kind."""
        if isinstance(token, cls):
            return token
        if isinstance(token, type) and token in _PYTHON_TYPES:
            return _PYTHON_TYPES[token]
        if isinstance(token, str):
            try:
                return cls(token.lower())
            except ValueError:
                pass
        raise SchemaError(
            f"Unsupported column type {token!r}. "
            f"Use one of {[t.value for t in cls]} or str/int/bool/datetime"
        )


_STORAGE_TYPES: dict[ColumnType, str] = {
    ColumnType.TEXT: "character varying(255)",
    ColumnType.NUMBER: "bigint",
    ColumnType.INTEGER: "integer",
    ColumnType.BOOLEAN: "boolean",
    ColumnType.DATETIME: "timestamp without time zone",
    ColumnType.SERIAL: "integer",
}

_PYTHON_TYPES: dict[type, ColumnType] = {
    str: ColumnType.TEXT,
    int: ColumnType.NUMBER,
    bool: ColumnType.BOOLEAN,
    datetime: ColumnType.DATETIME,
}


def sequence_name(table_name: str) -> str:
    return f"{table_name}_id_seq"


def render_default(value: Any) -> str | None:
    """Render a default for the schema description.

    Strings are SQL expressions and pass through verbatim (``"now()"``,
    ``"'draft'"``); Python literals are rendered.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Column:
    """Immutable column record read by the statement builder."""

    table: str
    name: str
    type: ColumnType
    nullable: bool = False
    default_value: Any = None
    on_insert: ValueHook | None = None
    on_update: ValueHook | None = None

    @property
    def storage_type(self) -> str:
        return self.type.storage_type

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.storage_type,
            "nullable": self.nullable,
            "default_value": render_default(self.default_value),
        }


class ColumnBuilder:
    """Fluent column declaration.

    Every modifier returns the builder so calls chain. ``build()`` returns
    the current :class:`Column`; the record is cached until the next
    modifier call.
    """

    def __init__(self, table: Table, name: str, column_type: ColumnType):
        self._table = table
        self.name = name
        self.type = column_type
        self._nullable = False
        self._default: Any = None
        self._on_insert: ValueHook | None = None
        self._on_update: ValueHook | None = None
        self._built: Column | None = None

        if column_type.is_sequence_backed:
            self._default = f"nextval('{sequence_name(table.name)}'::regclass)"

    def __repr__(self) -> str:
        return f"ColumnBuilder({self._table.name}.{self.name}, {self.type.value})"

    @property
    def table(self) -> Table:
        return self._table

    def _changed(self) -> ColumnBuilder:
        self._built = None
        return self

    # -- column-local attributes ------------------------------------------

    def nullable(self) -> ColumnBuilder:
        self._nullable = True
        return self._changed()

    def default(self, value: Any) -> ColumnBuilder:
        self._default = value
        return self._changed()

    def on_insert(self, hook: ValueHook) -> ColumnBuilder:
        """Transform the bound value on every insert (receives ABSENT when omitted)."""
        self._on_insert = hook
        return self._changed()

    def on_update(self, hook: ValueHook) -> ColumnBuilder:
        """Transform the bound value on every update (receives ABSENT when omitted)."""
        self._on_update = hook
        return self._changed()

    # -- table-level registrations ----------------------------------------

    def unique(self, name: str | None = None) -> ColumnBuilder:
        self._table.unique(name or f"{self._table.name}_{self.name}_unique", self.name)
        return self

    def primary_key(self, name: str | None = None) -> ColumnBuilder:
        self._table.primary_key(name or f"{self._table.name}_{self.name}_pk", self.name)
        return self

    def foreign_key(
        self,
        referenced_table: Table | str,
        referenced_columns: str | Sequence[str],
        name: str | None = None,
    ) -> ColumnBuilder:
        self._table.foreign_key(
            name or f"{self._table.name}_{self.name}_fk",
            [self.name],
            referenced_table,
            referenced_columns,
        )
        return self

    def index(self, name: str | None = None, method: str | None = None) -> ColumnBuilder:
        self._table.add_index(
            name or f"index_{self._table.name}_{self.name}",
            [self.name],
            method=method,
        )
        return self

    # -- finalization ------------------------------------------------------

    def build(self) -> Column:
        if self._built is None:
            self._built = Column(
                table=self._table.name,
                name=self.name,
                type=self.type,
                nullable=self._nullable,
                default_value=self._default,
                on_insert=self._on_insert,
                on_update=self._on_update,
            )
        return self._built


__all__ = [
    "Column",
    "ColumnBuilder",
    "ColumnType",
    "ValueHook",
    "render_default",
    "sequence_name",
]
