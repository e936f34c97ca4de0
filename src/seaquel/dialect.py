"""SQL dialect abstraction for statement generation.

The statement builder never writes placeholder or quoting syntax itself; it
asks a ``Dialect``.  Only PostgreSQL (``$1`` numbered placeholders, as
spoken by asyncpg) ships today, but the seam keeps the builder free of
driver details.

Manifesto:
    - **One interface:** Dialect protocol for every SQL fragment that differs
      between engines
    - **Zero coupling:** The builder never imports a database driver
    - **Safe identifiers:** Every table/column name is quoted by the dialect,
      never interpolated raw

Architecture::

    Statement Builder
    ┌────────────────────────────────────────────────────────────────┐
    │  params.bind(value)         →  dialect.placeholder(len - 1)    │
    │  f'{d.quote("users")}'      →  "users"                          │
    │  d.begin("SERIALIZABLE")    →  BEGIN ISOLATION LEVEL ...        │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
                     ┌──────────────────┐
                     │ PostgreSQL       │
                     │ $1, $2, $3       │
                     │ "quoted"."ident" │
                     └──────────────────┘

Examples:
    >>> from seaquel.dialect import get_dialect
    >>> d = get_dialect("postgres")
    >>> d.placeholder(0)
    '$1'
    >>> d.quote('we"ird')
    '"we""ird"'

Tags:
    dialect, sql, abstraction, postgresql, seaquel

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment (string) valid for the target
    database.
    """

    @property
    def name(self) -> str:
        """Dialect tag recorded in the schema description (e.g. ``'postgres'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Positional placeholder for the parameter at 0-based ``index``."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a single identifier."""
        ...

    def qualify(self, *parts: str) -> str:
        """Quote and dot-join identifier parts (``schema.table.column``)."""
        ...

    def begin(self, isolation_level: str | None = None) -> str:
        """Statement opening a transaction."""
        ...

    def commit(self) -> str:
        ...

    def rollback(self) -> str:
        ...


class PostgreSQLDialect:
    """PostgreSQL dialect: ``$n`` placeholders (asyncpg), double-quoted identifiers."""

    @property
    def name(self) -> str:
        return "postgres"

    def placeholder(self, index: int) -> str:
        return f"${index + 1}"

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def qualify(self, *parts: str) -> str:
        return ".".join(self.quote(part) for part in parts if part)

    def begin(self, isolation_level: str | None = None) -> str:
        # see https://www.postgresql.org/docs/current/sql-begin.html
        if isolation_level:
            return f"BEGIN ISOLATION LEVEL {isolation_level}"
        return "BEGIN"

    def commit(self) -> str:
        return "COMMIT"

    def rollback(self) -> str:
        return "ROLLBACK"


# Dialects are stateless
_DIALECTS: dict[str, Dialect] = {
    "postgres": PostgreSQLDialect(),
    "postgresql": PostgreSQLDialect(),  # alias
}


def get_dialect(name: str) -> Dialect:
    """Get a dialect by name.

    Raises:
        ValueError: If ``name`` is not registered.
    """
    key = name.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{name}'. Supported: {sorted(set(_DIALECTS) - {'postgresql'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "PostgreSQLDialect",
    "get_dialect",
    "register_dialect",
]
