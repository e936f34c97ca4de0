"""
seaquel - declarative PostgreSQL data access for asyncio.

Declare tables, columns, constraints and indexes once; seaquel generates
parameterized SQL for CRUD and join queries, routes every statement of a
transaction to one connection without passing it around, and describes the
declared schema for an external diff tool.

Examples:
    >>> from seaquel import connect, increment
    >>> db = connect("postgres://localhost/app")
    >>> users = db.add_table("users")
    >>> users.add_column("id", "serial").primary_key()
    >>> users.add_column("likes", int).default(0)
    >>> await users.update({"id": 1, "likes": increment(1)})
"""

from seaquel.adapters import ConnectionConfig, DatabaseClient, PostgresClient, parse_connection_url
from seaquel.builder import Statement
from seaquel.columns import Column, ColumnBuilder, ColumnType
from seaquel.database import Database, connect
from seaquel.errors import (
    AmbiguousJoinError,
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    IntegrityError,
    JoinResolutionError,
    PendingMigrationError,
    QueryError,
    SchemaError,
    SeaquelError,
    StatementError,
    TransactionError,
)
from seaquel.joins import Join, flatten_row
from seaquel.migrations import MigrationPlan, MigrationSafety, SchemaDiffer
from seaquel.schema import Constraint, Index, Schema, Sequence, Table
from seaquel.transaction import IsolationLevel, TransactionContext, TransactionState
from seaquel.values import ABSENT, Increment, increment

__version__ = "0.4.0"

__all__ = [
    "ABSENT",
    "AmbiguousJoinError",
    "Column",
    "ColumnBuilder",
    "ColumnType",
    "ConfigError",
    "ConnectionConfig",
    "Constraint",
    "Database",
    "DatabaseClient",
    "DatabaseConnectionError",
    "DatabaseError",
    "ErrorCategory",
    "Increment",
    "Index",
    "IntegrityError",
    "IsolationLevel",
    "Join",
    "JoinResolutionError",
    "MigrationPlan",
    "MigrationSafety",
    "PendingMigrationError",
    "PostgresClient",
    "QueryError",
    "Schema",
    "SchemaDiffer",
    "SchemaError",
    "SeaquelError",
    "Sequence",
    "Statement",
    "StatementError",
    "Table",
    "TransactionContext",
    "TransactionError",
    "TransactionState",
    "__version__",
    "connect",
    "flatten_row",
    "increment",
    "parse_connection_url",
]
