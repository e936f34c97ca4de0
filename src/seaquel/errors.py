"""
Structured error types for seaquel.

Provides a typed hierarchy of errors with metadata for categorization,
logging and diagnosis. Every failure the data-access layer surfaces is a
``SeaquelError`` subclass, so callers can tell a caller-input mistake (bad
column type, ambiguous join, missing primary key) from a failure of the
database itself.

Manifesto:
    - **Typed Error Hierarchy:** Build-time, execution and transaction
      failures are different types
    - **Rich Context:** Execution errors carry the SQL text and bound
      parameters so a failure can be diagnosed without re-deriving the
      statement
    - **Error Chaining:** The driver exception is preserved as ``cause``
    - **No Retries:** ``retryable`` is informational only; nothing in this
      package retries on its own

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        SeaquelError                             │
        │        (category, retryable, context, cause)                    │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ConfigError       SchemaError             StatementError       │
        │  (CONFIG)          (SCHEMA)                (STATEMENT)          │
        │                        │                                        │
        │                    JoinResolutionError                          │
        │                        │                                        │
        │                    AmbiguousJoinError                           │
        │                                                                 │
        │  DatabaseError     DatabaseConnectionError TransactionError     │
        │  (DATABASE)        (DATABASE, retryable)   (TRANSACTION)        │
        │       │                                                         │
        │  QueryError                                PendingMigrationError│
        │       │                                    (MIGRATION)          │
        │  IntegrityError                                                 │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = QueryError("syntax error").with_context(sql="NONSENSE", params=[1337])
    >>> err.context.sql
    'NONSENSE'
    >>> err.to_dict()["category"]
    'DATABASE'

Guardrails:
    ❌ DON'T: Raise bare Exception from builder or client code
    ✅ DO: Use the SeaquelError subclass for the failure kind

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, error-context, seaquel

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Bad URL, bad settings
    SCHEMA = "SCHEMA"             # Bad declaration, join resolution
    STATEMENT = "STATEMENT"       # Caller input the builder refuses
    DATABASE = "DATABASE"         # Pool, connection, query failures
    TRANSACTION = "TRANSACTION"   # Begin/commit/rollback, nesting
    MIGRATION = "MIGRATION"       # Pending DDL requiring review
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialized by ``to_dict()``. Anything that
    does not have a dedicated field goes to ``metadata``.

    Attributes:
        table: Table the failing operation targeted
        sql: SQL text that was sent (or would have been sent)
        params: Bound parameter values, in placeholder order
        isolation_level: Isolation level of the surrounding transaction
        metadata: Additional key-value pairs
    """

    table: str | None = None
    sql: str | None = None
    params: list[Any] | None = None
    isolation_level: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["table", "sql", "params", "isolation_level"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SeaquelError(Exception):
    """
    Base exception for all seaquel errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only pass what is specific to the failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SeaquelError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("failed").with_context(sql=sql, params=params)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CALLER-INPUT ERRORS (Never Retryable)
# =============================================================================


class ConfigError(SeaquelError):
    """Invalid connection string or settings."""

    default_category = ErrorCategory.CONFIG


class SchemaError(SeaquelError):
    """Invalid schema declaration or lookup (unknown table, bad type token)."""

    default_category = ErrorCategory.SCHEMA


class JoinResolutionError(SchemaError):
    """No foreign-key constraint links the base table to the joined table."""


class AmbiguousJoinError(JoinResolutionError):
    """Several foreign keys could satisfy a join and none was selected.

    ``candidates`` lists the names of the matching constraints so the caller
    can pick one with ``through=``.
    """

    def __init__(self, message: str, candidates: list[str], **kwargs: Any):
        super().__init__(message, **kwargs)
        self.candidates = candidates


class StatementError(SeaquelError):
    """The builder refused to generate SQL for the supplied values."""

    default_category = ErrorCategory.STATEMENT


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(SeaquelError):
    """Database query or connection error."""

    default_category = ErrorCategory.DATABASE


class DatabaseConnectionError(DatabaseError):
    """Pool creation or connection acquisition failed."""

    default_retryable = True


class QueryError(DatabaseError):
    """A statement failed on the server.

    The message embeds the SQL text and the JSON-serialized parameters.
    """


class IntegrityError(QueryError):
    """A statement violated a constraint (unique, foreign key, not null)."""


class TransactionError(SeaquelError):
    """Transaction misuse or a failed BEGIN/COMMIT/ROLLBACK.

    When a rollback fails after the wrapped work failed, ``original`` holds
    the work's exception and ``cause`` the rollback failure.
    """

    default_category = ErrorCategory.TRANSACTION

    def __init__(self, message: str, *, original: BaseException | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.original = original


class PendingMigrationError(SeaquelError):
    """The declared schema differs from the live database.

    ``statements`` is the DDL a human must review and apply.
    """

    default_category = ErrorCategory.MIGRATION

    def __init__(self, statements: list[str], **kwargs: Any):
        super().__init__(
            f"{len(statements)} pending migration statement(s) require review",
            **kwargs,
        )
        self.statements = statements


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SeaquelError",
    "ConfigError",
    "SchemaError",
    "JoinResolutionError",
    "AmbiguousJoinError",
    "StatementError",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryError",
    "IntegrityError",
    "TransactionError",
    "PendingMigrationError",
]
