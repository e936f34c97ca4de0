"""Database client base class.

Manifesto:
    Everything above the driver talks to a :class:`DatabaseClient`: the
    table CRUD methods, the raw ``query_*`` helpers and the transaction
    scope.  The base class owns what is driver independent:

    - **Routing:** a statement goes to the ambient transaction's connection
      when one is bound to the current flow, otherwise it borrows a pooled
      connection for that one statement (autocommit)
    - **Enrichment:** driver failures are re-raised as
      :class:`~seaquel.errors.QueryError` carrying the SQL and parameters
    - **Logging:** one ``query.executed`` debug event per statement

    Subclasses only implement acquire/release, the raw driver call and
    ``close``.

Features:
    - Per-client ``ContextVar`` holding the ambient transaction
    - ``execute`` (row count), ``find`` (all rows), ``find_one`` (first row)
    - BEGIN / COMMIT / ROLLBACK text from the client's dialect

Tags:
    database, client, adapter-pattern, contextvars, seaquel

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from contextvars import ContextVar, Token
from enum import Enum
from typing import TYPE_CHECKING, Any

from seaquel.dialect import Dialect, get_dialect
from seaquel.errors import IntegrityError, QueryError
from seaquel.logging import get_logger

from .types import ConnectionConfig

if TYPE_CHECKING:
    from seaquel.transaction import TransactionContext

logger = get_logger(__name__)


class FetchMode(str, Enum):
    """What a statement returns to the caller."""

    EXECUTE = "execute"  # affected row count
    ALL = "all"  # every row as a dict
    ONE = "one"  # first row or None


def format_query_error(exc: BaseException, sql: str, params: list[Any]) -> str:
    return f"{exc}. SQL: {sql} params: {json.dumps(params, indent=2, default=str)}"


class DatabaseClient(ABC):
    """
    Abstract client: ambient-transaction routing over a connection source.

    Connections are opaque to this class; it hands them back to the
    subclass's ``_run`` and ``release_connection``.
    """

    def __init__(self, config: ConnectionConfig, dialect: Dialect | str = "postgres"):
        self._config = config
        self._dialect: Dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect
        self._transaction: ContextVar[TransactionContext | None] = ContextVar(  # noqa: B039
            f"seaquel_transaction_{id(self):x}", default=None
        )

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    # -- ambient transaction -------------------------------------------------

    def current_transaction(self) -> TransactionContext | None:
        """Transaction bound to the current flow on this client, if any."""
        return self._transaction.get()

    def bind_transaction(self, tx: TransactionContext) -> Token:
        return self._transaction.set(tx)

    def reset_transaction(self, token: Token) -> None:
        self._transaction.reset(token)

    # -- driver hooks --------------------------------------------------------

    @abstractmethod
    async def acquire_connection(self) -> Any:
        """Borrow a connection; waits while the pool is exhausted."""
        ...

    @abstractmethod
    async def release_connection(self, connection: Any) -> None:
        ...

    @abstractmethod
    async def _run(self, connection: Any, mode: FetchMode, sql: str, params: list[Any]) -> Any:
        """Run one statement with the driver, no error handling."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        """Driver exception types to translate into :class:`QueryError`."""
        ...

    def is_integrity_violation(self, exc: BaseException) -> bool:
        return False

    # -- execution -----------------------------------------------------------

    async def run_on(
        self,
        connection: Any,
        mode: FetchMode,
        sql: str,
        params: list[Any],
        *,
        in_transaction: bool = False,
    ) -> Any:
        """Run one statement on ``connection`` with logging and error enrichment."""
        params = list(params)
        started = time.perf_counter()
        try:
            result = await self._run(connection, mode, sql, params)
        except self.driver_errors() as exc:
            logger.error("query.failed", sql=sql, error=str(exc), in_transaction=in_transaction)
            error_cls = IntegrityError if self.is_integrity_violation(exc) else QueryError
            raise error_cls(format_query_error(exc, sql, params), cause=exc).with_context(
                sql=sql, params=params
            ) from exc
        logger.debug(
            "query.executed",
            sql=sql,
            param_count=len(params),
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
            in_transaction=in_transaction,
        )
        return result

    async def _dispatch(self, mode: FetchMode, sql: str, params: list[Any] | None) -> Any:
        tx = self.current_transaction()
        if tx is not None:
            return await tx.run(mode, sql, params)

        connection = await self.acquire_connection()
        try:
            return await self.run_on(connection, mode, sql, params or [])
        finally:
            await self.release_connection(connection)

    async def execute(self, sql: str, params: list[Any] | None = None) -> int:
        """Run a statement and return the affected row count."""
        return await self._dispatch(FetchMode.EXECUTE, sql, params)

    async def find(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        return await self._dispatch(FetchMode.ALL, sql, params)

    async def find_one(self, sql: str, params: list[Any] | None = None) -> dict[str, Any] | None:
        return await self._dispatch(FetchMode.ONE, sql, params)

    # -- transaction control -------------------------------------------------

    async def begin_transaction(self, connection: Any, isolation_level: str | None = None) -> None:
        await self.run_on(
            connection, FetchMode.EXECUTE, self._dialect.begin(isolation_level), [], in_transaction=True
        )

    async def commit(self, connection: Any) -> None:
        await self.run_on(connection, FetchMode.EXECUTE, self._dialect.commit(), [], in_transaction=True)

    async def rollback(self, connection: Any) -> None:
        await self.run_on(connection, FetchMode.EXECUTE, self._dialect.rollback(), [], in_transaction=True)


__all__ = [
    "DatabaseClient",
    "FetchMode",
    "format_query_error",
]
