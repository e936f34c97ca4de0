"""
Transactional context: one borrowed connection shared by a logical flow.

Manifesto:
    Callers should not thread a connection handle through every function
    that takes part in a transaction.  ``transaction(work)`` borrows one
    connection, issues ``BEGIN``, and binds a :class:`TransactionContext`
    to the current logical flow.  Every statement issued through the same
    client on that flow, including from tasks spawned inside it, is routed
    to that connection until the scope ends.

Architecture:
    ::

        transaction_scope(client)
          │
          ├─ client.acquire_connection()           ──► conn
          ├─ client ContextVar ← TransactionContext(conn)
          ├─ BEGIN [ISOLATION LEVEL x]
          │
          │    users.insert(...)  ─┐
          │    teams.update(...)  ─┼─► client.execute → ctx.run (lock) → conn
          │    asyncio task ...   ─┘
          │
          ├─ COMMIT              (work returned)
          │  ROLLBACK, re-raise  (work raised)
          └─ finally: ContextVar reset, client.release_connection(conn)

    States::

        IDLE ──begin──► BEGAN ──commit──► COMMITTED
                          └────rollback──► ROLLED_BACK

Guardrails:
    ❌ DON'T: Open a transaction inside another on the same client and flow
    ✅ DO: Run the whole unit of work inside one ``transaction()``

    ❌ DON'T: Keep a TransactionContext around after its scope ends
    ✅ DO: Let the scope commit or roll back; a finished context rejects
       further statements

Tags:
    transaction, contextvars, asyncio, connection-affinity, seaquel

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, TypeVar

from seaquel.adapters.base import DatabaseClient, FetchMode
from seaquel.errors import TransactionError
from seaquel.logging import LogContext, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    IDLE = "idle"
    BEGAN = "began"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class IsolationLevel(str, Enum):
    """PostgreSQL isolation levels, rendered verbatim after ``ISOLATION LEVEL``."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"

    @classmethod
    def coerce(cls, value: IsolationLevel | str | None) -> IsolationLevel | None:
        """Accept a member, ``"repeatable read"`` or ``"REPEATABLE_READ"``."""
        if value is None or isinstance(value, cls):
            return value
        normalized = " ".join(str(value).replace("_", " ").upper().split())
        try:
            return cls(normalized)
        except ValueError:
            raise TransactionError(
                f"Unknown isolation level {value!r}; use one of {[level.value for level in cls]}"
            ) from None


class TransactionContext:
    """
    One transaction on one connection.

    Created by :func:`transaction_scope`, never reused.  Statements issued on
    the context are serialized by a lock, so tasks spawned inside the
    transaction can share it safely.
    """

    def __init__(
        self,
        client: DatabaseClient,
        connection: Any,
        isolation_level: IsolationLevel | None = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.client = client
        self.connection = connection
        self.isolation_level = isolation_level
        self.state = TransactionState.IDLE
        self.lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"TransactionContext(id={self.id!r}, state={self.state.value})"

    @property
    def is_active(self) -> bool:
        return self.state is TransactionState.BEGAN

    @property
    def is_finished(self) -> bool:
        return self.state in (TransactionState.COMMITTED, TransactionState.ROLLED_BACK)

    def _require_active(self, action: str) -> None:
        if not self.is_active:
            raise TransactionError(
                f"Cannot {action}: transaction {self.id} is {self.state.value}"
            ).with_context(isolation_level=self._level_name)

    @property
    def _level_name(self) -> str | None:
        return self.isolation_level.value if self.isolation_level else None

    async def begin(self) -> None:
        if self.state is not TransactionState.IDLE:
            raise TransactionError(f"Transaction {self.id} already {self.state.value}")
        await self.client.begin_transaction(self.connection, self._level_name)
        self.state = TransactionState.BEGAN
        logger.debug("transaction.begin", transaction_id=self.id, isolation_level=self._level_name)

    async def commit(self) -> None:
        async with self.lock:
            self._require_active("commit")
            try:
                await self.client.commit(self.connection)
            except BaseException:
                # PostgreSQL ends the transaction when COMMIT fails
                self.state = TransactionState.ROLLED_BACK
                raise
            self.state = TransactionState.COMMITTED
        logger.debug("transaction.commit", transaction_id=self.id)

    async def rollback(self) -> None:
        async with self.lock:
            self._require_active("roll back")
            try:
                await self.client.rollback(self.connection)
            finally:
                self.state = TransactionState.ROLLED_BACK
        logger.debug("transaction.rollback", transaction_id=self.id)

    async def run(self, mode: FetchMode, sql: str, params: list[Any] | None = None) -> Any:
        """Run one statement on the transaction's connection."""
        async with self.lock:
            self._require_active("run a statement")
            return await self.client.run_on(self.connection, mode, sql, params or [], in_transaction=True)

    async def execute(self, sql: str, params: list[Any] | None = None) -> int:
        return await self.run(FetchMode.EXECUTE, sql, params)

    async def find(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        return await self.run(FetchMode.ALL, sql, params)

    async def find_one(self, sql: str, params: list[Any] | None = None) -> dict[str, Any] | None:
        return await self.run(FetchMode.ONE, sql, params)


@asynccontextmanager
async def transaction_scope(
    client: DatabaseClient,
    isolation_level: IsolationLevel | str | None = None,
) -> AsyncIterator[TransactionContext]:
    """
    Bind a transaction to the current flow for the duration of the block.

    Commits when the block exits normally and rolls back when it raises.
    The work's exception is re-raised unchanged unless the rollback itself
    fails, in which case :class:`TransactionError` is raised with the work's
    exception as ``original``.

    Raises:
        TransactionError: When a transaction is already bound to this flow
            on ``client``.
    """
    current = client.current_transaction()
    if current is not None and not current.is_finished:
        raise TransactionError(
            f"Nested transactions are not supported (transaction {current.id} is active)"
        )
    level = IsolationLevel.coerce(isolation_level)

    connection = await client.acquire_connection()
    tx = TransactionContext(client, connection, level)
    token = client.bind_transaction(tx)
    try:
        with LogContext(transaction_id=tx.id):
            await tx.begin()
            try:
                yield tx
            except BaseException as exc:
                if tx.is_active:
                    try:
                        await tx.rollback()
                    except Exception as rollback_exc:
                        logger.error(
                            "transaction.rollback_failed",
                            transaction_id=tx.id,
                            error=str(rollback_exc),
                            original=repr(exc),
                        )
                        raise TransactionError(
                            f"Rollback of transaction {tx.id} failed",
                            original=exc,
                            cause=rollback_exc,
                        ) from rollback_exc
                raise
            else:
                if tx.is_active:
                    await tx.commit()
    finally:
        client.reset_transaction(token)
        await client.release_connection(connection)


async def run_in_transaction(
    client: DatabaseClient,
    work: Callable[[], Awaitable[T]],
    isolation_level: IsolationLevel | str | None = None,
) -> T:
    """Run ``work()`` in a transaction and return its result."""
    async with transaction_scope(client, isolation_level):
        return await work()


__all__ = [
    "IsolationLevel",
    "TransactionContext",
    "TransactionState",
    "run_in_transaction",
    "transaction_scope",
]
