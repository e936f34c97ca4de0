"""PostgreSQL client on an asyncpg pool."""

from __future__ import annotations

import asyncio
from typing import Any

import asyncpg

from seaquel.errors import DatabaseConnectionError
from seaquel.logging import get_logger

from .base import DatabaseClient, FetchMode
from .types import ConnectionConfig

logger = get_logger(__name__)


def parse_row_count(status: str | None) -> int:
    """Row count from a command tag such as ``UPDATE 3`` or ``INSERT 0 1``."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class PostgresClient(DatabaseClient):
    """
    asyncpg-backed client.

    The pool is created lazily on first use, so constructing a client (and a
    ``Database``) never touches the network.  Pass ``pool`` to reuse an
    existing asyncpg pool.
    """

    def __init__(self, config: ConnectionConfig, *, pool: asyncpg.Pool | None = None):
        super().__init__(config, "postgres")
        self._pool = pool
        self._pool_lock = asyncio.Lock()

    async def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            async with self._pool_lock:
                if self._pool is None:
                    self._pool = await self._create_pool()
        return self._pool

    async def _create_pool(self) -> asyncpg.Pool:
        config = self._config
        try:
            pool = await asyncpg.create_pool(**config.to_pool_kwargs())
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL at {config.host}:{config.port}/{config.database}: {exc}",
                cause=exc,
            ) from exc
        logger.info(
            "pool.created",
            host=config.host,
            port=config.port,
            database=config.database,
            min_size=config.min_size,
            max_size=config.max_size,
        )
        return pool

    async def acquire_connection(self) -> asyncpg.Connection:
        pool = await self.pool()
        return await pool.acquire()

    async def release_connection(self, connection: asyncpg.Connection) -> None:
        if self._pool is not None:
            await self._pool.release(connection)

    async def _run(
        self, connection: asyncpg.Connection, mode: FetchMode, sql: str, params: list[Any]
    ) -> Any:
        if mode is FetchMode.EXECUTE:
            return parse_row_count(await connection.execute(sql, *params))
        if mode is FetchMode.ONE:
            record = await connection.fetchrow(sql, *params)
            return dict(record) if record is not None else None
        return [dict(record) for record in await connection.fetch(sql, *params)]

    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (asyncpg.PostgresError, asyncpg.InterfaceError)

    def is_integrity_violation(self, exc: BaseException) -> bool:
        return isinstance(exc, asyncpg.IntegrityConstraintViolationError)

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("pool.closed", host=self._config.host, database=self._config.database)


__all__ = [
    "PostgresClient",
    "parse_row_count",
]
