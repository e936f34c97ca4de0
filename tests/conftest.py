"""
Shared pytest fixtures for seaquel tests.

This module provides:
- ``RecordingClient``: an in-memory ``DatabaseClient`` that records every
  statement with the connection it ran on and returns scripted results
- A small schema (users / notifications / teams) declared the way an
  application would declare it

Usage:
    async def test_something(client, users):
        client.queue({"id": 1})
        row = await users.insert({"email": "a@b.c"})
        assert client.statements[-1].sql.startswith("INSERT")
"""

from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import pytest

from seaquel.adapters.base import DatabaseClient, FetchMode
from seaquel.adapters.types import ConnectionConfig
from seaquel.database import Database
from seaquel.schema import Schema, Table


# =============================================================================
# Fake driver
# =============================================================================


class FakeDriverError(Exception):
    """Stands in for a driver-level failure."""


class FakeIntegrityViolation(FakeDriverError):
    pass


@dataclass
class FakeConnection:
    name: str


@dataclass
class RecordedStatement:
    connection: str
    mode: FetchMode
    sql: str
    params: list[Any] = field(default_factory=list)


class RecordingClient(DatabaseClient):
    """DatabaseClient that runs nothing and records everything."""

    def __init__(self) -> None:
        super().__init__(ConnectionConfig(database="seaquel_test"))
        self.statements: list[RecordedStatement] = []
        self.acquired: list[FakeConnection] = []
        self.released: list[FakeConnection] = []
        self.failures: dict[str, BaseException] = {}
        self.closed = False
        self._results: deque[Any] = deque()

    def queue(self, *results: Any) -> None:
        """Results returned, in order, by the next non-control statements."""
        self._results.extend(results)

    def fail_on(self, sql_prefix: str, exc: BaseException) -> None:
        self.failures[sql_prefix] = exc

    @property
    def sql(self) -> list[str]:
        return [statement.sql for statement in self.statements]

    async def acquire_connection(self) -> FakeConnection:
        connection = FakeConnection(f"conn-{len(self.acquired) + 1}")
        self.acquired.append(connection)
        return connection

    async def release_connection(self, connection: FakeConnection) -> None:
        self.released.append(connection)

    async def _run(self, connection: FakeConnection, mode: FetchMode, sql: str, params: list[Any]) -> Any:
        self.statements.append(RecordedStatement(connection.name, mode, sql, list(params)))
        for prefix, exc in self.failures.items():
            if sql.startswith(prefix):
                raise exc
        if sql in ("BEGIN", "COMMIT", "ROLLBACK") or sql.startswith("BEGIN "):
            return 0
        if self._results:
            return self._results.popleft()
        if mode is FetchMode.EXECUTE:
            return 1
        if mode is FetchMode.ALL:
            return []
        return None

    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (FakeDriverError,)

    def is_integrity_violation(self, exc: BaseException) -> bool:
        return isinstance(exc, FakeIntegrityViolation)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def db(client: RecordingClient) -> Database:
    return Database(client)


@pytest.fixture
def schema(db: Database) -> Schema:
    return db.schema


@pytest.fixture
def users(db: Database) -> Table:
    users = db.add_table("users")
    users.add_column("id", "serial").primary_key()
    users.add_column("first_name", str)
    users.add_column("last_name", str)
    users.add_column("email", str).unique()
    users.add_column("banned", bool).index(method="btree").default(False)
    users.add_column("password", str).nullable()
    users.add_column("invitation_code", str).on_insert(lambda value: value or "generated")
    users.add_column("likes", "integer").default(0)
    return users


@pytest.fixture
def notifications(db: Database, users: Table) -> Table:
    notifications = db.add_table("notifications")
    notifications.add_column("id", "serial").primary_key()
    notifications.add_column("text", str)
    notifications.add_foreign_key("user_id", users.get_column("id"))
    return notifications


@pytest.fixture
def messages(db: Database, users: Table) -> Table:
    """Two foreign keys to ``users``; joins need ``through``."""
    messages = db.add_table("messages")
    messages.add_column("id", "serial").primary_key()
    messages.add_column("body", str)
    messages.add_foreign_key("sender_id", users.get_column("id"))
    messages.add_foreign_key("recipient_id", users.get_column("id"))
    return messages


# =============================================================================
# Integration
# =============================================================================


@pytest.fixture
def live_database_url() -> str:
    url = os.environ.get("SEAQUEL_TEST_DATABASE_URL")
    if not url:
        pytest.skip("SEAQUEL_TEST_DATABASE_URL is not set")
    return url
