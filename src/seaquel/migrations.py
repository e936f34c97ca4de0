"""
Schema-diff boundary.

seaquel never computes or applies DDL.  :meth:`Database.sync` hands the
declared model (``Schema.describe()``) and the connection config to a
:class:`SchemaDiffer`, which inspects the live database and returns the DDL
that would reconcile the two.  The result is a :class:`MigrationPlan` for a
human to review.

Safety levels
─────────────
``safe``  Only additive statements (new tables, columns, indexes)
``warn``  Additive statements plus destructive ones commented out
``drop``  Everything, including drops

Examples:
    >>> plan = await db.sync(differ, safety=MigrationSafety.SAFE)
    >>> print(plan.as_sql())
    >>> plan.require_empty()  # raises PendingMigrationError when behind

Tags:
    migrations, schema-diff, ddl, seaquel

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from seaquel.errors import PendingMigrationError
from seaquel.logging import get_logger

if TYPE_CHECKING:
    from seaquel.adapters.types import ConnectionConfig
    from seaquel.schema import Schema

logger = get_logger(__name__)


class MigrationSafety(str, Enum):
    WARN = "warn"
    DROP = "drop"
    SAFE = "safe"


@runtime_checkable
class SchemaDiffer(Protocol):
    """External schema-diff collaborator."""

    async def describe_live_schema(self, config: ConnectionConfig) -> Mapping[str, Any]:
        """Describe the live database in the same shape as ``Schema.describe()``."""
        ...

    def compute_migration(
        self,
        live: Mapping[str, Any],
        desired: Mapping[str, Any],
        safety: MigrationSafety,
    ) -> list[str]:
        """DDL statements turning ``live`` into ``desired``."""
        ...


@dataclass(frozen=True)
class MigrationPlan:
    """DDL proposed by the differ; never executed by seaquel."""

    statements: list[str] = field(default_factory=list)
    safety: MigrationSafety = MigrationSafety.WARN

    @property
    def has_pending(self) -> bool:
        return bool(self.statements)

    def as_sql(self) -> str:
        return "\n\n".join(self.statements)

    def require_empty(self) -> None:
        """Raise :class:`PendingMigrationError` when any statement is pending."""
        if self.statements:
            raise PendingMigrationError(list(self.statements))


async def plan_migration(
    schema: Schema,
    config: ConnectionConfig,
    differ: SchemaDiffer,
    safety: MigrationSafety | str = MigrationSafety.WARN,
) -> MigrationPlan:
    safety = MigrationSafety(safety)
    live = await differ.describe_live_schema(config)
    statements = [sql for sql in differ.compute_migration(live, schema.describe(), safety) if sql]
    plan = MigrationPlan(statements=statements, safety=safety)
    if plan.has_pending:
        logger.warning(
            "migration.pending",
            statements=len(statements),
            safety=safety.value,
            database=config.database,
        )
    return plan


__all__ = [
    "MigrationPlan",
    "MigrationSafety",
    "SchemaDiffer",
    "plan_migration",
]
