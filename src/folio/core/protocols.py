"""
Protocol definitions for the driver seam.

The facade in :mod:`folio.core.database` never touches asyncpg directly.
It talks to anything shaped like :class:`Pool` / :class:`PooledConnection`,
which :mod:`folio.core.pool` implements on top of ``asyncpg.Pool``
and tests implement with ``AsyncMock``.

Architecture:
    ::

        Database ──► Pool.query(text, params)          shared, autocommit
                 ──► Pool.execute(script)               DDL scripts
                 ──► Pool.connect() ─► PooledConnection
                                       .query / .execute / .release

Guardrails:
    ❌ DON'T: Import asyncpg in code that only needs to run statements
    ✅ DO: Depend on these protocols and let the pool module own the driver
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]


@dataclass
class QueryResult:
    """Rows and affected-row count of one executed statement."""

    rows: list[Row] = field(default_factory=list)
    row_count: int = 0


@runtime_checkable
class Executor(Protocol):
    """Anything that can run a translated statement."""

    async def query(self, text: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement with ``$n`` placeholders bound to ``params``."""
        ...

    async def execute(self, sql: str) -> None:
        """Run a parameterless script (DDL, transaction control)."""
        ...


@runtime_checkable
class PooledConnection(Executor, Protocol):
    """A connection checked out of the pool for exclusive use."""

    async def release(self) -> None:
        """Return the connection to its pool."""
        ...


@runtime_checkable
class Pool(Executor, Protocol):
    """Process-wide connection pool."""

    async def connect(self) -> PooledConnection:
        """Check out a dedicated connection."""
        ...

    async def close(self) -> None:
        """Close every connection in the pool."""
        ...


__all__ = [
    "Row",
    "QueryResult",
    "Executor",
    "PooledConnection",
    "Pool",
]
