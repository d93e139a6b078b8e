"""
Folio connection pool - asyncpg pool behind the :class:`~folio.core.protocols.Pool` seam.

Manifesto:
    Database connections are expensive (TCP handshake, auth, TLS).
    asyncpg keeps warm connections; this module only adapts its API to
    the small ``query`` / ``execute`` / ``connect`` / ``release`` surface
    the facade needs, and reports affected-row counts the way SQLite
    callers expect (``changes``).

Architecture:
    ::

        PgPool(asyncpg.Pool)
          .query(text, params)   acquire → prepare → fetch → release
          .execute(script)       acquire → simple query → release
          .connect()             acquire → PgConnection (held until release)

        PgConnection(asyncpg.Connection)
          .query / .execute      same as above, on the held connection
          .release()             back to the pool, at most once

Examples:
    >>> pool = await create_pool(get_settings())
    >>> result = await pool.query("SELECT * FROM users WHERE id = $1", [1])
    >>> result.rows, result.row_count
    ([{'id': 1, ...}], 1)
    >>> await pool.close()

Performance:
    - Parameterized statements go through ``Connection.prepare`` so the
      command tag is available for ``row_count``; ``prepare`` bypasses
      asyncpg's statement cache, so each call costs an extra Parse round trip
    - Scripts use the simple query protocol and may hold several statements

Guardrails:
    - ALWAYS release a connection obtained from ``connect()``
    - NEVER share one PgConnection between concurrent tasks
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import asyncpg

from folio.core.errors import ConfigError
from folio.core.logging import get_logger
from folio.core.protocols import QueryResult
from folio.core.settings import FolioSettings

logger = get_logger(__name__)


def parse_row_count(status: str | None) -> int:
    """Affected-row count from a PostgreSQL command tag.

    >>> parse_row_count("INSERT 0 1")
    1
    >>> parse_row_count("UPDATE 3")
    3
    >>> parse_row_count("CREATE TABLE")
    0
    """
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


async def _run(conn: asyncpg.Connection, text: str, params: Sequence[Any]) -> QueryResult:
    statement = await conn.prepare(text)
    records = await statement.fetch(*params)
    return QueryResult(
        rows=[dict(record) for record in records],
        row_count=parse_row_count(statement.get_statusmsg()),
    )


class PgConnection:
    """A connection checked out of a :class:`PgPool`."""

    def __init__(self, pool: asyncpg.Pool, conn: asyncpg.Connection):
        self._pool = pool
        self._conn = conn
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def query(self, text: str, params: Sequence[Any] = ()) -> QueryResult:
        return await _run(self._conn, text, params)

    async def execute(self, sql: str) -> None:
        await self._conn.execute(sql)

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._pool.release(self._conn)


class PgPool:
    """asyncpg pool exposing the folio ``Pool`` protocol."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @property
    def raw(self) -> asyncpg.Pool:
        """Underlying asyncpg pool."""
        return self._pool

    async def query(self, text: str, params: Sequence[Any] = ()) -> QueryResult:
        async with self._pool.acquire() as conn:
            return await _run(conn, text, params)

    async def execute(self, sql: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(sql)

    async def connect(self) -> PgConnection:
        conn = await self._pool.acquire()
        return PgConnection(self._pool, conn)

    async def close(self) -> None:
        logger.info("pool_closed")
        await self._pool.close()

    async def health_check(self) -> dict[str, Any]:
        """Check pool health and return statistics.

        Returns:
            Dict with ``size``, ``free_size``, ``min_size``, ``max_size``
            and ``healthy``; ``error`` is set when the probe failed.
        """
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            return {
                "size": self._pool.get_size(),
                "free_size": 0,
                "min_size": self._pool.get_min_size(),
                "max_size": self._pool.get_max_size(),
                "healthy": False,
                "error": str(e),
            }

        return {
            "size": self._pool.get_size(),
            "free_size": self._pool.get_idle_size(),
            "min_size": self._pool.get_min_size(),
            "max_size": self._pool.get_max_size(),
            "healthy": True,
        }


async def create_pool(settings: FolioSettings) -> PgPool:
    """Create the process-wide asyncpg pool.

    Args:
        settings: Connection and pool sizing settings.

    Raises:
        ConfigError: If the pool sizing is inconsistent.
        asyncpg.PostgresError / OSError: If the database is unreachable.
    """
    if settings.db_pool_min_size > settings.db_pool_max_size:
        raise ConfigError(
            "db_pool_min_size must not exceed db_pool_max_size",
            context={
                "db_pool_min_size": settings.db_pool_min_size,
                "db_pool_max_size": settings.db_pool_max_size,
            },
        )

    pool = await asyncpg.create_pool(
        settings.dsn,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )
    logger.info(
        "pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return PgPool(pool)


__all__ = [
    "PgConnection",
    "PgPool",
    "create_pool",
    "parse_row_count",
]
