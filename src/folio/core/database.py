"""
Folio database facade - SQLite-style ``run`` / ``get`` / ``all`` on PostgreSQL.

Manifesto:
    The API and mobile backends were written against SQLite's calling
    convention. The facade keeps that convention (``?`` placeholders,
    ``lastID`` / ``changes`` after a write, ``BEGIN`` / ``COMMIT`` issued
    as plain statements) while the statements actually run on a shared
    asyncpg pool.

    - **Translated:** every statement goes through :class:`SqlTranslator`
    - **Scoped transactions:** a transaction owns one pooled connection
      from ``BEGIN`` until ``COMMIT`` / ``ROLLBACK`` and always gives it back
    - **Transparent errors:** driver exceptions reach the caller unchanged

Architecture:
    ::

        Database (facade)                          Transaction (handle)
        ─────────────────                          ────────────────────
        run / get / all ──┬── no transaction ───►  Pool.query  (shared)
                          │
                          └── ambient open ─────►  Transaction ─► PooledConnection
        run("BEGIN")        → pool.connect(), BEGIN, bind ambient
        run("COMMIT")       → COMMIT, release, unbind (success or not)
        begin_transaction() → explicit handle, caller threads it through
        transaction()       → async context manager, commit / rollback

    State machine per transaction::

        IDLE ──BEGIN──► ACTIVE ──COMMIT───► COMMITTED
                           ├────ROLLBACK─► ROLLED_BACK
                           └──(error)────► FAILED        (connection released)

Examples:
    SQLite-style:

    >>> db = await connect_database()
    >>> result = await db.run("INSERT INTO users (name, email, password) VALUES (?, ?, ?)",
    ...                       ["Ada", "ada@example.com", "pw"])
    >>> result.last_id, result.changes
    (1, 1)

    Explicit transaction scope:

    >>> async with db.transaction() as tx:
    ...     book = await tx.run("INSERT INTO books (title) VALUES (?)", ["Dune"])
    ...     await tx.run("INSERT OR IGNORE INTO author_books (author_id, book_id) VALUES (?, ?)",
    ...                  [author_id, book.last_id])

Guardrails:
    ❌ DON'T: Share one facade's ambient ``BEGIN`` between concurrent requests
    ✅ DO: Use ``db.transaction()`` / ``begin_transaction()`` per request

    ❌ DON'T: Rely on ``last_id`` after ``INSERT OR IGNORE``
    ✅ DO: Re-select the row when you need its id
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from folio.core.dialect import Statement, StatementKind, SqlTranslator, TranslatedStatement
from folio.core.errors import TransactionError
from folio.core.logging import get_logger
from folio.core.pool import create_pool
from folio.core.protocols import Pool, PooledConnection, QueryResult, Row
from folio.core.schema import SCHEMA_SQL
from folio.core.settings import FolioSettings, get_settings

logger = get_logger(__name__)

SqlLike = str | Statement


@dataclass(frozen=True)
class RunResult:
    """Outcome of :meth:`Database.run`, mirroring SQLite's ``this``.

    ``last_id`` is only set for inserts that received ``RETURNING id``.
    """

    last_id: int | None = None
    changes: int = 0


class TransactionState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


def _as_statement(sql: SqlLike, params: Sequence[Any] | None) -> Statement:
    if isinstance(sql, Statement):
        if params is not None:
            raise TypeError("params must be carried by the Statement, not passed separately")
        return sql
    return Statement(sql, params if params is not None else ())


def _run_result(translated: TranslatedStatement, result: QueryResult) -> RunResult:
    last_id = None
    if translated.returns_id and result.rows:
        value = result.rows[0].get("id")
        if value is not None:
            last_id = int(value)
    return RunResult(last_id=last_id, changes=result.row_count)


def _begin_command(text: str) -> str:
    if text.upper().split() in (["BEGIN"], ["BEGIN", "TRANSACTION"]):
        return "BEGIN"
    return text


class _StatementRunner:
    """``run`` / ``get`` / ``all`` shared by the facade and transaction handles."""

    _translator: SqlTranslator

    async def _dispatch(self, translated: TranslatedStatement) -> QueryResult:
        raise NotImplementedError

    async def _control(self, translated: TranslatedStatement) -> RunResult:
        raise NotImplementedError

    def _translate(self, sql: SqlLike, params: Sequence[Any] | None) -> TranslatedStatement:
        return self._translator.translate(_as_statement(sql, params))

    async def run(self, sql: SqlLike, params: Sequence[Any] | None = None) -> RunResult:
        """Execute a write or transaction-control statement."""
        translated = self._translate(sql, params)
        if translated.kind.is_transaction_control:
            return await self._control(translated)
        result = await self._dispatch(translated)
        return _run_result(translated, result)

    async def get(self, sql: SqlLike, params: Sequence[Any] | None = None) -> Row | None:
        """First row of the result, or ``None``."""
        result = await self._dispatch(self._reading(sql, params))
        if not result.rows:
            return None
        return self._translator.shape_row(result.rows[0])

    async def all(self, sql: SqlLike, params: Sequence[Any] | None = None) -> list[Row]:
        """Every row of the result; ``[]`` when nothing matches."""
        result = await self._dispatch(self._reading(sql, params))
        return [self._translator.shape_row(row) for row in result.rows]

    def _reading(self, sql: SqlLike, params: Sequence[Any] | None) -> TranslatedStatement:
        translated = self._translate(sql, params)
        if translated.kind.is_transaction_control:
            raise TransactionError(
                "transaction control statements must be issued through run()",
                context={"statement": translated.text},
            )
        return translated


class Transaction(_StatementRunner):
    """A transaction bound to one dedicated pooled connection.

    Obtained from :meth:`Database.begin_transaction` or
    :meth:`Database.transaction`. The connection is released exactly once,
    when :meth:`commit` or :meth:`rollback` finishes, whether or not the
    command itself succeeded.
    """

    def __init__(self, conn: PooledConnection, translator: SqlTranslator):
        self._conn = conn
        self._translator = translator
        self._state = TransactionState.ACTIVE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    def _ensure_active(self) -> None:
        if not self.is_active:
            raise TransactionError(
                "transaction is no longer active",
                context={"state": self._state.value},
            )

    async def _dispatch(self, translated: TranslatedStatement) -> QueryResult:
        self._ensure_active()
        return await self._conn.query(translated.text, translated.params)

    async def _control(self, translated: TranslatedStatement) -> RunResult:
        if translated.kind is StatementKind.BEGIN:
            raise TransactionError("nested transactions are not supported")
        if translated.kind is StatementKind.COMMIT:
            await self.commit()
        else:
            await self.rollback()
        return RunResult()

    async def exec(self, script: str) -> None:
        """Run a parameterless script inside the transaction."""
        self._ensure_active()
        await self._conn.execute(script)

    async def commit(self) -> None:
        await self._end("COMMIT", TransactionState.COMMITTED)

    async def rollback(self) -> None:
        await self._end("ROLLBACK", TransactionState.ROLLED_BACK)

    async def _end(self, command: str, outcome: TransactionState) -> None:
        self._ensure_active()
        # Unusable from here on, even if the command or release raises.
        self._state = TransactionState.FAILED
        try:
            await self._conn.execute(command)
            self._state = outcome
        finally:
            await self._conn.release()
            logger.debug(f"transaction_{command.lower()}", state=self._state.value)


class Database(_StatementRunner):
    """SQLite-style facade over a connection :class:`Pool`.

    Args:
        pool: Anything implementing the ``Pool`` protocol (``PgPool`` in
            production).
        translator: Statement translator; defaults to :class:`SqlTranslator`.
    """

    def __init__(self, pool: Pool, translator: SqlTranslator | None = None):
        self._pool = pool
        self._translator = translator or SqlTranslator()
        self._ambient: Transaction | None = None
        self._opening = False

    @property
    def pool(self) -> Pool:
        return self._pool

    @property
    def translator(self) -> SqlTranslator:
        return self._translator

    @property
    def in_transaction(self) -> bool:
        """Whether an ambient ``run("BEGIN")`` transaction is open."""
        return self._ambient is not None

    async def _dispatch(self, translated: TranslatedStatement) -> QueryResult:
        if self._ambient is not None:
            return await self._ambient._dispatch(translated)
        return await self._pool.query(translated.text, translated.params)

    async def _control(self, translated: TranslatedStatement) -> RunResult:
        if translated.kind is StatementKind.BEGIN:
            if self._ambient is not None or self._opening:
                raise TransactionError("a transaction is already open on this database")
            # Claim the slot before awaiting the connection.
            self._opening = True
            try:
                self._ambient = await self._begin(translated.text)
            finally:
                self._opening = False
            return RunResult()

        if self._ambient is None:
            logger.warning("transaction_not_open", statement=translated.kind.value)
            return RunResult()

        ambient, self._ambient = self._ambient, None
        if translated.kind is StatementKind.COMMIT:
            await ambient.commit()
        else:
            await ambient.rollback()
        return RunResult()

    async def _begin(self, text: str = "BEGIN") -> Transaction:
        conn = await self._pool.connect()
        try:
            await conn.execute(_begin_command(text))
        except BaseException:
            await conn.release()
            raise
        logger.debug("transaction_begin")
        return Transaction(conn, self._translator)

    async def begin_transaction(self) -> Transaction:
        """Open an explicit transaction on a dedicated connection.

        The caller must finish it with ``commit()`` or ``rollback()``.
        """
        return await self._begin()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Transaction context manager: commit on success, roll back on error."""
        tx = await self._begin()
        try:
            yield tx
        except BaseException:
            if tx.is_active:
                await tx.rollback()
            raise
        if tx.is_active:
            await tx.commit()

    async def exec(self, script: str) -> None:
        """Run a parameterless, possibly multi-statement script untranslated."""
        if self._ambient is not None:
            await self._ambient.exec(script)
        else:
            await self._pool.execute(script)

    async def close(self) -> None:
        """Roll back a dangling ambient transaction and close the pool."""
        try:
            if self._ambient is not None:
                ambient, self._ambient = self._ambient, None
                await ambient.rollback()
        finally:
            await self._pool.close()


# =========================================================================
# Process-wide facade
# =========================================================================

_database: Database | None = None
_bootstrapped = False
_lock: asyncio.Lock | None = None


def _get_lock() -> asyncio.Lock:
    global _lock
    if _lock is None:
        _lock = asyncio.Lock()
    return _lock


def build_translator(settings: FolioSettings) -> SqlTranslator:
    return SqlTranslator(
        returning_exempt_tables=settings.db_returning_exempt_tables,
        rewrite_identifiers=settings.db_rewrite_identifiers,
    )


async def bootstrap_database(db: Database) -> None:
    """Create the catalog schema. Safe to call repeatedly."""
    global _bootstrapped
    await db.exec(SCHEMA_SQL)
    if db is _database:
        _bootstrapped = True
    logger.info("schema_bootstrapped")


async def connect_database(
    settings: FolioSettings | None = None,
    *,
    pool: Pool | None = None,
) -> Database:
    """Return the process-wide :class:`Database`, creating it on first use.

    The first call creates the pool and, unless ``DB_AUTO_BOOTSTRAP`` is
    false, runs :func:`bootstrap_database`. Later calls return the same
    facade without touching the schema.

    Args:
        settings: Settings to use instead of :func:`get_settings`.
        pool: Pre-built pool (tests, embedding applications).
    """
    global _database, _bootstrapped
    settings = settings or get_settings()

    async with _get_lock():
        if _database is None:
            _database = Database(pool or await create_pool(settings), build_translator(settings))
        if settings.db_auto_bootstrap and not _bootstrapped:
            await bootstrap_database(_database)
            _bootstrapped = True

    logger.info("database_connected")
    return _database


async def close_database() -> None:
    """Close the process-wide facade and forget it."""
    db = _database
    reset_database()
    if db is not None:
        await db.close()


def reset_database() -> None:
    """Forget the process-wide facade without closing it (tests)."""
    global _database, _bootstrapped, _lock
    _database = None
    _bootstrapped = False
    _lock = None


__all__ = [
    "RunResult",
    "TransactionState",
    "Transaction",
    "Database",
    "build_translator",
    "bootstrap_database",
    "connect_database",
    "close_database",
    "reset_database",
]
