"""Tests for the process-wide facade: connect_database / bootstrap_database."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from folio.core import database
from folio.core.database import bootstrap_database, close_database, connect_database
from folio.core.dialect import Statement, StatementKind
from folio.core.schema import SCHEMA_SQL, TABLES, TABLES_WITHOUT_ID
from folio.core.settings import FolioSettings


def _ddl_calls(pool: MagicMock) -> list[str]:
    return [c.args[0] for c in pool.execute.await_args_list if "CREATE TABLE IF NOT EXISTS users" in c.args[0]]


class TestConnectDatabase:
    @pytest.mark.asyncio
    async def test_memoized(self, pool: MagicMock, settings: FolioSettings):
        first = await connect_database(settings, pool=pool)
        second = await connect_database(settings, pool=pool)

        assert first is second
        assert len(_ddl_calls(pool)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_bootstrap_once(self, pool: MagicMock, settings: FolioSettings):
        results = await asyncio.gather(*(connect_database(settings, pool=pool) for _ in range(5)))

        assert all(db is results[0] for db in results)
        pool.execute.assert_awaited_once_with(SCHEMA_SQL)

    @pytest.mark.asyncio
    async def test_auto_bootstrap_disabled(self, pool: MagicMock):
        await connect_database(FolioSettings(db_auto_bootstrap=False), pool=pool)
        pool.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auto_bootstrap_from_env(self, pool: MagicMock, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DB_AUTO_BOOTSTRAP", "false")
        await connect_database(pool=pool)
        pool.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_pool_from_settings(self, pool: MagicMock, settings: FolioSettings):
        with patch("folio.core.database.create_pool", new=AsyncMock(return_value=pool)) as mock_create:
            db = await connect_database(settings)
            await connect_database(settings)

        mock_create.assert_awaited_once_with(settings)
        assert db.pool is pool

    @pytest.mark.asyncio
    async def test_translator_follows_settings(self, pool: MagicMock):
        settings = FolioSettings(
            db_auto_bootstrap=False,
            db_returning_exempt_tables=["author_books", "site_settings"],
            db_rewrite_identifiers=False,
        )
        db = await connect_database(settings, pool=pool)

        translated = db.translator.translate(Statement("INSERT INTO site_settings (id) VALUES (?)", [1]))
        assert translated.kind is StatementKind.INSERT
        assert translated.returns_id is False
        assert db.translator.rewrite_identifiers is False

    @pytest.mark.asyncio
    async def test_bootstrap_failure_retried_on_next_connect(self, pool: MagicMock, settings: FolioSettings):
        pool.execute.side_effect = [OSError("connection refused"), None]

        with pytest.raises(OSError):
            await connect_database(settings, pool=pool)
        await connect_database(settings, pool=pool)

        assert pool.execute.await_count == 2


class TestBootstrapDatabase:
    @pytest.mark.asyncio
    async def test_runs_schema_script(self, db, pool: MagicMock):
        await bootstrap_database(db)
        pool.execute.assert_awaited_once_with(SCHEMA_SQL)

    @pytest.mark.asyncio
    async def test_explicit_bootstrap_marks_shared_facade(self, pool: MagicMock):
        db = await connect_database(FolioSettings(db_auto_bootstrap=False), pool=pool)
        await bootstrap_database(db)

        await connect_database(FolioSettings(db_auto_bootstrap=True), pool=pool)
        pool.execute.assert_awaited_once_with(SCHEMA_SQL)

    def test_schema_is_idempotent_ddl(self):
        for line in SCHEMA_SQL.splitlines():
            stripped = line.strip().upper()
            if stripped.startswith("CREATE TABLE"):
                assert "IF NOT EXISTS" in stripped
            if stripped.startswith("CREATE INDEX") or stripped.startswith("CREATE UNIQUE INDEX"):
                assert "IF NOT EXISTS" in stripped
        assert "ON CONFLICT DO NOTHING" in SCHEMA_SQL

    def test_every_registered_table_is_created(self):
        for table in TABLES:
            assert f"CREATE TABLE IF NOT EXISTS {table} (" in SCHEMA_SQL
        assert set(TABLES_WITHOUT_ID) <= set(TABLES)


class TestCloseDatabase:
    @pytest.mark.asyncio
    async def test_close_forgets_facade(self, pool: MagicMock, settings: FolioSettings):
        first = await connect_database(settings, pool=pool)
        await close_database()

        pool.close.assert_awaited_once()
        assert database._database is None

        second = await connect_database(settings, pool=pool)
        assert second is not first

    @pytest.mark.asyncio
    async def test_close_without_facade(self):
        await close_database()
        assert database._database is None
