"""
Shared pytest fixtures and configuration for folio tests.

This module provides:
- AsyncMock fakes for the Pool / PooledConnection protocols
- Settings isolated from the developer's environment and .env file
- Process-wide facade reset for test isolation
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from folio.core.database import Database, reset_database
from folio.core.protocols import QueryResult
from folio.core.settings import FolioSettings, get_settings

_ENV_KEYS = (
    "DATABASE_URL",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "DB_AUTO_BOOTSTRAP",
    "DB_POOL_MIN_SIZE",
    "DB_POOL_MAX_SIZE",
    "DB_RETURNING_EXEMPT_TABLES",
    "DB_REWRITE_IDENTIFIERS",
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Clear folio env vars, the settings cache and the memoized facade."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)  # no stray .env
    get_settings.cache_clear()
    reset_database()
    yield
    reset_database()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> FolioSettings:
    return FolioSettings()


# =============================================================================
# Pool fakes
# =============================================================================


def make_connection() -> MagicMock:
    """A PooledConnection fake whose calls can be asserted."""
    conn = MagicMock(name="PooledConnection")
    conn.query = AsyncMock(return_value=QueryResult())
    conn.execute = AsyncMock(return_value=None)
    conn.release = AsyncMock(return_value=None)
    return conn


@pytest.fixture
def conn() -> MagicMock:
    return make_connection()


@pytest.fixture
def pool(conn: MagicMock) -> MagicMock:
    """A Pool fake; ``pool.connect()`` hands out ``conn``."""
    pool = MagicMock(name="Pool")
    pool.query = AsyncMock(return_value=QueryResult())
    pool.execute = AsyncMock(return_value=None)
    pool.connect = AsyncMock(return_value=conn)
    pool.close = AsyncMock(return_value=None)
    return pool


@pytest.fixture
def db(pool: MagicMock) -> Database:
    return Database(pool)
