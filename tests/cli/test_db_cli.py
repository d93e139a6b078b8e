"""
Tests for the folio CLI: root app and ``folio db`` commands.
"""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import structlog
from typer.testing import CliRunner

from folio import __version__
from folio.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch):
    """Keep log lines out of the captured command output."""
    monkeypatch.setattr("folio.cli.app.configure_logging", lambda **_: None)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING))
    yield
    structlog.reset_defaults()


class TestRootApp:
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "db" in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"folio {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)

    def test_db_help(self):
        result = runner.invoke(app, ["db", "--help"])
        assert result.exit_code == 0
        for command in ("bootstrap", "health", "translate"):
            assert command in result.output


class TestTranslate:
    def test_json_output(self):
        result = runner.invoke(
            app,
            ["db", "translate", "INSERT INTO users (name, email) VALUES (?, ?)", "-p", "Ada", "-p", "ada@x.io", "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data == {
            "text": "INSERT INTO users (name, email) VALUES ($1, $2) RETURNING id",
            "params": ["Ada", "ada@x.io"],
            "kind": "insert",
            "returns_id": True,
        }

    def test_insert_or_ignore(self):
        result = runner.invoke(
            app,
            ["db", "translate", "INSERT OR IGNORE INTO author_books (author_id, book_id) VALUES (?, ?)", "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["text"].endswith("VALUES ($1, $2) ON CONFLICT DO NOTHING")
        assert data["returns_id"] is False

    def test_plain_output(self):
        result = runner.invoke(app, ["db", "translate", "SELECT * FROM books WHERE id = ?"])
        assert result.exit_code == 0
        assert "Translated Statement" in result.output
        assert "SELECT * FROM books WHERE id = $1" in result.output


class TestBootstrap:
    def test_success(self):
        db = MagicMock()
        with (
            patch("folio.cli.db.connect_database", new=AsyncMock(return_value=db)) as mock_connect,
            patch("folio.cli.db.bootstrap_database", new=AsyncMock()) as mock_bootstrap,
            patch("folio.cli.db.close_database", new=AsyncMock()) as mock_close,
        ):
            result = runner.invoke(app, ["db", "bootstrap"])

        assert result.exit_code == 0, result.output
        assert "Database bootstrap completed successfully" in result.output
        settings = mock_connect.await_args.args[0]
        assert settings.db_auto_bootstrap is False
        mock_bootstrap.assert_awaited_once_with(db)
        mock_close.assert_awaited_once()

    def test_failure_exits_nonzero(self):
        with (
            patch("folio.cli.db.connect_database", new=AsyncMock(side_effect=OSError("connection refused"))),
            patch("folio.cli.db.bootstrap_database", new=AsyncMock()) as mock_bootstrap,
        ):
            result = runner.invoke(app, ["db", "bootstrap"])

        assert result.exit_code == 1
        assert "Database bootstrap failed" in result.output
        assert "connection refused" in result.output
        mock_bootstrap.assert_not_awaited()


class TestHealth:
    def _pool(self, stats):
        pool = MagicMock()
        pool.health_check = AsyncMock(return_value=stats)
        pool.close = AsyncMock()
        return pool

    def test_healthy_json(self):
        stats = {"size": 1, "free_size": 1, "min_size": 1, "max_size": 10, "healthy": True}
        pool = self._pool(stats)
        with patch("folio.cli.db.create_pool", new=AsyncMock(return_value=pool)):
            result = runner.invoke(app, ["db", "health", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == stats
        pool.close.assert_awaited_once()

    def test_unhealthy_exits_nonzero(self):
        pool = self._pool({"size": 0, "free_size": 0, "min_size": 1, "max_size": 10, "healthy": False, "error": "x"})
        with patch("folio.cli.db.create_pool", new=AsyncMock(return_value=pool)):
            result = runner.invoke(app, ["db", "health"])

        assert result.exit_code == 1
        assert "Database Health" in result.output

    def test_unreachable(self):
        with patch("folio.cli.db.create_pool", new=AsyncMock(side_effect=OSError("no route to host"))):
            result = runner.invoke(app, ["db", "health"])

        assert result.exit_code == 1
        assert "Database unreachable" in result.output
