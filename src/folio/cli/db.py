"""
CLI: ``folio db`` database management commands.
"""

from __future__ import annotations

import asyncio

import asyncpg
import typer

from folio.cli.utils import console, fail, output_dict
from folio.core.database import bootstrap_database, build_translator, close_database, connect_database
from folio.core.dialect import Statement
from folio.core.errors import FolioError
from folio.core.pool import create_pool
from folio.core.settings import FolioSettings, get_settings

app = typer.Typer(no_args_is_help=True)

_DB_ERRORS = (FolioError, OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


async def _bootstrap(settings: FolioSettings) -> None:
    db = await connect_database(settings)
    try:
        await bootstrap_database(db)
    finally:
        await close_database()


async def _health(settings: FolioSettings) -> dict:
    pool = await create_pool(settings)
    try:
        return await pool.health_check()
    finally:
        await pool.close()


@app.command()
def bootstrap() -> None:
    """Create the catalog schema (idempotent)."""
    settings = get_settings().model_copy(update={"db_auto_bootstrap": False})
    try:
        asyncio.run(_bootstrap(settings))
    except _DB_ERRORS as e:
        fail("Database bootstrap failed:", e)
        raise typer.Exit(code=1) from e
    console.print("[green]Database bootstrap completed successfully[/green]")


@app.command()
def health(
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Check database connectivity and pool statistics."""
    try:
        stats = asyncio.run(_health(get_settings()))
    except _DB_ERRORS as e:
        fail("Database unreachable:", e)
        raise typer.Exit(code=1) from e
    output_dict(stats, as_json=json_out, title="Database Health")
    if not stats.get("healthy"):
        raise typer.Exit(code=1)


@app.command()
def translate(
    sql: str = typer.Argument(..., help="SQLite-style statement"),
    param: list[str] = typer.Option([], "--param", "-p", help="Positional parameter (repeatable)"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the PostgreSQL statement a SQLite-style statement becomes."""
    translated = build_translator(get_settings()).translate(Statement(sql, param))
    output_dict(
        {
            "text": translated.text,
            "params": translated.params,
            "kind": translated.kind.value,
            "returns_id": translated.returns_id,
        },
        as_json=json_out,
        title="Translated Statement",
    )
