"""
Root Typer application for the folio CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from folio.core.logging import configure_logging
from folio.core.settings import get_settings

app = Typer(
    name="folio",
    help="folio: SQLite-style database access for the Folio catalog on PostgreSQL.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from folio import __version__

        typer.echo(f"folio {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """folio CLI: bootstrap and inspect the catalog database."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)


from folio.cli.db import app as db_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")


if __name__ == "__main__":
    app()
