"""
CLI utility helpers for output formatting.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def output_dict(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a single dict as JSON or as key-value pairs."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def fail(message: str, error: BaseException) -> None:
    """Print an error line to stderr."""
    err_console.print(f"[bold red]{message}[/bold red] {error}")
