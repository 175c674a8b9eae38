"""
Root Typer application for the kvspine CLI.

Every command opens the datastore from ``KVSPINE_*`` settings, with the
global ``--dialect`` / ``--path`` / ``--table`` options taking precedence.
"""

from __future__ import annotations

from typing import Any

import typer
from typer import Typer

from kvspine import __version__
from kvspine.core.errors import NotFoundError
from kvspine.core.logging import configure_logging
from kvspine.datastore import OrderByKeyDescending, Query

from .utils import console, err_console, open_store, print_entries, render_value

app = Typer(
    name="kvspine",
    help="kvspine — key-value datastore on a SQL table.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kv-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    dialect: str | None = typer.Option(None, "--dialect", help="sqlite or postgresql"),
    path: str | None = typer.Option(None, "--path", "-p", help="SQLite database file"),
    table: str | None = typer.Option(None, "--table", "-t", help="Backing table"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """kvspine CLI — put, get and query keys in a SQL-backed datastore."""
    configure_logging(level="DEBUG" if verbose else "WARNING", json_format=False)
    ctx.obj = {"dialect": dialect, "path": path, "table": table}


def _overrides(ctx: typer.Context) -> dict[str, Any]:
    return dict(ctx.obj or {})


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the backing table if it does not exist."""
    with open_store(_overrides(ctx)) as store:
        console.print(
            f"[green]✓[/green] Table [bold]{store.queries.table}[/bold] ready ({store.queries.name})"
        )


@app.command()
def put(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key"),
    value: str = typer.Argument(..., help="Value (stored as UTF-8)"),
) -> None:
    """Store a value. An existing key keeps its current value."""
    with open_store(_overrides(ctx)) as store:
        existed = store.has(key)
        store.put(key, value.encode("utf-8"))
        if existed:
            console.print(f"[yellow]![/yellow] {key} already exists, value unchanged")
        else:
            console.print(f"[green]✓[/green] {key}")


@app.command()
def get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key"),
) -> None:
    """Print the value stored under a key."""
    with open_store(_overrides(ctx)) as store:
        typer.echo(render_value(store.get(key)))


@app.command()
def has(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key"),
) -> None:
    """Print whether a key exists."""
    with open_store(_overrides(ctx)) as store:
        typer.echo("true" if store.has(key) else "false")


@app.command()
def delete(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key"),
) -> None:
    """Delete a key."""
    with open_store(_overrides(ctx)) as store:
        store.delete(key)
        console.print(f"[green]✓[/green] deleted {key}")


@app.command()
def size(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key"),
) -> None:
    """Print the byte size of the value under a key."""
    with open_store(_overrides(ctx)) as store:
        try:
            typer.echo(str(store.get_size(key)))
        except NotFoundError as e:
            err_console.print(f"[bold red]Error[/bold red] (STORAGE): {e.message}")
            typer.echo(str(e.size))
            raise typer.Exit(code=1) from e


@app.command()
def query(
    ctx: typer.Context,
    prefix: str = typer.Option("", "--prefix", help="Key prefix"),
    limit: int = typer.Option(0, "--limit", "-n", min=0, help="Maximum entries (0 = all)"),
    offset: int = typer.Option(0, "--offset", min=0, help="Entries to skip"),
    keys_only: bool = typer.Option(False, "--keys-only", help="Omit values"),
    desc: bool = typer.Option(False, "--desc", help="Descending key order"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List entries, optionally under a prefix."""
    q = Query(
        prefix=prefix,
        orders=[OrderByKeyDescending()] if desc else [],
        limit=limit,
        offset=offset,
        keys_only=keys_only,
        returns_sizes=True,
    )
    with open_store(_overrides(ctx)) as store:
        with store.query(q) as results:
            print_entries(results, as_json=json_out, keys_only=keys_only)
