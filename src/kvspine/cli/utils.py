"""
CLI utility helpers — datastore opening, error reporting and output.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import typer
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.table import Table

from kvspine.core.errors import KVSpineError
from kvspine.core.settings import DatastoreSettings
from kvspine.datastore import Entry, SQLDatastore, create_datastore

console = Console()
err_console = Console(stderr=True)


# ── Datastore helper ─────────────────────────────────────────────────────


def build_settings(overrides: dict[str, Any]) -> DatastoreSettings:
    """Settings from the environment, with non-``None`` CLI overrides applied."""
    return DatastoreSettings(**{k: v for k, v in overrides.items() if v is not None})


@contextmanager
def open_store(overrides: dict[str, Any]) -> Iterator[SQLDatastore]:
    """Open the configured datastore for one command; report failures and exit 1."""
    with handle_errors():
        try:
            settings = build_settings(overrides)
        except SettingsValidationError as e:
            err_console.print(f"[bold red]Error[/bold red] (CONFIG): {e}")
            raise typer.Exit(code=1) from e
        store = create_datastore(settings)
        try:
            yield store
        finally:
            store.close()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn datastore errors into a red message and exit code 1."""
    try:
        yield
    except KVSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def render_value(value: bytes | None) -> str:
    """Bytes as text; undecodable bytes are backslash-escaped."""
    if value is None:
        return ""
    return value.decode("utf-8", errors="backslashreplace")


def entry_to_dict(entry: Entry) -> dict[str, Any]:
    data: dict[str, Any] = {"key": entry.key}
    if entry.value is not None:
        data["value"] = render_value(entry.value)
    if entry.size >= 0:
        data["size"] = entry.size
    return data


def print_entries(entries: Iterable[Entry], *, as_json: bool = False, keys_only: bool = False) -> None:
    """Render query entries as a rich table or JSON."""
    items = list(entries)

    if as_json:
        console.print_json(json.dumps([entry_to_dict(e) for e in items]))
        return

    if not items:
        console.print("[dim]No entries.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Key")
    table.add_column("Size", justify="right")
    if not keys_only:
        table.add_column("Value", overflow="fold")
    for e in items:
        row = [e.key, str(e.size)]
        if not keys_only:
            row.append(render_value(e.value))
        table.add_row(*row)
    console.print(table)
    console.print(f"[dim]{len(items)} entr{'y' if len(items) == 1 else 'ies'}[/dim]")
