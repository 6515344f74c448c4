"""CLI entry point using Typer."""

from __future__ import annotations

import dataclasses
import os
import sqlite3
from pathlib import Path
from typing import Annotated

import typer

from histsearch.app import run_app
from histsearch.database import get_db_connection, init_db, save_history
from histsearch.history import HistoryRecord, current_context
from histsearch.importer import SUPPORTED_SHELLS, import_history
from histsearch.logger import get_logger
from histsearch.settings import load_settings

app = typer.Typer(
    name="histsearch",
    help="Interactive shell history search",
    no_args_is_help=False,
)


def _fail(message: str, error: Exception) -> typer.Exit:
    get_logger().exception(message, error=str(error))
    typer.echo(f"error: {error}", err=True)
    return typer.Exit(code=1)


@app.command()
def search(
    query: Annotated[
        list[str] | None,
        typer.Argument(help="Initial search query"),
    ] = None,
    shell_up_key_binding: Annotated[
        bool,
        typer.Option(
            "--shell-up-key-binding",
            help="Invoked from the shell's up-arrow binding",
        ),
    ] = False,
) -> None:
    """Search history interactively and print the chosen command to stderr."""
    settings = load_settings()
    if shell_up_key_binding:
        settings = dataclasses.replace(settings, shell_up_key_binding=True)

    try:
        result = run_app(query or [], settings)
    except Exception as e:
        # Storage, terminal and loop failures all end the search the same way
        raise _fail("Search failed", e) from e

    # The shell integration reads the selection from stderr
    typer.echo(result, err=True)


@app.command("import")
def import_command(
    shell: Annotated[
        str | None,
        typer.Option(help=f"Shell whose history to import ({', '.join(SUPPORTED_SHELLS)})"),
    ] = None,
    path: Annotated[
        Path | None,
        typer.Option(help="History file (defaults to the shell's usual location)"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Re-read the file even if it is unchanged"),
    ] = False,
) -> None:
    """Import an existing bash or zsh history file."""
    settings = load_settings()
    conn = get_db_connection(settings.db_path)
    try:
        init_db(conn)
        inserted = import_history(conn, shell=shell, path=path, force=force)
    except (OSError, ValueError, sqlite3.Error) as e:
        raise _fail("Import failed", e) from e
    finally:
        conn.close()
    typer.echo(f"Imported {inserted} commands")


@app.command()
def add(
    command: Annotated[str, typer.Argument(help="Command line that was run")],
    exit_code: Annotated[int, typer.Option("--exit", help="Exit status")] = 0,
    duration: Annotated[int, typer.Option(help="Run time in milliseconds")] = -1,
    cwd: Annotated[str | None, typer.Option(help="Working directory")] = None,
) -> None:
    """Record one command, tagged with the current shell context."""
    if not command.strip():
        return

    settings = load_settings()
    context = current_context()
    record = HistoryRecord(
        command=command,
        exit=exit_code,
        duration=duration,
        cwd=cwd or os.getcwd(),
        session=context.session,
        hostname=context.hostname,
    )
    conn = get_db_connection(settings.db_path)
    try:
        init_db(conn)
        save_history(conn, [record])
    except sqlite3.Error as e:
        raise _fail("Recording command failed", e) from e
    finally:
        conn.close()


if __name__ == "__main__":
    app()
