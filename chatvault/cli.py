from __future__ import annotations

import json
import logging
from dataclasses import asdict

import typer
from rich import print
from rich.markup import escape

from . import __version__
from .commands.common import index_from_path, read_config_or_exit
from .commands.import_export_cmds import export_sessions_cmd, import_sessions_cmd
from .commands.index_cmds import (
    find_cmd,
    list_cmd,
    scan_cmd,
    search_cmd,
    show_cmd,
    stats_cmd,
    topics_cmd,
    words_cmd,
    workspaces_cmd,
)
from .config import get_config_path, get_env_overrides, load_config
from .index import SessionIndex

app = typer.Typer(help="chatvault: browse, search and export editor chat sessions")


def _index(db_path: str | None) -> SessionIndex:
    return index_from_path(db_path)


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log scan progress to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


@app.command()
def version() -> None:
    """Print the installed version."""
    print(__version__)


@app.command()
def config() -> None:
    """Show the config file location and effective settings."""
    read_config_or_exit()
    settings = load_config()
    print(f"[bold]Config[/bold] {escape(str(get_config_path()))}")
    print(escape(json.dumps(asdict(settings), indent=2)))
    overrides = get_env_overrides()
    if overrides:
        print(f"Set from environment: {escape(', '.join(sorted(overrides)))}")


@app.command()
def scan(
    force: bool = typer.Option(False, help="Rescan even if the last scan is fresh"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Scan the storage root for chat sessions."""
    scan_cmd(index_from_path=_index, db_path=db_path, force=force)


@app.command("list")
def list_sessions(
    limit: int = typer.Option(None, help="Number of sessions to show"),
    workspace: str = typer.Option(None, help="Only sessions from this workspace"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """List recent sessions."""
    list_cmd(index_from_path=_index, db_path=db_path, limit=limit, workspace=workspace)


@app.command()
def workspaces(
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Show sessions grouped by workspace."""
    workspaces_cmd(index_from_path=_index, db_path=db_path)


@app.command()
def show(
    session_id: str,
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Print a session's messages."""
    show_cmd(index_from_path=_index, db_path=db_path, session_id=session_id)


@app.command()
def search(
    terms: list[str],
    mode: str = typer.Option("any", help="any, all or exact"),
    limit: int = typer.Option(20, help="Number of results to show"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Count search terms across session files."""
    search_cmd(index_from_path=_index, db_path=db_path, terms=terms, mode=mode, limit=limit)


@app.command()
def find(
    query: str,
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Find sessions by workspace name or message text."""
    find_cmd(index_from_path=_index, db_path=db_path, query=query)


@app.command()
def topics(
    session_id: str = typer.Argument(None, help="Session id (omit for all sessions)"),
    limit: int = typer.Option(None, help="Number of topics to show"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Show frequent topics."""
    topics_cmd(index_from_path=_index, db_path=db_path, session_id=session_id, limit=limit)


@app.command()
def words(
    session_id: str = typer.Argument(None, help="Session id (omit for all sessions)"),
    limit: int = typer.Option(25, help="Number of words to show"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Show the most used words in message content."""
    words_cmd(index_from_path=_index, db_path=db_path, session_id=session_id, limit=limit)


@app.command()
def stats(
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Show index statistics."""
    stats_cmd(index_from_path=_index, db_path=db_path)


@app.command("export")
def export_sessions(
    output: str = typer.Argument(..., help="Output file path (use '-' for stdout)"),
    fmt: str = typer.Option("json", "--format", help="json, markdown, html or native"),
    session: list[str] = typer.Option(None, help="Session id to export (repeatable)"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Export sessions to a file."""
    export_sessions_cmd(
        index_from_path=_index,
        db_path=db_path,
        output=output,
        fmt=fmt,
        session_ids=session,
    )


@app.command("import")
def import_sessions(
    input_file: str = typer.Argument(..., help="Export file or native session file"),
    db_path: str = typer.Option(None, help="Path to the index cache database"),
) -> None:
    """Import sessions from a file."""
    import_sessions_cmd(index_from_path=_index, db_path=db_path, input_file=input_file)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
