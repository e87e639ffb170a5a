from __future__ import annotations

import datetime as dt
from typing import Any

import typer
from rich import print
from rich.markup import escape

from chatvault.config import load_config, read_config_file
from chatvault.index import SessionIndex, SessionSummary


def index_from_path(db_path: str | None) -> SessionIndex:
    return SessionIndex(load_config(), db_path=db_path).initialize()


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def require_session(index: SessionIndex, session_id: str) -> SessionSummary:
    session = index.get_session(session_id)
    if session is None:
        print(f"[red]Session {session_id} not found[/red]")
        raise typer.Exit(code=1)
    return session


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / 1024 / 1024:.1f} MB"
    return f"{size / 1024 / 1024 / 1024:.1f} GB"


def format_when(value: dt.datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def session_line(session: SessionSummary) -> str:
    project = f" ({session.attached_project})" if session.attached_project else ""
    return escape(
        f"{session.id}  {format_when(session.updated_at)}  "
        f"{session.container_label}{project}  "
        f"({session.message_count} msgs)  {session.first_message}"
    )
