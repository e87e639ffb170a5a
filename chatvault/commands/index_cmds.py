from __future__ import annotations

import typer
from rich import print
from rich.markup import escape

from chatvault.commands.common import format_bytes, format_when, require_session, session_line
from chatvault.index.search import SEARCH_MODES

ROLE_NAMES = {"user": "User", "assistant": "Assistant"}


def scan_cmd(*, index_from_path, db_path: str | None, force: bool) -> None:
    """Scan the storage root and report what was found."""

    index = index_from_path(db_path)
    try:
        root = index.storage_path()
        if not root.is_dir():
            print(f"[yellow]Storage root not found: {escape(str(root))}[/yellow]")
            return
        sessions = index.scan(force=force)
        stats = index.scan_stats()
        print(f"[green]✓ Scanned {escape(str(root))}[/green]")
        print(f"- Workspaces: {stats.containers_scanned}")
        print(f"- Sessions: {len(sessions)}")
        print(f"- From cache: {stats.served_from_cache}")
        print(f"- Errors: {stats.errors}")
        print(f"- Skipped (too large): {stats.skipped_large}")
    finally:
        index.close()


def list_cmd(
    *, index_from_path, db_path: str | None, limit: int | None, workspace: str | None
) -> None:
    """List sessions, most recently updated first."""

    index = index_from_path(db_path)
    try:
        index.scan()
        if workspace:
            wanted = workspace.lower()
            sessions = [
                session
                for session in index.recent_sessions(len(index.all_sessions()))
                if session.container_label.lower() == wanted
            ]
            if limit is not None:
                sessions = sessions[:limit]
        else:
            sessions = index.recent_sessions(limit)
        if not sessions:
            print("[yellow]No sessions found[/yellow]")
            return
        for session in sessions:
            print(session_line(session))
    finally:
        index.close()


def workspaces_cmd(*, index_from_path, db_path: str | None) -> None:
    """Show session counts per workspace."""

    index = index_from_path(db_path)
    try:
        index.scan()
        grouped = index.sessions_by_container()
        if not grouped:
            print("[yellow]No sessions found[/yellow]")
            return
        for label in sorted(grouped, key=str.lower):
            sessions = grouped[label]
            latest = max(session.updated_at for session in sessions)
            print(f"{escape(label)}  {len(sessions)} sessions  (last {format_when(latest)})")
    finally:
        index.close()


def show_cmd(*, index_from_path, db_path: str | None, session_id: str) -> None:
    """Print every message of a session."""

    index = index_from_path(db_path)
    try:
        index.scan()
        session = require_session(index, session_id)
        messages = index.load_session(session_id)
        if messages is None:
            print(f"[red]Failed to load session {escape(session_id)}[/red]")
            raise typer.Exit(code=1)
        print(f"[bold]{escape(session.container_label)}[/bold]")
        print(f"- Created: {format_when(session.created_at)}")
        print(f"- Updated: {format_when(session.updated_at)}")
        print(f"- Messages: {session.message_count}")
        if session.tags:
            print(f"- Model: {escape(', '.join(session.tags))}")
        for message in messages:
            print(f"\n[bold]{ROLE_NAMES[message.role]}[/bold] {format_when(message.timestamp)}")
            print(escape(message.content))
    finally:
        index.close()


def search_cmd(
    *, index_from_path, db_path: str | None, terms: list[str], mode: str, limit: int
) -> None:
    """Count search terms across the raw session files."""

    if mode not in SEARCH_MODES:
        print(f"[red]Unknown search mode: {escape(mode)} (use {', '.join(SEARCH_MODES)})[/red]")
        raise typer.Exit(code=1)
    index = index_from_path(db_path)
    try:
        index.scan()
        hits = index.deep_search(terms, mode)  # type: ignore[arg-type]
        if not hits:
            print("[yellow]No matches[/yellow]")
            return
        for hit in hits[:limit]:
            counts = ", ".join(f"{term}={count}" for term, count in hit.term_counts.items())
            print(
                f"{escape(hit.session.id)}  {escape(hit.session.container_label)}  "
                f"{hit.total_matches} matches ({escape(counts)})"
            )
    finally:
        index.close()


def find_cmd(*, index_from_path, db_path: str | None, query: str) -> None:
    """Find sessions by workspace name or message text."""

    index = index_from_path(db_path)
    try:
        index.scan()
        for session in index.all_sessions():
            index.load_session(session.id)
        matches = index.search_sessions(query)
        if not matches:
            print("[yellow]No matches[/yellow]")
            return
        for session in matches:
            print(session_line(session))
    finally:
        index.close()


def topics_cmd(
    *, index_from_path, db_path: str | None, session_id: str | None, limit: int | None
) -> None:
    """Show frequent topics for one session or across all sessions."""

    index = index_from_path(db_path)
    try:
        index.scan()
        if session_id:
            require_session(index, session_id)
            topics = (
                index.session_topics(session_id)
                if limit is None
                else index.session_topics(session_id, limit)
            )
        else:
            topics = index.global_topics() if limit is None else index.global_topics(limit)
        if not topics:
            print("[yellow]No topics found[/yellow]")
            return
        for word, count in topics:
            print(f"{word}  {count}")
    finally:
        index.close()


def words_cmd(
    *, index_from_path, db_path: str | None, session_id: str | None, limit: int
) -> None:
    """Show the most used words in loaded message content."""

    index = index_from_path(db_path)
    try:
        index.scan()
        if session_id:
            require_session(index, session_id)
            index.load_session(session_id)
        else:
            for session in index.all_sessions():
                index.load_session(session.id)
        ranked = index.top_words(limit, session_id)
        if not ranked:
            print("[yellow]No words found[/yellow]")
            return
        for word, count in ranked:
            print(f"{escape(word)}  {count}")
    finally:
        index.close()


def stats_cmd(*, index_from_path, db_path: str | None) -> None:
    """Show index and scan statistics."""

    index = index_from_path(db_path)
    try:
        index.scan()
        stats = index.scan_stats()
        sessions = index.all_sessions()
        total_size = sum(session.file_size for session in sessions)
        print("[bold]Index[/bold]")
        print(f"- Database: {escape(str(index.db_path))}")
        print(f"- Storage root: {escape(index.storage_path_display())}")
        print(f"- Cached files: {len(index.cache)}")
        print(f"- Sessions: {len(sessions)}")
        print(f"- Workspaces: {len(index.sessions_by_container())}")
        print(f"- Session data: {format_bytes(total_size)}")
        print("\n[bold]Last scan[/bold]")
        for key, value in stats.as_dict().items():
            print(f"- {key.replace('_', ' ').capitalize()}: {value}")
    finally:
        index.close()
