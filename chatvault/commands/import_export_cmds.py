from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from chatvault.index.transfer import EXPORT_FORMATS, render_export


def export_sessions_cmd(
    *,
    index_from_path,
    db_path: str | None,
    output: str,
    fmt: str,
    session_ids: list[str] | None,
) -> None:
    """Export sessions as JSON, Markdown, HTML or native session files."""

    if fmt not in EXPORT_FORMATS:
        print(f"[red]Unknown export format: {escape(fmt)} (use {', '.join(EXPORT_FORMATS)})[/red]")
        raise typer.Exit(code=1)
    index = index_from_path(db_path)
    try:
        index.scan()
        if session_ids:
            missing = [sid for sid in session_ids if not index.has_session(sid)]
            if missing:
                print(f"[red]Sessions not found: {escape(', '.join(missing))}[/red]")
                raise typer.Exit(code=1)
            sessions = [index.get_session(sid) for sid in session_ids]
        else:
            sessions = index.all_sessions()
        if not sessions:
            print("[yellow]No sessions to export[/yellow]")
            raise typer.Exit(code=0)

        failed = [session.id for session in sessions if index.load_session(session.id) is None]
        if failed:
            print(f"[yellow]Could not load messages for: {escape(', '.join(failed))}[/yellow]")

        if output == "-":
            typer.echo(render_export(sessions, fmt))  # type: ignore[arg-type]
            return
        try:
            output_path = index.export_sessions(sessions, fmt, Path(output))  # type: ignore[arg-type]
        except OSError as exc:
            print(f"[red]Failed to write export: {escape(str(exc))}[/red]")
            raise typer.Exit(code=1) from exc
        print(f"[green]✓ Exported {len(sessions)} sessions to {escape(str(output_path))}[/green]")
    finally:
        index.close()


def import_sessions_cmd(*, index_from_path, db_path: str | None, input_file: str) -> None:
    """Check an export file or native session file and report what it would import."""

    input_path = Path(input_file).expanduser()
    if not input_path.exists():
        print(f"[red]Input file not found: {escape(str(input_path))}[/red]")
        raise typer.Exit(code=1)
    index = index_from_path(db_path)
    try:
        index.scan()
        result = index.import_sessions(input_path)
    finally:
        index.close()

    for error in result.errors:
        print(f"[red]{escape(error)}[/red]")
    if not result.success:
        print("[red]No importable sessions[/red]")
        raise typer.Exit(code=1)
    print("[green]✓ Import file is valid[/green]")
    print(f"- Importable sessions: {result.imported_count}")
    print(f"- Skipped (already indexed): {result.skipped_count}")
    print(f"- Errors: {len(result.errors)}")
