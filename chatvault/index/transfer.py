from __future__ import annotations

import html
import json
import logging
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .extract import convert_native_session, read_full_document
from .types import ExportFormat, ImportResult, SessionSummary
from .utils import format_timestamp, now_utc

if TYPE_CHECKING:
    from ._index import SessionIndex

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
EXPORT_SOURCE = "chatvault"
EXPORT_FORMATS: tuple[str, ...] = ("json", "markdown", "html", "native")
ROLE_LABELS = {"user": "👤 User", "assistant": "🤖 Assistant"}

HTML_STYLE = """
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
        .chat { border: 1px solid #ddd; margin: 20px 0; padding: 15px; border-radius: 8px; }
        .workspace { font-size: 1.2em; font-weight: bold; color: #333; }
        .date { color: #666; font-size: 0.9em; }
        .message { margin: 10px 0; padding: 10px; border-radius: 6px; }
        .user { background: #e3f2fd; }
        .assistant { background: #f5f5f5; }
        .role { font-weight: bold; margin-bottom: 5px; }
"""


def export_envelope(sessions: Sequence[SessionSummary]) -> dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "exportedAt": format_timestamp(now_utc()),
        "sourceExtension": EXPORT_SOURCE,
        "chats": [session.to_dict() for session in sessions],
    }


def to_markdown(sessions: Sequence[SessionSummary]) -> str:
    lines = ["# Chat Export", "", f"Exported: {format_timestamp(now_utc())}", ""]
    for session in sessions:
        lines.append(f"## {session.container_label}")
        lines.append(f"*Created: {format_timestamp(session.created_at)}*")
        lines.append("")
        for message in session.messages:
            lines.append(f"### {ROLE_LABELS[message.role]}")
            lines.append(message.content)
            lines.append("")
        lines.append("---")
        lines.append("")
    return "\n".join(lines)


def to_html(sessions: Sequence[SessionSummary]) -> str:
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '    <meta charset="utf-8">',
        "    <title>Chat Export</title>",
        f"    <style>{HTML_STYLE}    </style>",
        "</head>",
        "<body>",
        "    <h1>Chat Export</h1>",
        f"    <p>Exported: {html.escape(format_timestamp(now_utc()))}</p>",
    ]
    for session in sessions:
        parts.append('    <div class="chat">')
        parts.append(f'        <div class="workspace">{html.escape(session.container_label)}</div>')
        parts.append(
            f'        <div class="date">Created: '
            f"{html.escape(format_timestamp(session.created_at))}</div>"
        )
        for message in session.messages:
            body = html.escape(message.content).replace("\n", "<br>")
            parts.append(f'        <div class="message {message.role}">')
            parts.append(f'            <div class="role">{ROLE_LABELS[message.role]}</div>')
            parts.append(f"            <div>{body}</div>")
            parts.append("        </div>")
        parts.append("    </div>")
    parts.extend(["</body>", "</html>"])
    return "\n".join(parts) + "\n"


def render_export(sessions: Sequence[SessionSummary], fmt: ExportFormat) -> str:
    if fmt == "markdown":
        return to_markdown(sessions)
    if fmt == "html":
        return to_html(sessions)
    if fmt in {"json", "native"}:
        return json.dumps(export_envelope(sessions), ensure_ascii=False, indent=2)
    raise ValueError(f"unknown export format: {fmt}")


def export_sessions(
    index: SessionIndex,
    sessions: Sequence[SessionSummary],
    fmt: ExportFormat,
    output_path: Path,
) -> Path:
    """Write ``sessions`` to ``output_path``.

    A native export of exactly one session whose source file still exists is a
    byte copy of that file, so fields the index does not model survive.
    """

    output_path = Path(output_path).expanduser()
    if fmt == "native" and len(sessions) == 1:
        source = index.session_path(sessions[0].id)
        if source is not None and source.is_file():
            shutil.copyfile(source, output_path)
            return output_path
    content = render_export(sessions, fmt)
    output_path.write_text(content, encoding="utf-8")
    return output_path


def _import_summary(index: SessionIndex, entry: Any, result: ImportResult) -> None:
    if not isinstance(entry, dict):
        result.errors.append(f"Error importing chat: expected an object, got {type(entry).__name__}")
        return
    entry_id = entry.get("id")
    if entry_id and index.has_session(str(entry_id)):
        result.skipped_count += 1
        return
    try:
        summary = SessionSummary.from_dict(entry)
    except (ValueError, TypeError, AttributeError) as exc:
        result.errors.append(f"Error importing chat {entry_id}: {exc}")
        return
    index.add_session(summary)
    result.imported_count += 1


def import_sessions(index: SessionIndex, path: Path) -> ImportResult:
    """Import sessions from an export envelope, a single chat or a native session file."""

    result = ImportResult()
    path = Path(path).expanduser().resolve()
    try:
        data = read_full_document(path)
    except (OSError, ValueError) as exc:
        result.errors.append(f"Parse error: {exc}")
        return result

    if isinstance(data, dict) and isinstance(data.get("chats"), list):
        for entry in data["chats"]:
            _import_summary(index, entry, result)
    elif isinstance(data, dict) and data.get("id") and isinstance(data.get("messages"), list):
        _import_summary(index, data, result)
    elif isinstance(data, dict) and data.get("sessionId") and "requests" in data:
        summary = convert_native_session(data, path)
        if summary is None:
            result.errors.append("Could not parse native session format")
        elif index.has_session(summary.id):
            result.skipped_count += 1
        else:
            index.add_session(summary, path=path)
            result.imported_count += 1
    else:
        if isinstance(data, dict):
            found = ", ".join(data.keys())
        else:
            found = f"(top-level {type(data).__name__})"
        result.errors.append(
            f"Invalid chat session data - not a recognized format. Found keys: {found}"
        )
        return result

    result.success = result.imported_count > 0 or result.skipped_count > 0
    logger.info(
        "import from %s: %d imported, %d skipped, %d errors",
        path,
        result.imported_count,
        result.skipped_count,
        len(result.errors),
    )
    return result
