from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any

from .types import Candidate, ChatMessage, SessionSummary
from .utils import coerce_timestamp, dig, new_message_id, now_utc, truncate_text

# Enough for most small sessions; larger files fall back to a full read.
METADATA_READ_BYTES = 16 * 1024
UNKNOWN_MODEL = "Unknown"


def _parse_bytes(raw: bytes) -> tuple[bool, Any]:
    try:
        return True, json.loads(raw.decode("utf-8-sig"))
    except (ValueError, RecursionError):
        return False, None


def read_session_document(path: Path, size: int) -> Any:
    """Parse a session file, reading only a prefix when that is enough.

    The prefix is tried first; when it does not parse (the file is larger than
    the prefix and was cut mid-document) the whole file is read. Errors from
    the full read propagate.
    """

    prefix_size = min(size, METADATA_READ_BYTES)
    with path.open("rb") as fh:
        prefix = fh.read(prefix_size)
    parsed, data = _parse_bytes(prefix)
    if parsed:
        return data
    return read_full_document(path)


def read_full_document(path: Path) -> Any:
    """Parse a whole session file.

    Nesting too deep for the decoder is reported as ValueError like any
    other malformed document.
    """

    try:
        return json.loads(path.read_bytes().decode("utf-8-sig"))
    except RecursionError as exc:
        raise ValueError(f"session document nested too deeply: {path}") from exc


def session_requests(data: Any) -> list[Any]:
    if not isinstance(data, dict):
        return []
    requests = data.get("requests")
    if not isinstance(requests, list):
        return []
    return requests


def request_text(request: Any) -> str:
    text = dig(request, "message", "text")
    return text if isinstance(text, str) else ""


def model_name(data: dict[str, Any]) -> str:
    name = dig(data, "selectedModel", "metadata", "name")
    return name if isinstance(name, str) and name else UNKNOWN_MODEL


def _join_parts(parts: list[Any]) -> str:
    texts: list[str] = []
    for part in parts:
        value = ""
        if isinstance(part, dict):
            value = part.get("value") or part.get("text") or ""
        elif isinstance(part, str):
            value = part
        texts.append(value if isinstance(value, str) else "")
    return "\n".join(texts)


def extract_response_text(request: Any) -> str:
    """Return the assistant text of a request, trying each known response shape."""

    if not isinstance(request, dict):
        return ""
    for keys in (("response", "value"), ("response", "result", "value"), ("result", "value")):
        value = dig(request, *keys)
        if isinstance(value, str) and value:
            return value
    content = dig(request, "response", "result", "content")
    if isinstance(content, list):
        joined = _join_parts(content)
        if joined.strip():
            return joined
    elif isinstance(content, str) and content:
        return content
    response = request.get("response")
    if isinstance(response, list):
        joined = _join_parts(response)
        if joined.strip():
            return joined
    return ""


def parse_messages(data: Any, *, now: dt.datetime | None = None) -> list[ChatMessage]:
    """Materialize every request of a session document into ordered messages."""

    now = now or now_utc()
    if not isinstance(data, dict):
        return []
    created_fallback = coerce_timestamp(data.get("creationDate"), now)
    updated_fallback = coerce_timestamp(data.get("lastMessageDate"), now)
    messages: list[ChatMessage] = []
    for request in session_requests(data):
        text = request_text(request)
        if text:
            messages.append(
                ChatMessage(
                    id=new_message_id(),
                    role="user",
                    content=text,
                    timestamp=coerce_timestamp(
                        dig(request, "message", "timestamp"), created_fallback
                    ),
                )
            )
        response_text = extract_response_text(request)
        if response_text:
            messages.append(
                ChatMessage(
                    id=new_message_id(),
                    role="assistant",
                    content=response_text,
                    timestamp=coerce_timestamp(
                        dig(request, "responseCompleteDate"), updated_fallback
                    ),
                )
            )
    return messages


def extract_summary(
    candidate: Candidate, *, now: dt.datetime | None = None
) -> SessionSummary | None:
    """Build a summary from a session file without materializing messages.

    Returns None for documents that are not sessions (no requests). Read and
    parse errors propagate to the caller.
    """

    now = now or now_utc()
    data = read_session_document(candidate.path, candidate.size)
    requests = session_requests(data)
    if not requests:
        return None
    session_id = data.get("sessionId")
    return SessionSummary(
        id=str(session_id) if session_id else candidate.path.stem,
        container_id=candidate.container_id,
        container_label=candidate.container_label,
        created_at=coerce_timestamp(data.get("creationDate"), now),
        updated_at=coerce_timestamp(data.get("lastMessageDate"), now),
        first_message=truncate_text(request_text(requests[0])),
        last_message=truncate_text(request_text(requests[-1])),
        estimated_message_count=len(requests) * 2,
        file_size=candidate.size,
        tags=[model_name(data)],
    )


def convert_native_session(
    data: dict[str, Any], path: Path, *, now: dt.datetime | None = None
) -> SessionSummary | None:
    """Convert a native session document found outside the storage root."""

    now = now or now_utc()
    requests = session_requests(data)
    if not requests:
        return None
    messages = parse_messages(data, now=now)
    container_dir = path.parent.parent
    try:
        file_size = path.stat().st_size
    except OSError:
        file_size = 0
    session_id = data.get("sessionId")
    return SessionSummary(
        id=str(session_id) if session_id else path.stem,
        container_id=str(container_dir),
        container_label=container_dir.name or "Imported",
        created_at=coerce_timestamp(data.get("creationDate"), now),
        updated_at=coerce_timestamp(data.get("lastMessageDate"), now),
        first_message=truncate_text(request_text(requests[0])),
        last_message=truncate_text(request_text(requests[-1])),
        estimated_message_count=len(requests) * 2,
        exact_message_count=len(messages),
        file_size=file_size,
        messages=messages,
        tags=[model_name(data)],
    )
