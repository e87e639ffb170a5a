from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import uuid4

MAX_PREVIEW_CHARS = 200


def now_utc() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def new_message_id() -> str:
    return str(uuid4())


def truncate_text(text: str | None, max_chars: int = MAX_PREVIEW_CHARS) -> str:
    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def parse_timestamp(value: Any) -> dt.datetime:
    """Parse epoch milliseconds, ISO-8601 text or a datetime into an aware datetime.

    Raises ValueError for anything else.
    """

    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.UTC)
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, int | float):
        try:
            return dt.datetime.fromtimestamp(value / 1000, dt.UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"invalid timestamp: {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=dt.UTC)
    raise ValueError(f"invalid timestamp: {value!r}")


def coerce_timestamp(value: Any, fallback: dt.datetime) -> dt.datetime:
    if value is None or value == "" or value == 0:
        return fallback
    try:
        return parse_timestamp(value)
    except ValueError:
        return fallback


def format_timestamp(value: dt.datetime) -> str:
    return value.isoformat()


def dig(data: Any, *keys: str) -> Any:
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
