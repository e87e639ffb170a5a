from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from .utils import format_timestamp, new_message_id, parse_timestamp

Role = Literal["user", "assistant"]
SearchMode = Literal["any", "all", "exact"]
ExportFormat = Literal["json", "markdown", "html", "native"]

ROLES: frozenset[str] = frozenset({"user", "assistant"})


@dataclass
class ChatMessage:
    id: str
    role: Role
    content: str
    timestamp: dt.datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        role = data.get("role")
        if role not in ROLES:
            raise ValueError(f"invalid message role: {role!r}")
        return cls(
            id=str(data.get("id") or new_message_id()),
            role=role,
            content=str(data.get("content") or ""),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass
class SessionSummary:
    id: str
    container_id: str
    container_label: str
    created_at: dt.datetime
    updated_at: dt.datetime
    first_message: str = ""
    last_message: str = ""
    # turns x 2, computed from metadata without reading responses
    estimated_message_count: int = 0
    # set only once the full file has been loaded
    exact_message_count: int | None = None
    file_size: int = 0
    messages: list[ChatMessage] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    attached_project: str | None = None

    @property
    def message_count(self) -> int:
        if self.exact_message_count is not None:
            return self.exact_message_count
        return self.estimated_message_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspacePath": self.container_id,
            "workspaceName": self.container_label,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "firstMessage": self.first_message,
            "lastMessage": self.last_message,
            "messageCount": self.message_count,
            "estimatedMessageCount": self.estimated_message_count,
            "exactMessageCount": self.exact_message_count,
            "fileSize": self.file_size,
            "messages": [message.to_dict() for message in self.messages],
            "tags": list(self.tags),
            "attachedProject": self.attached_project,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSummary:
        session_id = data.get("id")
        if not session_id:
            raise ValueError("missing session id")
        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise ValueError("messages must be a list")
        messages = [ChatMessage.from_dict(item) for item in raw_messages]
        message_count = int(data.get("messageCount") or len(messages))
        estimated = data.get("estimatedMessageCount")
        exact = data.get("exactMessageCount")
        tags = data.get("tags") or []
        return cls(
            id=str(session_id),
            container_id=str(data.get("workspacePath") or ""),
            container_label=str(data.get("workspaceName") or "Imported"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            first_message=str(data.get("firstMessage") or ""),
            last_message=str(data.get("lastMessage") or ""),
            estimated_message_count=int(estimated) if estimated is not None else message_count,
            exact_message_count=int(exact) if exact is not None else None,
            file_size=int(data.get("fileSize") or 0),
            messages=messages,
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            attached_project=data.get("attachedProject") or None,
        )


@dataclass(frozen=True, slots=True)
class Candidate:
    path: Path
    container_id: str
    container_label: str
    size: int
    mtime_ns: int


@dataclass
class CacheEntry:
    path: str
    session_id: str
    mtime_ns: int
    size: int
    summary: SessionSummary


@dataclass
class ScanStats:
    containers_scanned: int = 0
    sessions_found: int = 0
    errors: int = 0
    skipped_large: int = 0
    served_from_cache: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "containers_scanned": self.containers_scanned,
            "sessions_found": self.sessions_found,
            "errors": self.errors,
            "skipped_large": self.skipped_large,
            "served_from_cache": self.served_from_cache,
        }


@dataclass
class SearchHit:
    session: SessionSummary
    term_counts: dict[str, int]
    total_matches: int
    path: Path


@dataclass
class ImportResult:
    success: bool = False
    imported_count: int = 0
    skipped_count: int = 0
    errors: list[str] = field(default_factory=list)
