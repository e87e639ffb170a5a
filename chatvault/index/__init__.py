from __future__ import annotations

from ._index import SessionIndex
from .types import (
    CacheEntry,
    Candidate,
    ChatMessage,
    ImportResult,
    ScanStats,
    SearchHit,
    SessionSummary,
)

__all__ = [
    "CacheEntry",
    "Candidate",
    "ChatMessage",
    "ImportResult",
    "ScanStats",
    "SearchHit",
    "SessionIndex",
    "SessionSummary",
]
