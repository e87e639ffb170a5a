from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator

from .. import db
from .types import CacheEntry, SessionSummary
from .utils import format_timestamp, now_utc

logger = logging.getLogger(__name__)


class StalenessCache:
    """Per-path summaries keyed on the (size, mtime) fingerprint of each file.

    Entries are keyed by path, not session id: two files that carry the same
    embedded id are tracked separately.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(list(self._entries.values()))

    def lookup(self, path: str, size: int, mtime_ns: int) -> SessionSummary | None:
        entry = self._entries.get(path)
        if entry is None:
            return None
        if entry.size != size or entry.mtime_ns != mtime_ns:
            return None
        return entry.summary

    def store(
        self,
        path: str,
        session_id: str,
        size: int,
        mtime_ns: int,
        summary: SessionSummary,
    ) -> None:
        self._entries[path] = CacheEntry(
            path=path,
            session_id=session_id,
            mtime_ns=mtime_ns,
            size=size,
            summary=summary,
        )

    def retain(self, paths: Iterable[str]) -> None:
        """Drop every entry whose path is not in ``paths``."""

        keep = set(paths)
        for path in [p for p in self._entries if p not in keep]:
            del self._entries[path]

    def load(self, conn: sqlite3.Connection) -> int:
        """Replace in-memory entries with the persisted snapshot.

        A missing or unreadable snapshot leaves the cache empty.
        """

        self._entries.clear()
        try:
            rows = conn.execute(
                "SELECT path, session_id, mtime_ns, size, summary_json FROM cache_entries"
            ).fetchall()
        except sqlite3.Error as exc:
            logger.warning("index cache unreadable, starting empty: %s", exc)
            return 0
        skipped = 0
        for row in rows:
            try:
                summary = SessionSummary.from_dict(db.from_json(row["summary_json"]))
            except (ValueError, TypeError, AttributeError) as exc:
                skipped += 1
                logger.debug("dropping cache entry %s: %s", row["path"], exc)
                continue
            self.store(
                str(row["path"]),
                str(row["session_id"]),
                int(row["size"]),
                int(row["mtime_ns"]),
                summary,
            )
        if skipped:
            logger.warning("dropped %d invalid cache entries", skipped)
        return len(self._entries)

    def persist(self, conn: sqlite3.Connection) -> None:
        """Overwrite the persisted snapshot with the current entries."""

        stored_at = format_timestamp(now_utc())
        rows = [
            (
                entry.path,
                entry.session_id,
                entry.mtime_ns,
                entry.size,
                db.to_json(entry.summary.to_dict()),
                stored_at,
            )
            for entry in self._entries.values()
        ]
        with conn:
            conn.execute("DELETE FROM cache_entries")
            conn.executemany(
                """
                INSERT INTO cache_entries(path, session_id, mtime_ns, size, summary_json, stored_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
