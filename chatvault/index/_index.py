from __future__ import annotations

import datetime as dt
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .. import db
from ..config import ChatVaultConfig, load_config
from ..fs_paths import resolve_storage_root
from . import discovery as index_discovery
from . import extract as index_extract
from . import search as index_search
from . import topics as index_topics
from . import transfer as index_transfer
from .cache import StalenessCache
from .types import (
    Candidate,
    ChatMessage,
    ExportFormat,
    ImportResult,
    ScanStats,
    SearchHit,
    SearchMode,
    SessionSummary,
)
from .utils import now_utc

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 10


class SessionIndex:
    """Index of chat session files with a persisted staleness cache.

    Construct it, then call ``initialize()`` once to open the cache database
    and restore the last persisted snapshot.
    """

    def __init__(
        self,
        config: ChatVaultConfig | None = None,
        *,
        db_path: Path | str | None = None,
        clock: Callable[[], dt.datetime] = now_utc,
    ) -> None:
        self.config = config or load_config()
        self.db_path = Path(db_path or self.config.index_db).expanduser()
        self.cache = StalenessCache()
        self.conn: sqlite3.Connection | None = None
        self._clock = clock
        self._sessions: dict[str, SessionSummary] = {}
        self._paths: dict[str, Path] = {}
        self._stats = ScanStats()
        self._storage_path: Path | None = None
        self._scan_lock = threading.Lock()
        self._last_scan_at: float | None = None

    def initialize(self) -> SessionIndex:
        try:
            self.conn = db.connect(self.db_path)
            db.initialize_schema(self.conn)
        except sqlite3.Error as exc:
            logger.warning("index cache unavailable at %s: %s", self.db_path, exc)
            self.conn = None
            return self
        loaded = self.cache.load(self.conn)
        for entry in self.cache:
            self._paths[entry.summary.id] = Path(entry.path)
            self._sessions[entry.summary.id] = entry.summary
        if loaded:
            logger.info("loaded %d entries from index cache", loaded)
        return self

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    # Storage root

    def storage_path(self) -> Path:
        self._storage_path = resolve_storage_root(self.config.storage_path)
        return self._storage_path

    def storage_path_display(self) -> str:
        return str(self._storage_path or self.storage_path())

    # Scanning

    def scan(self, *, force: bool = False) -> list[SessionSummary]:
        """Rebuild the snapshot from disk, reusing cached summaries of unchanged files.

        Returns the current snapshot untouched when another scan is running or
        when the last scan finished less than ``scan_fresh_s`` seconds ago.
        """

        if not self._scan_lock.acquire(blocking=False):
            return self.all_sessions()
        try:
            if not force and self._scan_is_fresh():
                return self.all_sessions()
            return self._scan_pass()
        finally:
            self._scan_lock.release()

    def _scan_is_fresh(self) -> bool:
        if self._last_scan_at is None:
            return False
        return time.monotonic() - self._last_scan_at < self.config.scan_fresh_s

    def _scan_pass(self) -> list[SessionSummary]:
        started = time.monotonic()
        root = self.storage_path()
        stats = ScanStats()
        self._stats = stats
        logger.info("scan starting: %s", root)
        if not root.is_dir():
            logger.info("storage root missing: %s", root)
            return []

        candidates = index_discovery.discover_candidates(root, stats)
        sessions: dict[str, SessionSummary] = {}
        paths: dict[str, Path] = {}
        with ThreadPoolExecutor(max_workers=SCAN_BATCH_SIZE) as pool:
            for start in range(0, len(candidates), SCAN_BATCH_SIZE):
                batch = candidates[start : start + SCAN_BATCH_SIZE]
                outcomes = list(pool.map(self._process_candidate, batch))
                for candidate, outcome in zip(batch, outcomes, strict=True):
                    summary = self._apply_outcome(candidate, outcome, stats)
                    if summary is not None:
                        # a later file with an already-seen id shadows the earlier one
                        sessions[summary.id] = summary
                        paths[summary.id] = candidate.path

        # files that vanished or grew past the size limit lose their cache entry
        self.cache.retain(str(candidate.path) for candidate in candidates)
        self._sessions = sessions
        self._paths = paths
        stats.sessions_found = len(self._sessions)
        self._last_scan_at = time.monotonic()
        self._persist()
        logger.info(
            "scan complete in %.0fms: %d sessions, %d from cache, %d errors, %d too large",
            (time.monotonic() - started) * 1000,
            stats.sessions_found,
            stats.served_from_cache,
            stats.errors,
            stats.skipped_large,
        )
        return self.all_sessions()

    def _process_candidate(
        self, candidate: Candidate
    ) -> tuple[str, SessionSummary | Exception | None]:
        cached = self.cache.lookup(str(candidate.path), candidate.size, candidate.mtime_ns)
        if cached is not None:
            return "cached", cached
        try:
            return "parsed", index_extract.extract_summary(candidate, now=self._clock())
        except (OSError, ValueError) as exc:
            return "error", exc

    def _apply_outcome(
        self,
        candidate: Candidate,
        outcome: tuple[str, SessionSummary | Exception | None],
        stats: ScanStats,
    ) -> SessionSummary | None:
        kind, value = outcome
        if kind == "error":
            stats.errors += 1
            logger.debug("failed to parse %s: %s", candidate.path, value)
            return None
        if not isinstance(value, SessionSummary):
            return None
        if kind == "cached":
            stats.served_from_cache += 1
        else:
            self.cache.store(
                str(candidate.path), value.id, candidate.size, candidate.mtime_ns, value
            )
        return value

    def _persist(self) -> None:
        if self.conn is None:
            return
        try:
            self.cache.persist(self.conn)
        except sqlite3.Error as exc:
            logger.warning("failed to persist index cache: %s", exc)

    # Queries

    def all_sessions(self) -> list[SessionSummary]:
        return list(self._sessions.values())

    def get_session(self, session_id: str) -> SessionSummary | None:
        return self._sessions.get(session_id)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def session_path(self, session_id: str) -> Path | None:
        return self._paths.get(session_id)

    def scan_stats(self) -> ScanStats:
        return ScanStats(**self._stats.as_dict())

    def sessions_by_container(self) -> dict[str, list[SessionSummary]]:
        grouped: dict[str, list[SessionSummary]] = {}
        for session in self._sessions.values():
            grouped.setdefault(session.container_label, []).append(session)
        return grouped

    def recent_sessions(self, limit: int | None = None) -> list[SessionSummary]:
        limit = self.config.max_recent_chats if limit is None else limit
        ordered = sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)
        return ordered[: max(limit, 0)]

    # Mutation

    def add_session(self, summary: SessionSummary, *, path: Path | None = None) -> None:
        self._sessions[summary.id] = summary
        if path is not None:
            self._paths[summary.id] = path

    def delete_session(self, session_id: str) -> bool:
        self._paths.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def attach_project(self, session_id: str, project: str | None) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.attached_project = project or None
        return True

    # Full content

    def load_session(self, session_id: str) -> list[ChatMessage] | None:
        """Parse every message of a session and store them on its summary.

        Returns None when the source file cannot be read or parsed; the
        stored summary is then left unchanged.
        """

        path = self._paths.get(session_id)
        session = self._sessions.get(session_id)
        if session is None:
            return []
        if path is None:
            return list(session.messages)
        if not index_discovery.within_size_limit(path):
            logger.warning("not loading %s: over the size limit", path)
            return None
        try:
            data = index_extract.read_full_document(path)
        except (OSError, ValueError) as exc:
            logger.error("error loading session %s from %s: %s", session_id, path, exc)
            return None
        messages = index_extract.parse_messages(data, now=self._clock())
        session.messages = messages
        session.exact_message_count = len(messages)
        return messages

    def reload_session(self, session_id: str) -> list[ChatMessage] | None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.messages = []
        return self.load_session(session_id)

    # Analytics

    def deep_search(self, terms: Sequence[str], mode: SearchMode = "any") -> list[SearchHit]:
        return index_search.deep_search(self, terms, mode)

    def search_sessions(self, query: str) -> list[SessionSummary]:
        return index_search.search_sessions(self, query)

    def session_topics(
        self, session_id: str, limit: int = index_topics.DEFAULT_SESSION_LIMIT
    ) -> list[tuple[str, int]]:
        return index_topics.session_topics(self, session_id, limit)

    def global_topics(
        self,
        limit: int = index_topics.DEFAULT_GLOBAL_LIMIT,
        session_ids: Sequence[str] | None = None,
    ) -> list[tuple[str, int]]:
        return index_topics.global_topics(self, limit, session_ids)

    def word_counts(
        self, session_id: str | None = None, terms: Sequence[str] | None = None
    ) -> dict[str, int]:
        """Word counts over loaded message text, for one session or all of them."""

        if session_id is not None:
            session = self._sessions.get(session_id)
            if session is None:
                return {}
            sessions = [session]
        else:
            sessions = list(self._sessions.values())
        counts = index_topics.count_words(
            message.content for session in sessions for message in session.messages
        )
        if terms:
            return {term.lower(): counts.get(term.lower(), 0) for term in terms}
        return dict(counts)

    def top_words(self, limit: int = 25, session_id: str | None = None) -> list[tuple[str, int]]:
        counts = self.word_counts(session_id)
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return ranked[:limit]

    # Import / export

    def export_sessions(
        self, sessions: Sequence[SessionSummary], fmt: ExportFormat, output_path: Path
    ) -> Path:
        return index_transfer.export_sessions(self, sessions, fmt, output_path)

    def import_sessions(self, path: Path) -> ImportResult:
        return index_transfer.import_sessions(self, path)
