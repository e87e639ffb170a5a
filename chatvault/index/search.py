from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .discovery import within_size_limit
from .types import SearchHit, SearchMode, SessionSummary

if TYPE_CHECKING:
    from ._index import SessionIndex

logger = logging.getLogger(__name__)

SEARCH_MODES: tuple[str, ...] = ("any", "all", "exact")


def normalize_terms(terms: Sequence[str]) -> list[str]:
    return [term.strip() for term in terms if term and term.strip()]


def count_terms(text: str, terms: Sequence[str], mode: SearchMode) -> dict[str, int]:
    """Case-insensitive, non-overlapping occurrence counts.

    In exact mode the terms are joined into one phrase, reported under the
    joined key.
    """

    lowered = text.lower()
    if mode == "exact":
        phrase = " ".join(terms)
        return {phrase: lowered.count(phrase.lower())}
    return {term: lowered.count(term.lower()) for term in terms}


def _matches(counts: dict[str, int], mode: SearchMode) -> bool:
    if mode == "all":
        return all(count > 0 for count in counts.values())
    return sum(counts.values()) > 0


def deep_search(
    index: SessionIndex, terms: Sequence[str], mode: SearchMode = "any"
) -> list[SearchHit]:
    """Count search terms in the raw text of every indexed session file."""

    if mode not in SEARCH_MODES:
        raise ValueError(f"unknown search mode: {mode}")
    cleaned = normalize_terms(terms)
    if not cleaned:
        return []
    hits: list[SearchHit] = []
    for session in index.all_sessions():
        path = index.session_path(session.id)
        if path is None or not within_size_limit(path):
            continue
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("skipping unreadable %s: %s", path, exc)
            continue
        counts = count_terms(text, cleaned, mode)
        if not _matches(counts, mode):
            continue
        hits.append(
            SearchHit(
                session=session,
                term_counts=counts,
                total_matches=sum(counts.values()),
                path=path,
            )
        )
    hits.sort(key=lambda hit: hit.total_matches, reverse=True)
    return hits


def search_sessions(index: SessionIndex, query: str) -> list[SessionSummary]:
    """Shallow search over workspace labels and already-loaded message text."""

    needle = query.strip().lower()
    if not needle:
        return []
    matches: list[SessionSummary] = []
    for session in index.all_sessions():
        if needle in session.container_label.lower():
            matches.append(session)
            continue
        if any(needle in message.content.lower() for message in session.messages):
            matches.append(session)
    return matches
