from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from .discovery import within_size_limit

if TYPE_CHECKING:
    from ._index import SessionIndex

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\b[a-z][a-z0-9]{3,}\b", re.ASCII)
TRAILING_DIGITS_RE = re.compile(r"^[a-z]+\d+$")
WORD_NORMALIZE_RE = re.compile(r"[^a-z0-9']")

GLOBAL_PER_FILE_LIMIT = 100
DEFAULT_GLOBAL_LIMIT = 20
DEFAULT_SESSION_LIMIT = 3

# fmt: off
STOP_WORDS: frozenset[str] = frozenset(
    {
        # english
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "by", "from", "as", "is", "was", "are", "were", "been", "be", "being", "have", "has",
        "had", "having", "do", "does", "did", "doing", "will", "would", "could", "should",
        "may", "might", "must", "shall", "can", "need", "needs", "needed", "dare", "ought",
        "used", "it", "its", "this", "that", "these", "those", "i", "you", "he", "she", "we",
        "they", "me", "him", "her", "us", "them", "my", "your", "his", "our", "their",
        "what", "which", "who", "whom", "whose", "when", "where", "why", "how", "all", "each",
        "every", "both", "few", "more", "most", "other", "others", "some", "such", "no",
        "nor", "not", "only", "own", "same", "so", "than", "too", "very", "just", "also",
        "now", "here", "there", "then", "once", "if", "else", "elif", "true", "false",
        "null", "none", "undefined", "var", "let", "const", "use", "uses", "using", "make",
        "makes", "like", "want", "wants", "know", "see", "look", "looks", "think", "take",
        "come", "go", "goes", "say", "said", "get", "gets", "got", "put", "tell", "about",
        "into", "over", "after", "before", "between", "under", "again", "further", "while",
        "above", "below", "because", "even", "still", "already", "much", "many", "well",
        "back", "thing", "things", "something", "anything", "nothing", "way", "ways",
        "sure", "okay", "yeah", "hello", "thanks", "thank", "please", "without", "within",
        "through", "during", "able", "however", "instead", "example", "following", "doesn",
        "didn", "isn", "aren", "wasn", "weren", "haven", "hasn", "wouldn", "couldn",
        "shouldn", "another", "different", "work", "works", "working", "worked", "call",
        "calls", "called", "keep", "run", "runs", "running", "check", "checks", "change",
        "changes", "changed", "right", "left", "good", "great", "better", "best", "help",
        "onto", "upon", "done",
        # code and tooling vocabulary
        "function", "functions", "return", "returns", "returned", "returning", "import",
        "imports", "export", "exports", "class", "classes", "new", "try", "catch", "throw",
        "throws", "async", "await", "public", "private", "protected", "static", "void",
        "string", "strings", "number", "numbers", "boolean", "type", "types", "typeof",
        "interface", "interfaces", "extends", "implements", "set", "value", "values", "text",
        "message", "messages", "response", "responses", "request", "requests", "data",
        "error", "errors", "result", "results", "code", "file", "files", "path", "paths",
        "name", "names", "id", "ids", "key", "keys", "item", "items", "list", "lists",
        "array", "arrays", "object", "objects", "json", "http", "https", "www", "com", "org",
        "net", "src", "dist", "lib", "bin", "node", "nodes", "modules", "module", "method",
        "methods", "variable", "variables", "property", "properties", "field", "fields",
        "startcolumn", "endcolumn", "startlinenumber", "endlinenumber", "linenumber",
        "column", "columns", "line", "lines", "start", "end", "index", "offset", "length",
        "size", "count", "source", "target", "origin", "destination", "input", "output",
        "param", "params", "parameter", "parameters", "arg", "args", "argument",
        "arguments", "option", "options", "config", "configuration", "setting", "settings",
        "prop", "props", "attr", "attribute", "attributes", "element", "elements", "parent",
        "child", "children", "sibling", "next", "prev", "previous", "first", "last",
        "current", "default", "base", "root", "uri", "uris", "url", "urls", "href", "ref",
        "refs", "reference", "references", "link", "links", "context", "scope", "state",
        "store", "cache", "buffer", "stream", "chunk", "content", "contents", "body",
        "header", "headers", "footer", "title", "label", "description", "info", "detail",
        "details", "meta", "metadata", "schema", "model", "models", "view", "views",
        "controller", "service", "services", "provider", "providers", "factory", "builder",
        "handler", "handlers", "listener", "observer", "callback", "callbacks", "promise",
        "promises", "resolve", "resolves", "resolved", "reject", "rejects", "rejected",
        "success", "failure", "fail", "fails", "failed", "complete", "completed", "pending",
        "loading", "loaded", "ready", "init", "initialize", "setup", "create", "creates",
        "created", "update", "updates", "updated", "delete", "deleted", "remove", "removed",
        "add", "added", "insert", "append", "prepend", "push", "pop", "shift", "unshift",
        "splice", "slice", "concat", "join", "split", "map", "filter", "reduce", "find",
        "foreach", "sort", "reverse", "includes", "indexof", "entries",
        "copilot", "vscode", "extension", "extensions", "workspace", "workspaces", "editor",
        "document", "documents", "selection", "range", "ranges", "position", "character",
        "word", "words", "token", "tokens", "symbol", "symbols", "definition",
        "declaration", "implementation", "usage", "hover", "completion", "diagnostic",
        "diagnostics", "repos", "repo", "repository", "git", "github", "commit", "branch",
        "merge", "pull", "command", "commands", "terminal", "folder", "folders", "session",
        "sessions", "chat", "chats", "user", "users", "assistant", "markdown", "scheme",
        "fspath", "external", "toolcallid", "toolid", "invocationmessage", "kind",
        "timestamp", "version", "agent", "agents",
        # session file keys
        "sessionid", "creationdate", "lastmessagedate", "selectedmodel",
        "responsecompletedate", "requesterusername", "responderusername",
        "initiallocation", "customtitle",
    }
)
# fmt: on


def _looks_like_identifier(word: str) -> bool:
    return bool(TRAILING_DIGITS_RE.match(word)) or word[:1].isdigit() or "_" in word


def count_topics(text: str) -> Counter[str]:
    counts: Counter[str] = Counter()
    for word in TOKEN_RE.findall(text.lower()):
        if word in STOP_WORDS or _looks_like_identifier(word):
            continue
        counts[word] += 1
    return counts


def _rank(counts: Counter[str], limit: int) -> list[tuple[str, int]]:
    # sorted() is stable, so ties keep first-seen order.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[: max(limit, 0)]


def extract_topics(text: str, limit: int = DEFAULT_SESSION_LIMIT) -> list[tuple[str, int]]:
    """Most frequent non-stop-word tokens of ``text`` with their counts."""

    return _rank(count_topics(text), limit)


def _read_text(path: Path) -> str | None:
    if not within_size_limit(path):
        return None
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("skipping unreadable %s: %s", path, exc)
        return None


def session_topics(
    index: SessionIndex, session_id: str, limit: int = DEFAULT_SESSION_LIMIT
) -> list[tuple[str, int]]:
    if not index.has_session(session_id):
        return []
    path = index.session_path(session_id)
    if path is None:
        return []
    text = _read_text(path)
    if text is None:
        return []
    return extract_topics(text, limit)


def global_topics(
    index: SessionIndex,
    limit: int = DEFAULT_GLOBAL_LIMIT,
    session_ids: Sequence[str] | None = None,
) -> list[tuple[str, int]]:
    """Word cloud across sessions.

    Sums each file's top GLOBAL_PER_FILE_LIMIT topics rather than tallying the
    whole corpus, so rare words spread across many files can be undercounted.
    """

    if session_ids:
        wanted = [sid for sid in session_ids if index.has_session(sid)]
    else:
        wanted = [session.id for session in index.all_sessions()]
    paths = [path for path in (index.session_path(sid) for sid in wanted) if path]
    totals: Counter[str] = Counter()
    for path in paths:
        text = _read_text(path)
        if text is None:
            continue
        for word, count in extract_topics(text, GLOBAL_PER_FILE_LIMIT):
            totals[word] += count
    return _rank(totals, limit)


def count_words(texts: Iterable[str]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for text in texts:
        for raw in WORD_NORMALIZE_RE.sub(" ", text.lower()).split():
            if len(raw) > 2:
                counts[raw] += 1
    return counts
