from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import unquote

from .types import Candidate, ScanStats

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 50
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
SESSIONS_DIR = "chatSessions"
SESSION_SUFFIX = ".json"
WORKSPACE_DESCRIPTOR = "workspace.json"


def _uri_basename(uri: str) -> str:
    path = unquote(uri.removeprefix("file://"))
    return path.replace("\\", "/").rstrip("/").split("/")[-1]


def within_size_limit(path: Path) -> bool:
    """False only when ``path`` is known to exceed MAX_FILE_SIZE_BYTES."""

    try:
        return path.stat().st_size <= MAX_FILE_SIZE_BYTES
    except OSError:
        return True


def workspace_label(container_dir: Path) -> str:
    """Human-readable name for a workspace storage directory."""

    descriptor = container_dir / WORKSPACE_DESCRIPTOR
    try:
        data = json.loads(descriptor.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        data = None
    if isinstance(data, dict):
        folder = data.get("folder")
        if isinstance(folder, str) and folder:
            name = _uri_basename(folder)
            if name:
                return name
        workspace = data.get("workspace")
        if isinstance(workspace, str) and workspace:
            name = _uri_basename(workspace).removesuffix(".code-workspace")
            if name:
                return name
    return f"Workspace {container_dir.name[:8]}"


def discover_candidates(root: Path, stats: ScanStats) -> list[Candidate]:
    """List session files under ``root`` using stat only.

    Oversized files are counted in ``stats.skipped_large`` and left out;
    unreadable containers or files are counted in ``stats.errors``.
    """

    try:
        container_dirs = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError:
        logger.info("storage root not readable: %s", root)
        return []

    candidates: list[Candidate] = []
    for container_dir in container_dirs:
        sessions_dir = container_dir / SESSIONS_DIR
        if not sessions_dir.is_dir():
            continue
        stats.containers_scanned += 1
        try:
            files = sorted(sessions_dir.iterdir())
        except OSError as exc:
            logger.warning("cannot list %s: %s", sessions_dir, exc)
            stats.errors += 1
            continue
        label = workspace_label(container_dir)
        for file_path in files:
            if not file_path.name.endswith(SESSION_SUFFIX):
                continue
            try:
                st = file_path.stat()
            except OSError as exc:
                logger.warning("cannot stat %s: %s", file_path, exc)
                stats.errors += 1
                continue
            if not file_path.is_file():
                continue
            if st.st_size > MAX_FILE_SIZE_BYTES:
                stats.skipped_large += 1
                continue
            candidates.append(
                Candidate(
                    path=file_path,
                    container_id=container_dir.name,
                    container_label=label,
                    size=st.st_size,
                    mtime_ns=st.st_mtime_ns,
                )
            )
    return candidates
