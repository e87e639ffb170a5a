from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

CREATED_MS = 1_700_000_000_000
UPDATED_MS = 1_700_000_600_000


@pytest.fixture(autouse=True)
def _isolate_chatvault_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    storage = tmp_path / "workspaceStorage"
    storage.mkdir()
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CHATVAULT_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("CHATVAULT_INDEX_DB", str(tmp_path / "index.sqlite"))
    monkeypatch.setenv("CHATVAULT_STORAGE_PATH", str(storage))


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    return tmp_path / "workspaceStorage"


def session_document(
    session_id: str | None,
    turns: Sequence[tuple[str, Any]],
    *,
    created: int = CREATED_MS,
    updated: int = UPDATED_MS,
    model: str | None = "GPT-4o",
) -> dict[str, Any]:
    requests: list[dict[str, Any]] = []
    for i, (user_text, response) in enumerate(turns):
        request: dict[str, Any] = {
            "message": {"text": user_text, "timestamp": created + i * 1000},
            "responseCompleteDate": created + i * 1000 + 500,
        }
        if isinstance(response, str):
            request["response"] = [{"value": response}]
        elif response is not None:
            request["response"] = response
        requests.append(request)
    data: dict[str, Any] = {
        "creationDate": created,
        "lastMessageDate": updated,
        "requests": requests,
    }
    if session_id is not None:
        data["sessionId"] = session_id
    if model is not None:
        data["selectedModel"] = {"metadata": {"name": model}}
    return data


@pytest.fixture
def make_session(storage_root: Path) -> Callable[..., Path]:
    """Write a session file under ``storage_root/<container>/chatSessions``."""

    def _make(
        session_id: str | None = "s1",
        turns: Sequence[tuple[str, Any]] = (("hello there", "hi, how can I help?"),),
        *,
        container: str = "abcdef0123456789",
        folder: str | None = "file:///home/me/projects/demo",
        filename: str | None = None,
        **doc_kwargs: Any,
    ) -> Path:
        container_dir = storage_root / container
        sessions_dir = container_dir / "chatSessions"
        sessions_dir.mkdir(parents=True, exist_ok=True)
        if folder is not None:
            (container_dir / "workspace.json").write_text(json.dumps({"folder": folder}))
        path = sessions_dir / (filename or f"{session_id or 'untitled'}.json")
        path.write_text(json.dumps(session_document(session_id, turns, **doc_kwargs)))
        return path

    return _make
