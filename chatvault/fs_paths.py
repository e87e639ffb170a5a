from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path

WORKSPACE_STORAGE_DIR = "workspaceStorage"


def resolve_user_data_path(
    platform: str | None = None, env: Mapping[str, str] | None = None
) -> Path:
    """Return the editor's per-user data directory for ``platform``.

    Missing environment values fall back to fixed defaults so the result is
    always a path, even when it does not exist.
    """

    platform = platform or sys.platform
    env = os.environ if env is None else env
    if platform == "win32":
        app_data = env.get("APPDATA")
        if app_data:
            return Path(app_data) / "Code" / "User"
        user_profile = env.get("USERPROFILE") or "C:\\Users\\Default"
        return Path(user_profile) / "AppData" / "Roaming" / "Code" / "User"
    if platform == "darwin":
        home = env.get("HOME") or "/Users/default"
        return Path(home) / "Library" / "Application Support" / "Code" / "User"
    home = env.get("HOME") or "/home/default"
    return Path(home) / ".config" / "Code" / "User"


def resolve_storage_root(
    override: str | Path | None = None,
    *,
    platform: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
    return resolve_user_data_path(platform, env) / WORKSPACE_STORAGE_DIR
