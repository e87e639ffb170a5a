from __future__ import annotations

import json
import os
import re
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/chatvault/config.json").expanduser()
DEFAULT_INDEX_DB = "~/.chatvault/index.sqlite"

CONFIG_ENV_OVERRIDES = {
    "storage_path": "CHATVAULT_STORAGE_PATH",
    "index_db": "CHATVAULT_INDEX_DB",
    "max_recent_chats": "CHATVAULT_MAX_RECENT_CHATS",
    "confirm_delete": "CHATVAULT_CONFIRM_DELETE",
    "scan_fresh_s": "CHATVAULT_SCAN_FRESH_S",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CHATVAULT_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def _split_strings(raw: str) -> list[tuple[bool, str]]:
    """Split text into (is_string_literal, chunk) pieces."""

    pieces: list[tuple[bool, str]] = []
    start = 0
    i = 0
    length = len(raw)
    while i < length:
        if raw[i] != '"':
            i += 1
            continue
        if i > start:
            pieces.append((False, raw[start:i]))
        j = i + 1
        while j < length and raw[j] != '"':
            j += 2 if raw[j] == "\\" else 1
        pieces.append((True, raw[i : j + 1]))
        start = i = j + 1
    if start < length:
        pieces.append((False, raw[start:]))
    return pieces


def _strip_jsonc(raw: str) -> str:
    """Drop // and /* */ comments and trailing commas outside string literals."""

    without_comments: list[str] = []
    in_block = False
    in_line = False
    for is_string, chunk in _split_strings(raw):
        if is_string and not (in_block or in_line):
            without_comments.append(chunk)
            continue
        i = 0
        while i < len(chunk):
            if in_block:
                end = chunk.find("*/", i)
                if end == -1:
                    i = len(chunk)
                    continue
                in_block = False
                i = end + 2
            elif in_line:
                end = chunk.find("\n", i)
                if end == -1:
                    i = len(chunk)
                    continue
                in_line = False
                i = end
            elif chunk.startswith("/*", i):
                in_block = True
                i += 2
            elif chunk.startswith("//", i):
                in_line = True
                i += 2
            else:
                without_comments.append(chunk[i])
                i += 1
    if in_block:
        raise ValueError("invalid config json")

    cleaned: list[str] = []
    for is_string, chunk in _split_strings("".join(without_comments)):
        cleaned.append(chunk if is_string else re.sub(r",(\s*[}\]])", r"\1", chunk))
    return "".join(cleaned)


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(_strip_jsonc(raw))
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class ChatVaultConfig:
    # Root override; ignored unless the directory exists.
    storage_path: str | None = None
    index_db: str = DEFAULT_INDEX_DB
    max_recent_chats: int = 50
    confirm_delete: bool = True
    scan_fresh_s: int = 30


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_optional_str(value: object, *, key: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    warnings.warn(f"Invalid string for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return None


def load_config(path: Path | None = None) -> ChatVaultConfig:
    cfg = ChatVaultConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(f"Invalid config file: {exc}", RuntimeWarning, stacklevel=2)
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: ChatVaultConfig, data: dict[str, Any]) -> ChatVaultConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in {"max_recent_chats", "scan_fresh_s"}:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key == "confirm_delete":
            cfg.confirm_delete = _coerce_bool(value, cfg.confirm_delete, key=key)
            continue
        if key == "storage_path":
            cfg.storage_path = _coerce_optional_str(value, key=key)
            continue
        if key == "index_db":
            cfg.index_db = _coerce_optional_str(value, key=key) or cfg.index_db
            continue
        setattr(cfg, key, value)
    return cfg


def _apply_env(cfg: ChatVaultConfig) -> ChatVaultConfig:
    storage_path = os.getenv("CHATVAULT_STORAGE_PATH")
    if storage_path is not None:
        cfg.storage_path = storage_path.strip() or None
    cfg.index_db = os.getenv("CHATVAULT_INDEX_DB", cfg.index_db)
    cfg.max_recent_chats = _parse_int(
        os.getenv("CHATVAULT_MAX_RECENT_CHATS"),
        cfg.max_recent_chats,
        key="max_recent_chats",
    )
    cfg.confirm_delete = _parse_bool(os.getenv("CHATVAULT_CONFIRM_DELETE"), cfg.confirm_delete)
    cfg.scan_fresh_s = _parse_int(
        os.getenv("CHATVAULT_SCAN_FRESH_S"), cfg.scan_fresh_s, key="scan_fresh_s"
    )
    return cfg
