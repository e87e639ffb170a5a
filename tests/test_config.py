import json
from pathlib import Path

import pytest

from chatvault.config import (
    ChatVaultConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
)


@pytest.fixture
def no_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CHATVAULT_STORAGE_PATH", "CHATVAULT_INDEX_DB"):
        monkeypatch.delenv(name, raising=False)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_missing_or_empty_is_empty(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    empty = tmp_path / "empty.json"
    empty.write_text("  \n")
    assert read_config_file(empty) == {}


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_accepts_jsonc_comments_and_trailing_commas(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        """
        {
          // comment should be ignored
          "storage_path": "/data/workspaceStorage",
          "max_recent_chats": 10,
        }
        """
    )

    data = read_config_file(config_path)

    assert data["storage_path"] == "/data/workspaceStorage"
    assert data["max_recent_chats"] == 10


def test_read_config_file_accepts_jsonc_block_comments(tmp_path: Path) -> None:
    config_path = tmp_path / "config.jsonc"
    config_path.write_text(
        """
        {
          /* block comment */
          "confirm_delete": false,
          "tags": ["a", "b", /* trailing */],
        }
        """
    )

    data = read_config_file(config_path)

    assert data["confirm_delete"] is False
    assert data["tags"] == ["a", "b"]


def test_read_config_file_preserves_comment_like_text_inside_strings(tmp_path: Path) -> None:
    config_path = tmp_path / "config.jsonc"
    config_path.write_text(
        """
        {
          "note": "not // a comment, keep comma, and slash",
          "url": "https://example.com/a,b",
          "escaped": "quote \\" /* still text */ ,}",
        }
        """
    )

    data = read_config_file(config_path)

    assert data["note"] == "not // a comment, keep comma, and slash"
    assert data["url"] == "https://example.com/a,b"
    assert data["escaped"] == 'quote " /* still text */ ,}'


def test_read_config_file_rejects_unterminated_block_comment(tmp_path: Path) -> None:
    config_path = tmp_path / "config.jsonc"
    config_path.write_text('{"storage_path": "/tmp"} /* broken')

    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_get_config_path_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "custom.json"
    monkeypatch.setenv("CHATVAULT_CONFIG", str(config_path))

    assert get_config_path() == config_path
    assert get_config_path(tmp_path / "explicit.json") == tmp_path / "explicit.json"


def test_load_config_defaults(tmp_path: Path, no_env_overrides: None) -> None:
    cfg = load_config(tmp_path / "missing.json")

    assert cfg == ChatVaultConfig()
    assert cfg.max_recent_chats == 50
    assert cfg.confirm_delete is True
    assert cfg.scan_fresh_s == 30


def test_load_config_reads_file_values(tmp_path: Path, no_env_overrides: None) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "storage_path": " /data/ws ",
                "index_db": "/data/index.sqlite",
                "max_recent_chats": "15",
                "confirm_delete": "no",
                "scan_fresh_s": 5,
                "unknown_key": True,
            }
        )
    )

    cfg = load_config(config_path)

    assert cfg.storage_path == "/data/ws"
    assert cfg.index_db == "/data/index.sqlite"
    assert cfg.max_recent_chats == 15
    assert cfg.confirm_delete is False
    assert cfg.scan_fresh_s == 5
    assert not hasattr(cfg, "unknown_key")


def test_load_config_warns_and_uses_defaults_on_invalid_json(
    tmp_path: Path, no_env_overrides: None
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{broken-json")

    with pytest.warns(RuntimeWarning, match="Invalid config file"):
        cfg = load_config(config_path)

    assert cfg.storage_path is None


def test_get_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHATVAULT_MAX_RECENT_CHATS", "7")
    monkeypatch.setenv("CHATVAULT_CONFIRM_DELETE", "0")
    overrides = get_env_overrides()
    assert overrides["max_recent_chats"] == "7"
    assert overrides["confirm_delete"] == "0"
    assert "storage_path" in overrides


def test_load_config_env_overrides_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"max_recent_chats": 20, "confirm_delete": true}\n')
    monkeypatch.setenv("CHATVAULT_MAX_RECENT_CHATS", "3")
    monkeypatch.setenv("CHATVAULT_CONFIRM_DELETE", "false")

    cfg = load_config(config_path)

    assert cfg.max_recent_chats == 3
    assert cfg.confirm_delete is False
    assert cfg.storage_path == str(tmp_path / "workspaceStorage")


def test_load_config_invalid_int_env_does_not_crash_and_warns(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{}\n")
    monkeypatch.setenv("CHATVAULT_SCAN_FRESH_S", "nope")
    with pytest.warns(RuntimeWarning, match="scan_fresh_s"):
        cfg = load_config(config_path)
    assert cfg.scan_fresh_s == 30


def test_load_config_invalid_config_value_does_not_crash_and_warns(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"max_recent_chats": "abc", "confirm_delete": [1]}\n')
    with pytest.warns(RuntimeWarning, match="max_recent_chats"):
        cfg = load_config(config_path)
    assert cfg.max_recent_chats == 50
    assert cfg.confirm_delete is True
