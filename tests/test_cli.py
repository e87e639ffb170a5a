import json
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chatvault import __version__
from chatvault.cli import app

runner = CliRunner()


@pytest.fixture
def sessions(make_session: Callable[..., Path]) -> None:
    make_session("s1", turns=[("How do I run docker compose?", "Run docker compose up.")])
    make_session(
        "s2",
        container="bbbb",
        folder="file:///home/me/cluster",
        turns=[("Deploy to kubernetes", "kubectl apply with docker images")],
        updated=1_800_000_000_000,
    )


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("scan", "list", "search", "topics", "export", "import", "stats"):
        assert command in result.stdout


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_scan_reports_counts(sessions: None) -> None:
    result = runner.invoke(app, ["scan"])
    assert result.exit_code == 0
    assert "Sessions: 2" in result.stdout
    assert "Errors: 0" in result.stdout


def test_scan_second_run_uses_cache(sessions: None) -> None:
    runner.invoke(app, ["scan"])
    result = runner.invoke(app, ["scan"])
    assert result.exit_code == 0
    assert "From cache: 2" in result.stdout


def test_list_orders_by_update_and_filters_workspace(sessions: None) -> None:
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert result.stdout.index("s2") < result.stdout.index("s1")

    result = runner.invoke(app, ["list", "--workspace", "cluster"])
    assert result.exit_code == 0
    assert "s2" in result.stdout
    assert "s1 " not in result.stdout


def test_list_without_sessions() -> None:
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No sessions found" in result.stdout


def test_workspaces(sessions: None) -> None:
    result = runner.invoke(app, ["workspaces"])
    assert result.exit_code == 0
    assert "cluster" in result.stdout
    assert "demo" in result.stdout


def test_show_prints_messages(sessions: None) -> None:
    result = runner.invoke(app, ["show", "s1"])
    assert result.exit_code == 0
    assert "How do I run docker compose?" in result.stdout
    assert "Run docker compose up." in result.stdout
    assert "Messages: 2" in result.stdout


def test_show_unknown_session_fails(sessions: None) -> None:
    result = runner.invoke(app, ["show", "nope"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_search_modes(sessions: None) -> None:
    result = runner.invoke(app, ["search", "docker", "kubernetes", "--mode", "all"])
    assert result.exit_code == 0
    assert "s2" in result.stdout
    assert "s1 " not in result.stdout

    result = runner.invoke(app, ["search", "docker", "--mode", "fuzzy"])
    assert result.exit_code == 1
    assert "Unknown search mode" in result.stdout


def test_find_searches_loaded_content(sessions: None) -> None:
    result = runner.invoke(app, ["find", "kubectl"])
    assert result.exit_code == 0
    assert "s2" in result.stdout


def test_topics(make_session: Callable[..., Path]) -> None:
    make_session("s1", turns=[("shader shader xbox xbox xbox", None)])
    result = runner.invoke(app, ["topics", "s1"])
    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["xbox  3", "shader  2"]


def test_words(sessions: None) -> None:
    result = runner.invoke(app, ["words", "--limit", "1"])
    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["docker  3"]


def test_export_and_import(tmp_path: Path, sessions: None) -> None:
    output = tmp_path / "chats.json"
    result = runner.invoke(app, ["export", str(output), "--session", "s1"])
    assert result.exit_code == 0
    assert [chat["id"] for chat in json.loads(output.read_text())["chats"]] == ["s1"]

    result = runner.invoke(app, ["import", str(output)])
    assert result.exit_code == 0
    assert "Import file is valid" in result.stdout
    assert "Importable sessions: 0" in result.stdout
    assert "Skipped (already indexed): 1" in result.stdout


def test_export_to_stdout(sessions: None) -> None:
    result = runner.invoke(app, ["export", "-", "--format", "json"])
    assert result.exit_code == 0
    assert len(json.loads(result.stdout)["chats"]) == 2


def test_export_rejects_unknown_format_and_session(sessions: None) -> None:
    result = runner.invoke(app, ["export", "-", "--format", "pdf"])
    assert result.exit_code == 1
    assert "Unknown export format" in result.stdout

    result = runner.invoke(app, ["export", "-", "--session", "missing"])
    assert result.exit_code == 1
    assert "Sessions not found" in result.stdout


def test_import_failures(tmp_path: Path) -> None:
    result = runner.invoke(app, ["import", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "Input file not found" in result.stdout

    unknown = tmp_path / "unknown.json"
    unknown.write_text('{"foo": 1}')
    result = runner.invoke(app, ["import", str(unknown)])
    assert result.exit_code == 1
    assert "Found keys: foo" in result.stdout
    assert "No importable sessions" in result.stdout


def test_stats(sessions: None) -> None:
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Sessions: 2" in result.stdout
    assert "Workspaces: 2" in result.stdout


def test_config_rejects_invalid_file(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("{broken")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 1
    assert "Invalid config file" in result.stdout


def test_config_shows_effective_settings() -> None:
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert '"max_recent_chats": 50' in result.stdout
    assert "Set from environment: index_db, storage_path" in result.stdout
