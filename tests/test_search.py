from collections.abc import Callable
from pathlib import Path

import pytest

from chatvault.config import ChatVaultConfig
from chatvault.index import SessionIndex
from chatvault.index.search import count_terms


@pytest.fixture
def index(
    tmp_path: Path, storage_root: Path, make_session: Callable[..., Path]
) -> SessionIndex:
    make_session(
        "compose",
        container="aaaa",
        turns=[("How do I run docker compose?", "Run docker compose up.")],
    )
    make_session(
        "k8s",
        container="bbbb",
        folder="file:///home/me/cluster",
        turns=[("Deploy to kubernetes", "kubectl apply for kubernetes with docker images")],
    )
    make_session("other", container="cccc", turns=[("Unrelated question", "Unrelated answer")])
    config = ChatVaultConfig(storage_path=str(storage_root), index_db=str(tmp_path / "i.sqlite"))
    index = SessionIndex(config).initialize()
    index.scan()
    return index


def test_any_mode_ranks_by_total_matches(index: SessionIndex) -> None:
    hits = index.deep_search(["docker"])

    assert [hit.session.id for hit in hits] == ["compose", "k8s"]
    assert hits[0].term_counts == {"docker": 2}
    assert hits[0].total_matches == 2
    assert hits[1].total_matches == 1
    assert hits[0].path == index.session_path("compose")


def test_any_mode_matches_either_term(index: SessionIndex) -> None:
    hits = index.deep_search(["compose", "kubernetes"], "any")
    assert sorted(hit.session.id for hit in hits) == ["compose", "k8s"]


def test_all_mode_requires_every_term(index: SessionIndex) -> None:
    hits = index.deep_search(["docker", "kubernetes"], "all")

    assert [hit.session.id for hit in hits] == ["k8s"]
    assert hits[0].term_counts == {"docker": 1, "kubernetes": 2}
    assert hits[0].total_matches == 3


def test_exact_mode_counts_joined_phrase(index: SessionIndex) -> None:
    hits = index.deep_search(["docker", "compose"], "exact")

    assert [hit.session.id for hit in hits] == ["compose"]
    assert hits[0].term_counts == {"docker compose": 2}


def test_search_is_case_insensitive(index: SessionIndex) -> None:
    assert [hit.session.id for hit in index.deep_search(["KUBERNETES"])] == ["k8s"]


def test_blank_terms_are_ignored(index: SessionIndex) -> None:
    assert index.deep_search([]) == []
    assert index.deep_search(["  ", ""]) == []


def test_unknown_mode_is_rejected(index: SessionIndex) -> None:
    with pytest.raises(ValueError, match="unknown search mode"):
        index.deep_search(["docker"], "fuzzy")  # type: ignore[arg-type]


def test_unreadable_files_are_skipped(index: SessionIndex) -> None:
    index.session_path("compose").unlink()
    assert [hit.session.id for hit in index.deep_search(["docker"])] == ["k8s"]


def test_deleted_sessions_are_not_reported(index: SessionIndex) -> None:
    index.delete_session("compose")
    assert [hit.session.id for hit in index.deep_search(["docker"])] == ["k8s"]


def test_count_terms_is_non_overlapping() -> None:
    assert count_terms("aaaa", ["aa"], "any") == {"aa": 2}


def test_search_sessions_matches_label_and_loaded_content(index: SessionIndex) -> None:
    assert [s.id for s in index.search_sessions("CLUSTER")] == ["k8s"]
    assert index.search_sessions("unrelated") == []

    index.load_session("other")

    assert [s.id for s in index.search_sessions("unrelated")] == ["other"]
    assert index.search_sessions("   ") == []
