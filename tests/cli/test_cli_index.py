"""Tests for 'campdex index' commands."""

import csv
import json
import signal
from argparse import Namespace

import pytest

from campdex.cli.index import (
    index_build,
    index_clear,
    index_export,
    index_history,
    index_search,
    index_stats,
    index_summary,
)
from campdex.config import TOKEN_ENV
from campdex.index import LocalIndex


def _search_args(repo, query, **kwargs):
    defaults = dict(type="all", project=None, assignee=None, completed=None)
    defaults.update(kwargs)
    return Namespace(repo=str(repo), json=False, query=query, **defaults)


def test_build(initialized_repo, connected, capsys):
    args = Namespace(repo=str(initialized_repo), json=False)
    assert index_build(args) == 0

    out = capsys.readouterr().out
    assert "  Fetching projects..." in out
    assert "Index built" in out
    assert "Cards:    12" in out
    assert len(LocalIndex.open(initialized_repo).index.cards) == 12


def test_build_json_reports_failures(initialized_repo, connected, capsys):
    connected.fail_cards = {(200, 2004)}
    args = Namespace(repo=str(initialized_repo), json=True)
    assert index_build(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["meta"]["total_cards"] == 10
    assert data["failures"][0]["column_id"] == 2004


def test_build_interrupted_keeps_index(initialized_repo, connected, monkeypatch, capsys):
    """Ctrl-C during a build cancels it and leaves the committed index alone."""
    before = signal.getsignal(signal.SIGINT)
    list_people = connected.list_people

    def interrupted(page=1):
        signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
        return list_people(page)

    monkeypatch.setattr(connected, "list_people", interrupted)
    args = Namespace(repo=str(initialized_repo), json=False)
    with pytest.raises(SystemExit, match="1"):
        index_build(args)

    assert "Build cancelled" in capsys.readouterr().err
    assert signal.getsignal(signal.SIGINT) is before
    assert LocalIndex.open(initialized_repo).index.cards == {}


def test_build_needs_token(initialized_repo, monkeypatch, capsys):
    monkeypatch.delenv(TOKEN_ENV, raising=False)
    args = Namespace(repo=str(initialized_repo), json=False)
    with pytest.raises(SystemExit, match="1"):
        index_build(args)
    assert TOKEN_ENV in capsys.readouterr().err


def test_stats_before_build(initialized_repo, capsys):
    assert index_stats(Namespace(repo=str(initialized_repo), json=False)) == 0
    assert "has not been built" in capsys.readouterr().out


def test_stats(indexed_repo, capsys):
    assert index_stats(Namespace(repo=str(indexed_repo), json=False)) == 0

    out = capsys.readouterr().out
    assert "Projects: 3 (2 active)" in out
    assert "Cards:    12" in out
    assert "Completed: 4" in out
    assert "Alice Anders" in out


def test_stats_json(indexed_repo, capsys):
    assert index_stats(Namespace(repo=str(indexed_repo), json=True)) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["total_cards"] == 12
    assert data["open_cards"] + data["completed_cards"] == 12
    assert data["by_type"]["total"] == 12


def test_search(indexed_repo, capsys):
    assert index_search(_search_args(indexed_repo, "bug")) == 0

    out = capsys.readouterr().out
    assert "Cards (2):" in out
    assert "Fix login bug" in out
    assert "[x] 6002  Map bug" in out


def test_search_filters(indexed_repo, capsys):
    assert index_search(_search_args(indexed_repo, "", type="cards", project=200, completed=False)) == 0

    out = capsys.readouterr().out
    assert "Cards (3):" in out
    assert "Map bug" not in out


def test_search_no_results(indexed_repo, capsys):
    assert index_search(_search_args(indexed_repo, "zzzz")) == 0
    assert "No results for 'zzzz'" in capsys.readouterr().out


def test_search_json(indexed_repo, capsys):
    args = _search_args(indexed_repo, "alice", type="people")
    args.json = True
    assert index_search(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert [p["name"] for p in data["people"]] == ["Alice Anders"]
    assert data["cards"] == []


def test_export(indexed_repo, tmp_path, capsys):
    output = tmp_path / "projects.csv"
    args = Namespace(repo=str(indexed_repo), json=False, type="projects", output=str(output))
    assert index_export(args) == 0

    assert f"Exported projects to {output}" in capsys.readouterr().out
    with open(output, newline="", encoding="utf-8") as f:
        assert len(list(csv.reader(f))) == 4


def test_clear(indexed_repo, capsys):
    assert index_clear(Namespace(repo=str(indexed_repo), json=False)) == 0
    assert "Index cleared" in capsys.readouterr().out
    assert LocalIndex.open(indexed_repo).index.cards == {}


def test_summary(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="bpbp")
    assert index_summary(args) == 0

    out = capsys.readouterr().out
    assert "BuddyPress Business Profile (100)" in out
    assert "8 cards: 5 open, 3 completed" in out
    assert "Backlog" in out


def test_summary_json(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=True, project="200")
    assert index_summary(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["project"]["name"] == "buddypress-checkins-pro"
    assert data["stats"]["by_column"] == {"Bugs": 2, "QA": 2}


def test_summary_no_match(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="zzzz")
    with pytest.raises(SystemExit, match="1"):
        index_summary(args)
    assert "No project matches 'zzzz'" in capsys.readouterr().err


def test_history(indexed_repo, capsys):
    assert index_history(Namespace(repo=str(indexed_repo), json=False, limit=5)) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].endswith("Build index: 3 projects, 12 cards")
    assert lines[1].endswith("Initialize campdex index")
