"""Tests for 'campdex column' commands."""

import json
from argparse import Namespace

from campdex.cli.column import column_discover, column_list


def test_list(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="bpbp")
    assert column_list(args) == 0

    out = capsys.readouterr().out.splitlines()
    assert len(out) == 3
    assert out[0].startswith("1002")
    assert "Backlog" in out[0]
    assert out[0].endswith("3 cards")
    assert "done" in out[2]


def test_list_json(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=True, project="200")
    assert column_list(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert [(c["title"], c["type"], c["cards"]) for c in data] == [("Bugs", "bugs", 2), ("QA", "testing", 2)]


def test_list_without_columns(indexed_repo, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="legacy")
    assert column_list(args) == 0
    assert "No columns indexed for Legacy Site" in capsys.readouterr().out


def test_discover(indexed_repo, connected, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="100")
    assert column_discover(args) == 0

    out = capsys.readouterr().out
    assert "3 columns (scanned 1000..1030)" in out
    assert "Outside The Window" not in out


def test_discover_without_board(indexed_repo, connected, capsys):
    args = Namespace(repo=str(indexed_repo), json=False, project="300")
    assert column_discover(args) == 0
    assert "Legacy Site has no board" in capsys.readouterr().out
