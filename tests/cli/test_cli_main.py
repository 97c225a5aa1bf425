"""Tests for argument parsing and the entry point."""

import sys

import pytest

from campdex.__main__ import main
from campdex.cli import build_parser
from campdex.cli.index import index_search, index_stats
from campdex.cli.project import project_list


def test_parse_search_flags():
    args = build_parser().parse_args(["index", "search", "bug", "--open", "--type", "cards", "--repo", "/tmp/x"])
    assert args.func is index_search
    assert args.completed is False
    assert args.type == "cards"
    assert args.repo == "/tmp/x"


def test_parse_defaults():
    parser = build_parser()
    assert parser.parse_args(["index"]).func is index_stats
    args = parser.parse_args(["project"])
    assert args.func is project_list
    assert args.status is None
    assert parser.parse_args(["index", "search", "x"]).completed is None


def test_parse_rejects_bad_choice():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["index", "search", "x", "--type", "columns"])


def test_main_runs_handler(indexed_repo, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["campdex", "project", "list", "--repo", str(indexed_repo)])
    with pytest.raises(SystemExit) as info:
        main()
    assert info.value.code == 0
    assert "Legacy Site" in capsys.readouterr().out


def test_main_maps_errors(indexed_repo, connected, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["campdex", "workflow", "run", "tidy", "100", "--repo", str(indexed_repo)])
    with pytest.raises(SystemExit) as info:
        main()
    assert info.value.code == 1
    assert "Unknown workflow" in capsys.readouterr().err
