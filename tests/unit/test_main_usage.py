import sys

import pytest

from graphsearch import main as entry

from fakes import FakeApiClient


def test_usage_lists_search_tool_arguments():
    text = entry.usage_text(entry.build_registry(FakeApiClient()))

    assert text.startswith(entry.USAGE)
    assert "graph_search: Unified search" in text
    assert "arguments (JSON object on stdin):" in text
    assert "    query " in text
    assert "entityTypes" in text


def test_tools_mode_prints_usage(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["graphsearch", "tools"])
    entry.main()

    out = capsys.readouterr().out
    assert "graph_search" in out
    assert "dateRange" in out


def test_unknown_mode_exits_with_usage(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["graphsearch", "frobnicate"])
    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == 1
    assert entry.USAGE in capsys.readouterr().out
