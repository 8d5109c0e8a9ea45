"""Tests for the command line entry point."""

import json

import pytest

from ragrelay.config.settings import settings
from ragrelay.presentation.cli import build_parser, main


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "work_dir", str(tmp_path))
    monkeypatch.setattr(settings, "chat_endpoint", "")
    monkeypatch.setattr(settings, "embedding_endpoint", "")
    return tmp_path


def test_parser():
    args = build_parser().parse_args(["chat", "hello", "--stream", "--knowledge-base"])
    assert (args.command, args.message, args.stream, args.knowledge_base) == ("chat", "hello", True, True)
    assert build_parser().parse_args(["search", "q", "-k", "2"]).k == 2


def test_status_without_index(workspace, capsys):
    assert main(["status"]) == 0
    assert json.loads(capsys.readouterr().out)["indexed"] is False


def test_index_without_corpus_fails(workspace):
    assert main(["index"]) == 1


def test_search_without_index_fails(workspace):
    assert main(["search", "hello"]) == 1


@pytest.mark.parametrize("k", ["0", "-2", "many"])
def test_search_rejects_non_positive_k(k):
    with pytest.raises(SystemExit):
        build_parser().parse_args(["search", "q", "-k", k])
