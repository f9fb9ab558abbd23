# tests/unit/test_main.py — v1
"""Tests for main.py — CLI parsing and command dispatch."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import patch

import pytest

from deepthink.api.facade import ReasoningService
from deepthink.llm.errors import UpstreamQuotaExceeded
from deepthink.logging.logger import ROOT_LOGGER
from deepthink.main import _build_parser, main


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger(ROOT_LOGGER).handlers.clear()


@pytest.fixture
def cli(settings, memory_store):
    """Run main() against the test settings with an injected service."""

    def _run(argv, llm):
        service = ReasoningService(settings=settings, llm=llm, store=memory_store)
        with patch("deepthink.config.settings.load_settings", return_value=settings), patch.object(
            ReasoningService, "from_settings", return_value=service
        ):
            return main(argv)

    return _run


class TestParser:
    def test_ask_defaults(self):
        args = _build_parser().parse_args(["ask", "Why?"])
        assert args.command == "ask"
        assert args.session == "cli"
        assert args.user is None
        assert args.budget is None
        assert not args.json

    def test_serve_options(self):
        args = _build_parser().parse_args(["serve", "--port", "9000"])
        assert args.port == 9000
        assert args.host is None

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "deepthink" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestAsk:
    def test_json_events(self, cli, fake_llm, settings, capsys):
        settings.confidence_threshold = 0.0
        assert cli(["ask", "What is Raft?", "--json", "--budget", "4000"], fake_llm) == 0

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert lines[0]["event"] == "plan"
        assert lines[0]["data"]["tokenBudget"] == 4000
        assert lines[-1]["event"] == "complete"
        assert lines[-1]["data"]["decision"] == "answer"

    def test_human_output(self, cli, fake_llm, settings, capsys):
        settings.confidence_threshold = 0.0
        assert cli(["ask", "What is Raft?"], fake_llm) == 0
        out = capsys.readouterr().out
        assert out.startswith("Plan: 8 stages")
        assert "Decision: answer" in out
        assert "Stage output number 6." in out

    def test_upstream_failure_exit_code(self, cli, llm_factory, capsys):
        def responder(index, system, user):
            raise UpstreamQuotaExceeded("Out of credits")

        assert cli(["ask", "q"], llm_factory(responder)) == 1
        assert "upstream_quota_exceeded" in capsys.readouterr().err


class TestChain:
    def test_found(self, cli, fake_llm, memory_store, capsys):
        asyncio.run(memory_store.insert_reasoning_chain({"trace_id": "t-1", "user_query": "q"}))
        assert cli(["chain", "t-1"], fake_llm) == 0
        assert json.loads(capsys.readouterr().out)["user_query"] == "q"

    def test_missing(self, cli, fake_llm):
        assert cli(["chain", "nope"], fake_llm) == 1
