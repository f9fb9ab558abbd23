# tests/unit/logging/test_logging.py — v1
"""Tests for logging/context.py and logging/logger.py."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest

from deepthink.logging.context import (
    clear_context,
    get_context,
    set_run_context,
    set_stage_context,
)
from deepthink.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    TextFormatter,
    parse_size,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("deepthink.test", logging.INFO, __file__, 1, message, None, None)


class TestContext:
    def test_as_dict_drops_none(self):
        set_run_context("trace-1", "session-1")
        assert get_context().as_dict() == {"trace_id": "trace-1", "session_id": "session-1"}

    def test_stage_context(self):
        set_stage_context("decompose", "Problem Decomposer")
        ctx = get_context()
        assert ctx.stage == "decompose"
        assert ctx.agent == "Problem Decomposer"

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self):
        async def run(trace_id: str) -> str | None:
            set_run_context(trace_id)
            await asyncio.sleep(0)
            return get_context().trace_id

        assert await asyncio.gather(run("a"), run("b")) == ["a", "b"]
        assert get_context().trace_id is None


class TestFormatters:
    def test_json_includes_context(self):
        set_run_context("trace-1")
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["context"] == {"trace_id": "trace-1"}

    def test_json_without_context(self):
        assert "context" not in json.loads(JsonFormatter().format(_record()))

    def test_text_shows_trace_prefix_and_stage(self):
        set_run_context("abcdef1234567890")
        set_stage_context("critique")
        line = TextFormatter().format(_record("went fine"))
        assert "<abcdef12>" in line
        assert "(critique)" in line
        assert line.endswith("- went fine")


class TestParseSize:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3)],
    )
    def test_valid(self, text, expected):
        assert parse_size(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("ten megs")


class TestSetupLogging:
    def test_stream_and_file(self, tmp_path):
        stream = io.StringIO()
        log_file = tmp_path / "logs" / "deepthink.log"
        setup_logging(level="DEBUG", log_format="text", log_file=log_file, stream=stream)
        try:
            logging.getLogger(f"{ROOT_LOGGER}.unit").info("written")
            assert "written" in stream.getvalue()
            assert "written" in log_file.read_text(encoding="utf-8")
        finally:
            root = logging.getLogger(ROOT_LOGGER)
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()

    def test_reinit_does_not_duplicate(self):
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())
        root = logging.getLogger(ROOT_LOGGER)
        try:
            assert len(root.handlers) == 1
        finally:
            root.handlers.clear()
