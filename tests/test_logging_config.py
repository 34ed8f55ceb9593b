# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for headless_scraper.logging_config: structlog rendering of stdlib records."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest
import structlog

from headless_scraper.logging_config import BROWSER_STDERR_LOGGER, configure


@pytest.fixture(autouse=True)
def _reset_logging():
    """Ensure clean logging state before/after each test."""
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    touched = [logging.getLogger(name) for name in ("asyncio", BROWSER_STDERR_LOGGER)]
    old_levels = [lg.level for lg in touched]
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    for lg, lvl in zip(touched, old_levels):
        lg.setLevel(lvl)
    structlog.reset_defaults()


def _last_json(stream: io.StringIO) -> dict:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


class TestConsoleRenderer:
    def test_handler_writes_to_stderr(self):
        configure()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr

    def test_output_is_human_readable(self, capsys):
        configure(level="INFO")
        logging.getLogger("test.console").info("hello world")
        captured = capsys.readouterr()
        assert "hello world" in captured.err
        assert not captured.err.strip().startswith("{")
        assert captured.out == ""

    def test_no_color_codes_when_not_a_tty(self):
        stream = io.StringIO()
        configure(stream=stream)
        logging.getLogger("test.color").warning("plain text")
        assert "\x1b[" not in stream.getvalue()
        assert "plain text" in stream.getvalue()


class TestJSONRenderer:
    def test_output_is_valid_json(self):
        stream = io.StringIO()
        configure(json_output=True, level="INFO", stream=stream)
        logging.getLogger("headless_scraper.session").info("Scraper started (port=%d)", 12345)
        record = _last_json(stream)
        assert record["event"] == "Scraper started (port=12345)"
        assert record["level"] == "info"
        assert record["logger"] == "headless_scraper.session"
        assert record["timestamp"].endswith("Z")

    def test_exception_is_rendered(self):
        stream = io.StringIO()
        configure(json_output=True, stream=stream)
        try:
            raise RuntimeError("launch #2 failed")
        except RuntimeError:
            logging.getLogger("headless_scraper.process").error("Unable to create replacement", exc_info=True)
        assert "launch #2 failed" in _last_json(stream)["exception"]


class TestLevels:
    def test_default_level_warning(self):
        configure()
        assert logging.getLogger().level == logging.WARNING

    def test_custom_level(self):
        configure(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_below_level_is_dropped(self):
        stream = io.StringIO()
        configure(stream=stream)
        logging.getLogger("test.drop").info("invisible")
        assert stream.getvalue() == ""

    def test_asyncio_quieted(self):
        configure(level="DEBUG")
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_asyncio_follows_stricter_root(self):
        configure(level="ERROR")
        assert logging.getLogger("asyncio").level == logging.ERROR


class TestBrowserOutput:
    def test_hidden_at_info(self):
        stream = io.StringIO()
        configure(level="INFO", stream=stream)
        logging.getLogger("headless_scraper.session").info("Scraper started")
        logging.getLogger(BROWSER_STDERR_LOGGER).info("[WARNING:gpu_init.cc] noise")
        assert "Scraper started" in stream.getvalue()
        assert "gpu_init" not in stream.getvalue()

    def test_shown_at_debug(self):
        stream = io.StringIO()
        configure(level="DEBUG", stream=stream)
        logging.getLogger(BROWSER_STDERR_LOGGER).info("[WARNING:gpu_init.cc] noise")
        assert "gpu_init" in stream.getvalue()

    def test_explicit_opt_in(self):
        stream = io.StringIO()
        configure(level="INFO", stream=stream, browser_output=True)
        logging.getLogger(BROWSER_STDERR_LOGGER).info("[WARNING:gpu_init.cc] noise")
        assert "gpu_init" in stream.getvalue()


class TestReconfigure:
    def test_replaces_handler(self):
        configure()
        configure(json_output=True)
        assert len(logging.getLogger().handlers) == 1
