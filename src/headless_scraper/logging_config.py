# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Render headless_scraper's stdlib log records through structlog.

The package itself only calls ``logging.getLogger(__name__)``. The CLI calls
``configure()`` once; library users may call it or install their own
handlers. Output always goes to stderr by default, since stdout carries HTML.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Chromium's own stderr, relayed line by line by the process supervisor.
BROWSER_STDERR_LOGGER = "headless_scraper.process.stderr"

_NOISY_LOGGERS = ("asyncio",)


def _pre_chain(json_output: bool) -> list:
    # Records come from stdlib loggers, so %-style args are already merged by
    # record.getMessage(); PositionalArgumentsFormatter covers structlog callers.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True) if json_output
        else structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool, stream: TextIO):
    if json_output:
        return structlog.processors.JSONRenderer()
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def configure(
    *,
    json_output: bool = False,
    level: str = "WARNING",
    stream: TextIO | None = None,
    browser_output: bool | None = None,
) -> None:
    """Install a single structlog-formatted handler on the root logger.

    Args:
        json_output: JSON lines instead of the console renderer.
        level: Root level name; unknown names fall back to INFO. WARNING by
            default, so a plain CLI run prints only problems.
        stream: Destination, stderr by default.
        browser_output: Show Chromium's relayed stderr. Defaults to on only
            when *level* is DEBUG.
    """
    stream = stream if stream is not None else sys.stderr
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output, stream),
        ],
        foreign_pre_chain=_pre_chain(json_output),
    )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))

    if browser_output is None:
        browser_output = root.level <= logging.DEBUG
    # Non-crash Chromium lines are logged at INFO; WARNING hides them.
    logging.getLogger(BROWSER_STDERR_LOGGER).setLevel(logging.NOTSET if browser_output else logging.WARNING)
