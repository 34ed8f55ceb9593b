# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright stand-ins shared by the browser-facing tests."""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock

_pids = itertools.count(1000)


def make_page(ready_state: str = "complete", html: str | None = "<html><head></head><body></body></html>"):
    """AsyncMock page whose evaluate() answers readyState then markup."""
    page = AsyncMock()
    page.on = MagicMock()  # Playwright's on() is synchronous

    async def _evaluate(script, *args):
        if "readyState" in script:
            return ready_state
        return html

    page.evaluate = AsyncMock(side_effect=_evaluate)
    page.goto = AsyncMock(return_value=MagicMock(status=200))
    return page


def make_context(page):
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    return context


def make_process(page=None):
    """MagicMock process handle producing one context/page pair."""
    page = page or make_page()
    context = make_context(page)
    process = MagicMock()
    process.new_context = AsyncMock(return_value=context)
    process.context = context
    process.page = page
    return process


class FakeHandle:
    """Process handle with a real StreamReader standing in for stderr."""

    def __init__(self, page=None):
        self.pid = next(_pids)
        self.stderr = asyncio.StreamReader()
        self.page = page or make_page()
        self.context = make_context(self.page)
        self.new_context = AsyncMock(return_value=self.context)
        self.close = AsyncMock(side_effect=self._close)
        self.closed = False

    async def _close(self):
        self.closed = True
        if self.stderr is not None and not self.stderr.at_eof():
            self.stderr.feed_eof()

    def crash(self, marker: str = "Received signal 11 SEGV_MAPERR 000000000000\n"):
        self.stderr.feed_data(marker.encode())

    def __repr__(self):
        return f"<FakeHandle pid={self.pid}>"


class FakeLauncher:
    """Launcher recording its calls; hands out FakeHandles or raises."""

    def __init__(self, *, fail_on: set[int] | None = None, gate: asyncio.Event | None = None):
        self.calls: list[tuple] = []
        self.handles: list[FakeHandle] = []
        self._fail_on = fail_on or set()
        self._gate = gate

    async def __call__(self, playwright, options):
        self.calls.append((playwright, options))
        n = len(self.calls)
        if n > 1 and self._gate is not None:
            await self._gate.wait()
        if n in self._fail_on:
            raise RuntimeError(f"launch #{n} failed")
        handle = FakeHandle()
        self.handles.append(handle)
        return handle


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Spin the event loop until *predicate()* is true."""
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while not predicate():
        if loop.time() > end:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
