# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scraper session: one supervised browser process, many disguised pages.

    async with create_scraper(ScraperConfig(imagedir="errors")) as scraper:
        page, html = await scraper.html("https://example.com")
        await page.close()

Every operation accepts keyword overrides of the session config
(``headers``, ``include_jquery``, ``check_every_ms``, ``after_ms``,
``page_timeout_ms``, ``wait_until``). Callers own the pages they get back.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from playwright.async_api import Page, Playwright, async_playwright

from .config import ScraperConfig
from .disguise import create_disguised_page
from .markup import extract_html
from .process import BrowserProcess, ProcessSlot, Supervisor
from .readiness import open_ready_page

logger = logging.getLogger(__name__)


class Scraper:
    """Fetches fully-rendered HTML through a crash-recovering Chromium."""

    def __init__(self, config: ScraperConfig | None = None):
        self.config = config or ScraperConfig()
        self._playwright: Playwright | None = None
        self._slot = ProcessSlot()
        self._supervisor: Supervisor | None = None

    @classmethod
    async def create(cls, config: ScraperConfig | None = None) -> Scraper:
        """Construct and start a scraper."""
        scraper = cls(config)
        await scraper.start()
        return scraper

    @property
    def process(self) -> BrowserProcess:
        """The process handle currently in use. Replaced after a crash."""
        return self._slot.get()

    @property
    def supervisor(self) -> Supervisor:
        if self._supervisor is None:
            raise RuntimeError("Scraper not started. Use async with or call start().")
        return self._supervisor

    async def start(self) -> None:
        """Create the error image directory and launch the browser process."""
        if self.config.imagedir:
            logger.debug("Creating image directory for errors: %s", self.config.imagedir)
            Path(self.config.imagedir).mkdir(parents=True, exist_ok=True)

        self._playwright = await async_playwright().start()
        self._supervisor = Supervisor(self._playwright, self.config.launch_options(), self._slot)
        try:
            await self._supervisor.start()
        except BaseException:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
            self._supervisor = None
            raise
        logger.info(
            "Scraper started (port=%d, flags=%s, imagedir=%s)",
            self.config.port,
            list(self.config.flags),
            self.config.imagedir,
        )

    async def page(self, **overrides) -> Page:
        """Open a blank page with the disguise headers applied."""
        config = self.config.merged(**overrides)
        return await create_disguised_page(self.process, config.headers)

    async def ready_page(self, url: str, **overrides) -> Page:
        """Open *url* and wait until the document is complete (or the deadline passes)."""
        config = self.config.merged(**overrides)
        return await open_ready_page(self.process, url, config)

    async def html(self, url: str, **overrides) -> tuple[Page, str]:
        """Open a ready page at *url* and return it with its HTML."""
        page = await self.ready_page(url, **overrides)
        try:
            html = await extract_html(page)
        except Exception:
            with suppress(Exception):
                await page.close()
            raise
        return page, html

    async def close(self) -> None:
        """Close the browser process and Playwright. Safe to call twice."""
        if self._supervisor is not None:
            with suppress(Exception):
                await self._supervisor.close()
            self._supervisor = None
        if self._playwright is not None:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
        logger.info("Scraper closed")

    async def __aenter__(self) -> Scraper:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


@asynccontextmanager
async def create_scraper(config: ScraperConfig | None = None) -> AsyncGenerator[Scraper, None]:
    """Context manager to create and manage a scraper session."""
    scraper = await Scraper.create(config)
    try:
        yield scraper
    finally:
        await scraper.close()
