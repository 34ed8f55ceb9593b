# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import headless_scraper  # noqa: F401
except ImportError:
    raise ImportError("headless_scraper is not installed. Run: pip install -e '.[dev]'") from None

import pytest


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real Chromium/Playwright processes in unit tests.

    Tests that need a process should pass a fake ``launcher`` to Supervisor
    or patch ``headless_scraper.process.launch_process`` and
    ``headless_scraper.session.async_playwright`` explicitly; those patches
    take priority over this fixture.

    Opt out with::

        @pytest.mark.allow_real_browser
    """
    if "allow_real_browser" in request.keywords:
        return

    async def _no_real_launch(*args, **kwargs):
        raise RuntimeError(
            "Test tried to launch a real browser process. Patch 'headless_scraper.process.launch_process'."
        )

    def _no_real_playwright():
        raise RuntimeError("Test tried to start Playwright. Patch 'headless_scraper.session.async_playwright'.")

    monkeypatch.setattr("headless_scraper.process.launch_process", _no_real_launch)
    monkeypatch.setattr("headless_scraper.session.async_playwright", _no_real_playwright)
