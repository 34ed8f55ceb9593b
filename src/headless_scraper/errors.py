# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""headless-scraper exception hierarchy.

All scraper-specific errors inherit from ScraperError, so callers can catch
the base class for any failure or a subclass for targeted handling.
Playwright errors raised while evaluating scripts are not wrapped.
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base exception for all headless-scraper errors."""


class LaunchError(ScraperError):
    """Chromium exited early or never exposed its DevTools endpoint."""

    def __init__(self, message: str, *, port: int = 0, returncode: int | None = None) -> None:
        super().__init__(message)
        self.port = port
        self.returncode = returncode


class NavigationError(ScraperError):
    """Opening a page finished with a non-success status."""

    def __init__(self, url: str, status: str, *, screenshot: str | None = None) -> None:
        super().__init__(f"Opening page {url} resulted in status {status}")
        self.url = url
        self.status = status
        self.screenshot = screenshot


class NavigationTimeoutError(ScraperError, TimeoutError):
    """The page deadline elapsed before navigation resolved."""

    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(f"Opening page {url} timed out after {timeout_ms}ms")
        self.url = url
        self.timeout_ms = timeout_ms
