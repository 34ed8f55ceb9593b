# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""headless-scraper: fully-rendered HTML from a disguised headless Chromium.

- disguise: per-page user-agent and request headers
- readiness: bounded wait for document.readyState plus a grace period
- supervision: automatic respawn when the browser process crashes
"""

from __future__ import annotations

from .config import LaunchOptions, ScraperConfig
from .errors import LaunchError, NavigationError, NavigationTimeoutError, ScraperError
from .session import Scraper, create_scraper

__all__ = [
    "LaunchError",
    "LaunchOptions",
    "NavigationError",
    "NavigationTimeoutError",
    "Scraper",
    "ScraperConfig",
    "ScraperError",
    "create_scraper",
]
