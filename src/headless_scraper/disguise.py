# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Disguised page factory.

Each page gets its own BrowserContext so the user-agent can be set at
context level; the context is closed together with the page.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import suppress
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

if TYPE_CHECKING:
    from .process import BrowserProcess

logger = logging.getLogger(__name__)


def lowercase_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy *headers* with lowercased names. Later keys win on collision."""
    return {name.lower(): value for name, value in headers.items()}


def _log_page_error(error: PlaywrightError) -> None:
    logger.debug("Page script error: %s", error)


async def create_disguised_page(process: BrowserProcess, headers: Mapping[str, str]) -> Page:
    """Open a page whose requests carry *headers* and their user-agent."""
    lowercased = lowercase_headers(headers)
    user_agent = lowercased.get("user-agent")

    logger.debug("Creating disguised page ..")
    context = await process.new_context(**({"user_agent": user_agent} if user_agent else {}))
    try:
        page = await context.new_page()
        await page.set_extra_http_headers(lowercased)
    except Exception:
        with suppress(Exception):
            await context.close()
        raise

    async def _close_context(_page: Page) -> None:
        with suppress(Exception):
            await context.close()

    page.on("pageerror", _log_page_error)
    page.on("close", _close_context)
    logger.debug("Created disguised page (user_agent=%.60s)", user_agent or "default")
    return page
