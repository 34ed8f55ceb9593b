# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Serialize a rendered page to an HTML string."""

from __future__ import annotations

import logging

from playwright.async_api import Page

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT = "<html></html>"

# head + body only; doctype and <html> attributes are not preserved.
_PAGE_HTML_JS = "() => '<html>' + document.head.outerHTML + document.body.outerHTML + '</html>'"


async def extract_html(page: Page) -> str:
    """Return the page's head and body markup inside a bare <html> wrapper."""
    logger.debug("Getting page html ..")
    html = await page.evaluate(_PAGE_HTML_JS)
    html = html or EMPTY_DOCUMENT
    logger.debug("Got page html: %d chars", len(html))
    return html
