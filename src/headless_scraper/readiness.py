# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Ready-page protocol: open a disguised page and wait until it settles.

States::

    Opening ──success──▶ ReadinessPolling ──▶ Ready
       │
       └──other status──▶ Failed (screenshot if imagedir, raise NavigationError)

One deadline, started on entry, bounds both navigation and polling. If
navigation has not finished by then the call raises NavigationTimeoutError;
if polling runs past it the page is assumed ready. Either way a single
``open_ready_page`` call finishes within the deadline plus one poll interval
plus the grace wait.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import JQUERY_URL, ScraperConfig
from .disguise import create_disguised_page
from .errors import NavigationError, NavigationTimeoutError

if TYPE_CHECKING:
    from .process import BrowserProcess

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAIL = "fail"

_READY_STATE_JS = "() => document.readyState"

# Playwright's own goto timeout sits past our deadline so the deadline
# always fires first; the abandoned goto still ends eventually.
_NAVIGATION_SLACK_MS = 5000


class OneShot:
    """Completion latch: the first resolve/fail wins, later ones are dropped."""

    def __init__(self) -> None:
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        """Deliver *value*. Returns False if the latch already fired."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def fail(self, exc: BaseException) -> bool:
        """Deliver *exc*. Returns False if the latch already fired."""
        if self._future.done():
            return False
        self._future.set_exception(exc)
        return True

    async def wait(self) -> Any:
        return await self._future


async def navigate(page: Page, url: str, *, wait_until: str = "load", timeout_ms: float = 0) -> str:
    """Run page.goto and report ``"success"`` or ``"fail"``.

    HTTP error responses still count as success; only failures to load
    anything at all (DNS, refused connection, aborted navigation) fail.
    """
    try:
        await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightError as exc:
        logger.debug("Navigation to %s failed: %s", url, exc)
        return STATUS_FAIL
    return STATUS_SUCCESS


async def open_with_deadline(page: Page, url: str, *, deadline: float, config: ScraperConfig) -> str:
    """Navigate to *url*, resolving exactly once by *deadline* (monotonic).

    The navigation itself is never cancelled. If it finishes after the
    deadline its result is dropped.
    """
    remaining = max(0.0, deadline - time.monotonic())
    latch = OneShot()

    nav = asyncio.ensure_future(
        navigate(
            page,
            url,
            wait_until=config.wait_until,
            timeout_ms=remaining * 1000 + _NAVIGATION_SLACK_MS,
        )
    )

    def _deliver(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        delivered = latch.fail(exc) if exc is not None else latch.resolve(task.result())
        if not delivered:
            logger.debug("Late navigation result for %s ignored", url)

    nav.add_done_callback(_deliver)
    timer = asyncio.get_running_loop().call_later(
        remaining,
        lambda: latch.fail(NavigationTimeoutError(url, config.page_timeout_ms)),
    )
    try:
        return await latch.wait()
    finally:
        timer.cancel()


def error_image_path(imagedir: str | Path, url: str, now_ms: int | None = None) -> Path:
    """``<imagedir>/<url with "/" as "_">_<unix millis>.jpg``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return Path(imagedir) / f"{url.replace('/', '_')}_{now_ms}.jpg"


async def capture_error_image(page: Page, url: str, imagedir: str | Path) -> str | None:
    """Best-effort full-page JPEG of a failed page. Never raises."""
    path = error_image_path(imagedir, url)
    logger.debug("Saving error image to %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path), type="jpeg", full_page=True)
    except Exception:
        logger.debug("Failed to save error image to %s", path, exc_info=True)
        return None
    logger.debug("Saved error image to %s", path)
    return str(path)


async def wait_for_ready(
    page: Page,
    *,
    deadline: float,
    check_every_ms: int = 500,
    after_ms: int = 1000,
) -> str | None:
    """Poll document.readyState until "complete" or *deadline*, then wait *after_ms*.

    Each evaluation gets whatever is left of the deadline, or one poll
    interval once it has passed; an evaluation that does not answer in time
    counts as reaching the deadline. Returns the last readyState seen (None
    if no evaluation answered). Evaluation errors propagate.
    """
    interval = check_every_ms / 1000
    state = None
    logger.debug("Waiting for document.readyState === complete ..")
    while True:
        remaining = deadline - time.monotonic()
        try:
            state = await asyncio.wait_for(page.evaluate(_READY_STATE_JS), timeout=max(remaining, interval))
        except TimeoutError:
            logger.info("document.readyState did not answer before the deadline, assuming ready")
            break
        if state == "complete":
            logger.debug("Page is document ready, waiting %dms for javascript/ajax ..", after_ms)
            break
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.info("Page still %r at deadline, assuming ready", state)
            break
        await asyncio.sleep(min(interval, remaining))
    await asyncio.sleep(after_ms / 1000)
    return state


async def open_ready_page(process: BrowserProcess, url: str, config: ScraperConfig) -> Page:
    """Open *url* in a disguised page and return it once ready.

    Raises NavigationError for a non-success status (after a screenshot when
    ``config.imagedir`` is set) and NavigationTimeoutError when the deadline
    passes first. The page is closed on any failure.
    """
    deadline = time.monotonic() + config.page_timeout_ms / 1000
    page = await create_disguised_page(process, config.headers)
    try:
        status = await open_with_deadline(page, url, deadline=deadline, config=config)
        logger.debug("Page %s opened with status %s", url, status)
        if status != STATUS_SUCCESS:
            screenshot = None
            if config.imagedir:
                screenshot = await capture_error_image(page, url, config.imagedir)
            else:
                logger.debug("Not saving error image since no imagedir")
            raise NavigationError(url, status, screenshot=screenshot)

        await wait_for_ready(
            page,
            deadline=deadline,
            check_every_ms=config.check_every_ms,
            after_ms=config.after_ms,
        )
        if config.include_jquery:
            await page.add_script_tag(url=JQUERY_URL)
    except Exception:
        with suppress(Exception):
            await page.close()
        raise
    logger.debug("Page %s is ready", url)
    return page
