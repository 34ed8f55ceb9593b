# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Chromium process supervision: launch, crash detection, respawn.

A session owns exactly one live browser process at a time, held in a
``ProcessSlot``. The supervisor scans each process's stderr for a crash
marker and, on a match, launches a replacement with the same
``LaunchOptions`` and swaps it into the slot::

    supervisor = Supervisor(playwright, config.launch_options(), slot)
    await supervisor.start()
    context = await slot.get().new_context()

Recovery is fire-and-forget. A failed respawn is logged and leaves the slot
pointing at the dead handle; nothing retries it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress

from playwright.async_api import Browser, BrowserContext, Playwright
from playwright.async_api import Error as PlaywrightError

from .config import LaunchOptions
from .errors import LaunchError

logger = logging.getLogger(__name__)
stderr_logger = logging.getLogger(__name__ + ".stderr")

_CONNECT_RETRY_INTERVAL = 0.25  # seconds between CDP connection attempts
_CONNECT_ATTEMPT_TIMEOUT_MS = 2000
_TERMINATE_TIMEOUT = 5.0
_STDERR_CHUNK_SIZE = 4096


class BrowserProcess:
    """Handle to one spawned Chromium process and its CDP connection."""

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        browser: Browser,
        options: LaunchOptions,
        user_data_dir: str = "",
    ) -> None:
        self._proc = proc
        self.browser = browser
        self.options = options
        self._user_data_dir = user_data_dir
        self._closed = False

    def __repr__(self) -> str:
        return f"<BrowserProcess pid={self.pid} port={self.options.port}>"

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        """Chromium's diagnostic byte stream."""
        return self._proc.stderr

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    def is_alive(self) -> bool:
        return not self._closed and self._proc.returncode is None and self.browser.is_connected()

    async def new_context(self, **kwargs) -> BrowserContext:
        return await self.browser.new_context(**kwargs)

    async def close(self) -> None:
        """Disconnect and terminate the process. Safe on a crashed process."""
        if self._closed:
            return
        self._closed = True
        with suppress(Exception):
            await self.browser.close()
        await _terminate(self._proc)
        if self._user_data_dir:
            shutil.rmtree(self._user_data_dir, ignore_errors=True)
        logger.debug("Browser process %d closed", self.pid)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    with suppress(ProcessLookupError):
        proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout=_TERMINATE_TIMEOUT)
    except TimeoutError:
        with suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


def chromium_args(options: LaunchOptions, user_data_dir: str) -> list[str]:
    """Command-line arguments for a supervised Chromium process."""
    args = [
        f"--remote-debugging-port={options.port}",
        f"--user-data-dir={user_data_dir}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-dev-shm-usage",
    ]
    if options.headless:
        args.append("--headless=new")
    args.extend(options.flags)
    args.append("about:blank")
    return args


async def launch_process(playwright: Playwright, options: LaunchOptions) -> BrowserProcess:
    """Spawn Chromium with a DevTools port and connect to it over CDP.

    Raises LaunchError if Chromium exits before the endpoint is reachable or
    the launch timeout elapses. Spawn errors (e.g. a missing executable)
    propagate unchanged.
    """
    executable = playwright.chromium.executable_path
    user_data_dir = tempfile.mkdtemp(prefix="headless-scraper-")
    args = chromium_args(options, user_data_dir)

    logger.debug("Launching Chromium on port %d with flags %s", options.port, list(options.flags))
    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except Exception:
        shutil.rmtree(user_data_dir, ignore_errors=True)
        raise

    try:
        browser = await _connect(playwright, proc, options)
    except BaseException:
        await _terminate(proc)
        shutil.rmtree(user_data_dir, ignore_errors=True)
        raise

    logger.info("Browser process %d started (port=%d)", proc.pid, options.port)
    return BrowserProcess(proc, browser, options, user_data_dir)


async def _connect(playwright: Playwright, proc: asyncio.subprocess.Process, options: LaunchOptions) -> Browser:
    """Retry connect_over_cdp until Chromium listens, exits, or time runs out."""
    endpoint = f"http://127.0.0.1:{options.port}"
    deadline = time.monotonic() + options.launch_timeout_ms / 1000
    while True:
        if proc.returncode is not None:
            raise LaunchError(
                f"Chromium exited unexpectedly (code {proc.returncode})",
                port=options.port,
                returncode=proc.returncode,
            )
        try:
            return await playwright.chromium.connect_over_cdp(endpoint, timeout=_CONNECT_ATTEMPT_TIMEOUT_MS)
        except PlaywrightError as exc:
            if time.monotonic() >= deadline:
                raise LaunchError(
                    f"Chromium did not expose DevTools on port {options.port} "
                    f"within {options.launch_timeout_ms}ms",
                    port=options.port,
                ) from exc
        await asyncio.sleep(_CONNECT_RETRY_INTERVAL)


async def watch_diagnostics(
    stream: asyncio.StreamReader,
    *,
    crash_marker: str,
    on_crash: Callable[[], None],
    ignore: str | None = None,
) -> None:
    """Scan *stream* chunk by chunk until EOF.

    Every non-empty line goes to the ``headless_scraper.process.stderr``
    logger unless it matches the *ignore* pattern. Chunks containing
    *crash_marker* then call *on_crash* (once per match).
    """
    ignore_re = re.compile(ignore) if ignore else None
    # The marker may straddle two reads; keep just enough of the previous one.
    tail = ""
    keep = max(len(crash_marker) - 1, 0)
    while True:
        chunk = await stream.read(_STDERR_CHUNK_SIZE)
        if not chunk:
            break
        text = chunk.decode("utf-8", errors="replace")
        crashed = bool(crash_marker) and crash_marker in tail + text
        tail = "" if crashed or not keep else text[-keep:]
        for line in text.splitlines():
            line = line.strip()
            if not line or (ignore_re is not None and ignore_re.search(line)):
                continue
            stderr_logger.info("%s", line)
        if crashed:
            logger.warning("Browser crash detected: %.200s", text.strip())
            on_crash()
    logger.debug("Browser stderr closed")


class ProcessSlot:
    """Single-slot reference cell for the session's current process.

    ``replace()`` swaps the reference in one step; callers that already
    fetched a handle keep using it.
    """

    __slots__ = ("_handle",)

    def __init__(self, handle: BrowserProcess | None = None) -> None:
        self._handle = handle

    @property
    def current(self) -> BrowserProcess | None:
        return self._handle

    def get(self) -> BrowserProcess:
        if self._handle is None:
            raise RuntimeError("Browser process not started. Use async with or call start().")
        return self._handle

    def replace(self, handle: BrowserProcess | None) -> BrowserProcess | None:
        """Install *handle* and return the previous one."""
        old, self._handle = self._handle, handle
        return old


Launcher = Callable[[Playwright, LaunchOptions], Awaitable[BrowserProcess]]


class Supervisor:
    """Keeps a ProcessSlot populated with a live browser process."""

    def __init__(
        self,
        playwright: Playwright,
        options: LaunchOptions,
        slot: ProcessSlot | None = None,
        *,
        launcher: Launcher | None = None,
    ) -> None:
        self._playwright = playwright
        self._options = options
        self.slot = slot or ProcessSlot()
        self._launcher = launcher or launch_process
        self._watchers: set[asyncio.Task] = set()
        self._recovery: asyncio.Task | None = None
        self._closed = False
        self.respawn_count = 0

    @property
    def options(self) -> LaunchOptions:
        return self._options

    @property
    def recovering(self) -> bool:
        return self._recovery is not None and not self._recovery.done()

    async def start(self) -> BrowserProcess:
        """Launch the first process. Launch errors propagate."""
        handle = await self._launcher(self._playwright, self._options)
        self.slot.replace(handle)
        self._watch(handle)
        return handle

    def _watch(self, handle: BrowserProcess) -> None:
        if handle.stderr is None:
            logger.warning("Browser process %s has no stderr; crash detection disabled", handle)
            return
        task = asyncio.get_running_loop().create_task(
            watch_diagnostics(
                handle.stderr,
                crash_marker=self._options.crash_marker,
                on_crash=lambda: self._on_crash(handle),
                ignore=self._options.stderr_ignore,
            ),
            name=f"headless-scraper-stderr-{handle.pid}",
        )
        self._watchers.add(task)
        task.add_done_callback(self._watcher_done)

    def _watcher_done(self, task: asyncio.Task) -> None:
        self._watchers.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Browser stderr watcher failed: %s", exc, exc_info=exc)

    def _on_crash(self, handle: BrowserProcess) -> None:
        if self._closed:
            return
        if handle is not self.slot.current:
            logger.debug("Crash signal from superseded process %s ignored", handle)
            return
        if self.recovering:
            logger.debug("Crash signal ignored, recovery already in progress")
            return
        self._recovery = asyncio.get_running_loop().create_task(
            self._respawn(handle),
            name="headless-scraper-respawn",
        )

    async def _respawn(self, crashed: BrowserProcess) -> None:
        # The crashed browser may still hold the debugging port.
        await crashed.close()
        try:
            replacement = await self._launcher(self._playwright, self._options)
        except Exception:
            logger.error("Unable to create replacement browser process", exc_info=True)
            return
        if self._closed:
            await replacement.close()
            return
        self.slot.replace(replacement)
        self._watch(replacement)
        self.respawn_count += 1
        logger.info("Browser process respawned: %s replaced %s", replacement, crashed)

    async def close(self) -> None:
        """Stop watching, cancel any recovery, and close the current process."""
        self._closed = True
        if self._recovery is not None and not self._recovery.done():
            self._recovery.cancel()
            with suppress(asyncio.CancelledError):
                await self._recovery
        self._recovery = None
        for task in list(self._watchers):
            task.cancel()
            with suppress(asyncio.CancelledError, Exception):
                await task
        self._watchers.clear()
        handle = self.slot.replace(None)
        if handle is not None:
            await handle.close()
