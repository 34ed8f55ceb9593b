# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scraper configuration: session defaults, per-call overrides, launch options.

Leaf module: no headless_scraper imports.
"""

from __future__ import annotations

import dataclasses
import os
import random
from collections.abc import Mapping
from dataclasses import dataclass, field

# Remote-debugging port range used when no port is configured.
PORT_RANGE_START = 12300
PORT_RANGE_END = 22300

# Chromium equivalent of "do not load images".
DEFAULT_FLAGS: tuple[str, ...] = ("--blink-settings=imagesEnabled=false",)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_8_4) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/28.0.1500.71 Safari/537.36"
)

DEFAULT_HEADERS: dict[str, str] = {
    "user-agent": DEFAULT_USER_AGENT,
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.8",
    "cache-control": "max-age=0",
}

# Printed by Chromium's fatal signal handler right before the process dies.
DEFAULT_CRASH_MARKER = "Received signal"

# Known-benign Chromium stderr chatter that is not worth a log line.
DEFAULT_STDERR_IGNORE = (
    r"DevTools listening on"
    r"|Failed to connect to the bus"
    r"|Fontconfig (error|warning)"
    r"|dbus/(bus|object_proxy)\.cc"
)

JQUERY_URL = "https://ajax.googleapis.com/ajax/libs/jquery/1.8.2/jquery.min.js"

_ENV_PREFIX = "HEADLESS_SCRAPER_"


def random_port() -> int:
    """Pick a remote-debugging port in [12300, 22300)."""
    return PORT_RANGE_START + random.randrange(PORT_RANGE_END - PORT_RANGE_START)


@dataclass(frozen=True, slots=True)
class LaunchOptions:
    """Everything needed to (re)spawn an identical browser process."""

    port: int
    flags: tuple[str, ...] = DEFAULT_FLAGS
    headless: bool = True
    crash_marker: str = DEFAULT_CRASH_MARKER
    stderr_ignore: str | None = DEFAULT_STDERR_IGNORE
    launch_timeout_ms: int = 30000


@dataclass(frozen=True)
class ScraperConfig:
    """Session defaults. Per-call overrides go through :meth:`merged`."""

    port: int = field(default_factory=random_port)
    flags: tuple[str, ...] = DEFAULT_FLAGS
    imagedir: str | None = None
    headers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    page_timeout_ms: int = 30000  # shared by navigation and readiness polling
    check_every_ms: int = 500  # document.readyState poll interval
    after_ms: int = 1000  # grace wait for in-flight javascript/ajax
    include_jquery: bool = False
    wait_until: str = "load"
    headless: bool = True
    crash_marker: str = DEFAULT_CRASH_MARKER
    stderr_ignore: str | None = DEFAULT_STDERR_IGNORE
    launch_timeout_ms: int = 30000

    def __post_init__(self) -> None:
        # Accept any sequence for flags; keep the stored value immutable.
        object.__setattr__(self, "flags", tuple(self.flags))

    def merged(self, **overrides) -> ScraperConfig:
        """Return a copy with *overrides* applied.

        ``None`` means "not given" and is skipped, so optional CLI arguments
        can be passed straight through; it never clears a field. To turn off
        failure screenshots for one call, pass ``imagedir=""``. ``headers``
        replaces the whole map. Unknown keys raise ``TypeError``.
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def launch_options(self) -> LaunchOptions:
        return LaunchOptions(
            port=self.port,
            flags=self.flags,
            headless=self.headless,
            crash_marker=self.crash_marker,
            stderr_ignore=self.stderr_ignore,
            launch_timeout_ms=self.launch_timeout_ms,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> ScraperConfig:
        """Build a config from ``HEADLESS_SCRAPER_*`` environment variables.

        Explicit *overrides* win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        port = env.get(f"{_ENV_PREFIX}PORT", "").strip()
        if port:
            values["port"] = _parse_int(f"{_ENV_PREFIX}PORT", port)
        flags = env.get(f"{_ENV_PREFIX}FLAGS", "").strip()
        if flags:
            values["flags"] = tuple(flags.split())
        imagedir = env.get(f"{_ENV_PREFIX}IMAGEDIR", "").strip()
        if imagedir:
            values["imagedir"] = imagedir
        timeout = env.get(f"{_ENV_PREFIX}TIMEOUT_MS", "").strip()
        if timeout:
            values["page_timeout_ms"] = _parse_int(f"{_ENV_PREFIX}TIMEOUT_MS", timeout)
        headed = env.get(f"{_ENV_PREFIX}HEADED", "").strip().lower()
        if headed in ("1", "true", "yes"):
            values["headless"] = False

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
