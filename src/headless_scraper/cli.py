# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""headless-scraper CLI.

Usage:
    python -m headless_scraper.cli html --url URL [-o PATH] [--imagedir DIR]
        [--port N] [--flag FLAG]... [--header "Name: value"]...
        [--timeout-ms N] [--check-every-ms N] [--after-ms N]
        [--include-jquery] [--headed]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .config import ScraperConfig
from .errors import ScraperError


def _parse_header(raw: str) -> tuple[str, str]:
    """``"Name: value"`` -> ``("Name", "value")``."""
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"invalid header {raw!r}, expected 'Name: value'")
    return name.strip(), value.strip()


def _config_from_args(args: argparse.Namespace) -> ScraperConfig:
    overrides: dict = {
        "port": args.port,
        "imagedir": args.imagedir,
        "page_timeout_ms": args.timeout_ms,
        "check_every_ms": args.check_every_ms,
        "after_ms": args.after_ms,
    }
    if args.flag:
        overrides["flags"] = tuple(args.flag)
    if args.include_jquery:
        overrides["include_jquery"] = True
    if args.headed:
        overrides["headless"] = False
    config = ScraperConfig.from_env(**overrides)
    if args.header:
        headers = dict(config.headers)
        for name, value in args.header:
            headers[name] = value
        config = config.merged(headers=headers)
    return config


async def _fetch(url: str, config: ScraperConfig) -> str:
    from .session import create_scraper

    async with create_scraper(config) as scraper:
        page, html = await scraper.html(url)
        await page.close()
    return html


def cmd_html(args: argparse.Namespace) -> int:
    """Fetch the rendered HTML of --url."""
    try:
        config = _config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        html = asyncio.run(_fetch(args.url, config))
    except KeyboardInterrupt:
        return 130
    except ScraperError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        # Launch or evaluation failures: keep the traceback out of stderr.
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(html, encoding="utf-8")
        print(f"Saved {len(html)} chars to {out}", file=sys.stderr)
    else:
        sys.stdout.write(html + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch fully-rendered HTML with a disguised headless Chromium",
        prog="python -m headless_scraper.cli",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Log JSON lines to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _html_epilog = """\
examples:
  %(prog)s --url https://example.com                     Print rendered HTML
  %(prog)s --url https://example.com -o page.html        Save to a file
  %(prog)s --url https://example.com --imagedir errors/  Screenshot failed loads
  %(prog)s --url https://example.com --header "Referer: https://google.com"
"""
    p_html = subparsers.add_parser(
        "html",
        help="Fetch rendered HTML for a URL",
        epilog=_html_epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_html.add_argument("--url", type=str, metavar="URL", required=True, help="Page to fetch")
    p_html.add_argument("-o", "--output", type=str, metavar="PATH", help="Write HTML to PATH instead of stdout")
    p_html.add_argument("--imagedir", type=str, metavar="DIR", help="Save a screenshot here when a page fails to open")
    p_html.add_argument("--port", type=int, metavar="N", help="Chromium remote-debugging port (default: random)")
    p_html.add_argument(
        "--flag", action="append", metavar="FLAG", help="Chromium launch flag (repeatable, replaces defaults)"
    )
    p_html.add_argument(
        "--header", action="append", type=_parse_header, metavar="'NAME: VALUE'", help="Extra request header"
    )
    p_html.add_argument("--timeout-ms", type=int, metavar="N", help="Overall page deadline (default: 30000)")
    p_html.add_argument("--check-every-ms", type=int, metavar="N", help="readyState poll interval (default: 500)")
    p_html.add_argument("--after-ms", type=int, metavar="N", help="Grace wait after ready (default: 1000)")
    p_html.add_argument("--include-jquery", action="store_true", help="Inject jQuery once the page is ready")
    p_html.add_argument("--headed", action="store_true", help="Show the browser window")
    p_html.set_defaults(func=cmd_html)
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from .logging_config import configure

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "WARNING")
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
