# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the headless_scraper exception hierarchy."""

from __future__ import annotations

import pytest

from headless_scraper.errors import LaunchError, NavigationError, NavigationTimeoutError, ScraperError


class TestHierarchy:
    @pytest.mark.parametrize("cls", [LaunchError, NavigationError, NavigationTimeoutError])
    def test_subclasses_share_base(self, cls):
        assert issubclass(cls, ScraperError)

    def test_timeout_is_builtin_timeout(self):
        err = NavigationTimeoutError("https://example.com", 30000)
        assert isinstance(err, TimeoutError)

    def test_catchable_as_base(self):
        with pytest.raises(ScraperError):
            raise NavigationError("https://example.com", "fail")


class TestNavigationError:
    def test_message_names_url_and_status(self):
        err = NavigationError("https://example.com/a", "fail")
        assert str(err) == "Opening page https://example.com/a resulted in status fail"
        assert err.url == "https://example.com/a"
        assert err.status == "fail"
        assert err.screenshot is None

    def test_carries_screenshot_path(self):
        err = NavigationError("https://x.test", "fail", screenshot="/tmp/x.jpg")
        assert err.screenshot == "/tmp/x.jpg"


class TestNavigationTimeoutError:
    def test_message(self):
        err = NavigationTimeoutError("https://slow.test", 1500)
        assert "https://slow.test" in str(err)
        assert "1500ms" in str(err)
        assert err.timeout_ms == 1500


class TestLaunchError:
    def test_attributes(self):
        err = LaunchError("Chromium exited unexpectedly (code 1)", port=12345, returncode=1)
        assert err.port == 12345
        assert err.returncode == 1
        assert "code 1" in str(err)

    def test_defaults(self):
        err = LaunchError("boom")
        assert err.port == 0
        assert err.returncode is None
