"""Unit tests for navgate.browser.navigation: the Playwright and recording navigators."""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from navgate.browser.navigation import (
    Navigator,
    PlaywrightNavigator,
    RecordingNavigator,
    failure_reason,
)
from navgate.exceptions import NavigationError

URL = "https://www.copart.com/login"


class TestFailureReason:
    def test_net_error_code(self) -> None:
        exc = PlaywrightError("net::ERR_TOO_MANY_REDIRECTS at https://www.copart.com/login")
        assert failure_reason(exc) == "too many redirects"

    def test_first_line_of_other_errors(self) -> None:
        exc = PlaywrightError("Target page, context or browser has been closed\nCall log: ...")
        assert failure_reason(exc) == "Target page, context or browser has been closed"


class TestPlaywrightNavigator:
    def test_navigates_registered_page(self) -> None:
        page = MagicMock()
        nav = PlaywrightNavigator({4: page}, timeout_ms=1000)
        nav.navigate(4, URL)
        page.goto.assert_called_once_with(URL, wait_until="networkidle", timeout=1000)

    def test_timeout_settles_for_weaker_wait(self) -> None:
        page = MagicMock()
        page.goto.side_effect = [PlaywrightTimeout("idle never came"), MagicMock(name="response")]

        PlaywrightNavigator({4: page}, timeout_ms=5000).navigate(4, URL)

        assert page.goto.call_args_list == [
            call(URL, wait_until="networkidle", timeout=5000),
            call(URL, wait_until="load", timeout=5000),
        ]

    def test_exhausted_timeouts_become_navigation_error(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightTimeout("slow")
        with pytest.raises(NavigationError, match="timed out"):
            PlaywrightNavigator({1: page}).navigate(1, URL)
        assert page.goto.call_count == 3

    def test_redirect_loop_is_not_retried(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightError("net::ERR_TOO_MANY_REDIRECTS at https://www.copart.com/login")

        with pytest.raises(NavigationError) as excinfo:
            PlaywrightNavigator({1: page}).navigate(1, URL)

        assert excinfo.value.reason == "too many redirects"
        assert excinfo.value.url == URL
        assert page.goto.call_count == 1

    def test_closed_page_becomes_navigation_error(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightError("Target page, context or browser has been closed")
        with pytest.raises(NavigationError, match="has been closed"):
            PlaywrightNavigator({1: page}).navigate(1, URL)

    def test_unknown_tab(self) -> None:
        nav = PlaywrightNavigator()
        with pytest.raises(NavigationError, match="no page registered"):
            nav.navigate(4, URL)

    def test_register_and_unregister(self) -> None:
        nav = PlaywrightNavigator()
        page = MagicMock()
        nav.register(5, page)
        nav.navigate(5, URL)
        nav.unregister(5)
        with pytest.raises(NavigationError):
            nav.navigate(5, URL)

    def test_satisfies_protocol(self) -> None:
        assert isinstance(PlaywrightNavigator(), Navigator)
        assert isinstance(RecordingNavigator(), Navigator)


class TestRecordingNavigator:
    def test_records_calls(self) -> None:
        nav = RecordingNavigator()
        nav.navigate(1, URL)
        assert nav.calls == [(1, URL)]

    def test_fail_with(self) -> None:
        nav = RecordingNavigator(fail_with=NavigationError(URL, "refused"))
        with pytest.raises(NavigationError):
            nav.navigate(1, URL)
        assert nav.calls == [(1, URL)]
