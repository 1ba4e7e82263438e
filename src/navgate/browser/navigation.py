"""Page navigation primitives for the gate.

``NavigationGate.safe_navigate`` is the only caller of a ``Navigator``.
Auction login pages keep analytics and chat sockets open, so
``networkidle`` often never arrives. :class:`PlaywrightNavigator` waits for
``networkidle`` first and settles for ``load`` and then
``domcontentloaded`` when the stricter wait times out.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Protocol, runtime_checkable

from playwright.sync_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeout

from navgate.exceptions import NavigationError

logger = logging.getLogger(__name__)

LOGIN_WAIT_CHAIN: tuple[str, ...] = ("networkidle", "load", "domcontentloaded")

_NET_ERROR = re.compile(r"net::ERR_([A-Z_]+)")


def failure_reason(exc: PlaywrightError) -> str:
    """Short reason for a failed ``goto``, e.g. ``too many redirects``."""
    match = _NET_ERROR.search(str(exc))
    if match:
        return match.group(1).replace("_", " ").lower()
    return str(exc).splitlines()[0] if str(exc) else type(exc).__name__


@runtime_checkable
class Navigator(Protocol):
    """Side effect that moves a tab to a URL."""

    def navigate(self, tab_id: int, url: str) -> None: ...


class PlaywrightNavigator:
    """Navigate Playwright pages registered under integer tab ids.

    Every failure surfaces as :class:`NavigationError`. Only timeouts move on
    to the next, weaker wait in :data:`LOGIN_WAIT_CHAIN`.

    Args:
        pages: Optional initial ``tab_id -> Page`` mapping.
        timeout_ms: Timeout for each wait in the chain.
    """

    def __init__(self, pages: dict[int, Page] | None = None, *, timeout_ms: int = 30_000) -> None:
        self._pages: dict[int, Page] = dict(pages or {})
        self._timeout_ms = timeout_ms
        self._lock = threading.Lock()

    def register(self, tab_id: int, page: Page) -> None:
        with self._lock:
            self._pages[tab_id] = page

    def unregister(self, tab_id: int) -> None:
        with self._lock:
            self._pages.pop(tab_id, None)

    def navigate(self, tab_id: int, url: str) -> None:
        with self._lock:
            page = self._pages.get(tab_id)
        if page is None:
            raise NavigationError(url, f"no page registered for tab {tab_id}")

        for wait_until in LOGIN_WAIT_CHAIN:
            try:
                page.goto(url, wait_until=wait_until, timeout=self._timeout_ms)
                return
            except PlaywrightTimeout:
                logger.warning("Tab %s: %s not reached waiting for %s", tab_id, url, wait_until)
            except PlaywrightError as exc:
                reason = failure_reason(exc)
                logger.warning("Tab %s: navigation to %s failed: %s", tab_id, url, reason)
                raise NavigationError(url, reason) from exc
        raise NavigationError(url, "timed out")


class RecordingNavigator:
    """Record navigation calls instead of performing them (tests, dry runs)."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.calls: list[tuple[int, str]] = []
        self.fail_with = fail_with

    def navigate(self, tab_id: int, url: str) -> None:
        self.calls.append((tab_id, url))
        if self.fail_with is not None:
            raise self.fail_with
