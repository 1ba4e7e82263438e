"""navgate exception hierarchy."""

from __future__ import annotations


class NavGateError(Exception):
    """Base exception for all navgate-specific errors."""


class StoreError(NavGateError):
    """Raised when the session store cannot read or write a key.

    The gate treats this as fail-closed: navigation and actions are denied.

    Attributes:
        operation: The store operation that failed (``get``, ``set``, ``delete``).
        key: The storage key involved.
    """

    def __init__(self, operation: str, key: str, detail: str = "") -> None:
        self.operation = operation
        self.key = key
        msg = f"Session store {operation} failed for {key!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class NavigationError(NavGateError):
    """Raised when the page navigation side effect fails.

    Attributes:
        url: The URL that could not be reached.
        reason: Short human-readable failure reason.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class TabBlockedError(NavGateError):
    """Raised when a caller tries to move a blocked tab out of BLOCKED.

    Only ``NavigationGate.clear_navigation_history`` lifts a block.

    Attributes:
        tab_id: The blocked tab.
        domain: The blocked domain.
        block_reason: The reason recorded when the key was blocked.
    """

    def __init__(self, tab_id: int, domain: str, block_reason: str | None) -> None:
        self.tab_id = tab_id
        self.domain = domain
        self.block_reason = block_reason
        super().__init__(f"Tab {tab_id} ({domain}) is blocked: {block_reason or 'loop detected'}")
