"""Automation-session lifetimes.

Each automated login on a (tab, domain) owns one ``AutomationSession`` with
a cancellable cleanup timer. The session ends exactly once: on confirmed
success (``complete``), on timeout, or on explicit cancellation. Ending a
session by timeout clears the gate records whatever state the tab reached.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from navgate.exceptions import StoreError, TabBlockedError
from navgate.gate.navigation_gate import NavigationGate
from navgate.models.states import TabState
from navgate.monitoring.event_bus import EventBus, EventType
from navgate.sites import new_correlation_id

logger = logging.getLogger(__name__)

CleanupCallback = Callable[["AutomationSession", str], None]


@dataclass
class AutomationSession:
    """One automated login attempt on one tab and domain."""

    tab_id: int
    domain: str
    correlation_id: str
    started_at: int
    _timer: threading.Timer | None = field(default=None, repr=False)
    _ended: bool = field(default=False, repr=False)
    end_reason: str = ""

    @property
    def ended(self) -> bool:
        return self._ended


class SessionRegistry:
    """Own the cleanup timers for every live automation session.

    Args:
        gate: The navigation gate whose records are cleaned up.
        cleanup_timeout_seconds: Seconds after ``start`` at which the
            session is force-cleaned; defaults to
            ``get_settings().session.cleanup_timeout_seconds``.
        event_bus: Optional bus for session events.
        on_cleanup: Callbacks run once per ended session with the end reason
            (``completed``, ``timeout``, ``cancelled``).
    """

    def __init__(
        self,
        gate: NavigationGate,
        *,
        cleanup_timeout_seconds: float | None = None,
        event_bus: EventBus | None = None,
        on_cleanup: list[CleanupCallback] | None = None,
    ) -> None:
        if cleanup_timeout_seconds is None:
            from navgate.settings import get_settings

            cleanup_timeout_seconds = get_settings().session.cleanup_timeout_seconds
        self._gate = gate
        self._timeout = cleanup_timeout_seconds
        self._bus = event_bus
        self._callbacks = list(on_cleanup or [])
        self._sessions: dict[tuple[int, str], AutomationSession] = {}
        self._lock = threading.Lock()

    def start(
        self,
        tab_id: int,
        domain: str,
        correlation_id: str | None = None,
        *,
        initial_state: TabState = TabState.ON_LOGIN_PAGE,
    ) -> AutomationSession:
        """Begin automating a tab; any previous session for the key is cancelled.

        Raises:
            TabBlockedError: If the key is blocked. No timer is armed.
        """
        correlation_id = correlation_id or new_correlation_id()
        self.cancel(tab_id, domain)

        now = self._gate.now()
        self._gate.set_tab_state(
            tab_id,
            domain,
            state=initial_state,
            correlation_id=correlation_id,
            last_action_at=now,
        )
        session = AutomationSession(tab_id=tab_id, domain=domain, correlation_id=correlation_id, started_at=now)
        timer = threading.Timer(self._timeout, self._end, args=(session, "timeout"))
        timer.daemon = True
        session._timer = timer
        with self._lock:
            self._sessions[(tab_id, domain)] = session
        timer.start()

        logger.info(
            "[%s] Session started for tab %s (%s), cleanup in %.0fs", correlation_id, tab_id, domain, self._timeout
        )
        if self._bus is not None:
            self._bus.emit(
                EventType.SESSION_STARTED,
                tab_id=tab_id,
                domain=domain,
                correlation_id=correlation_id,
                data={"initial_state": initial_state.value, "timeout_seconds": self._timeout},
            )
        return session

    def get(self, tab_id: int, domain: str) -> AutomationSession | None:
        with self._lock:
            return self._sessions.get((tab_id, domain))

    def complete(self, tab_id: int, domain: str) -> bool:
        """Confirmed login success: clear the gate and mark the tab DONE.

        Returns:
            False if no live session existed for the key.
        """
        session = self.get(tab_id, domain)
        if session is None or not self._end(session, "completed"):
            return False
        try:
            self._gate.set_tab_state(tab_id, domain, state=TabState.DONE, correlation_id=session.correlation_id)
        except (StoreError, TabBlockedError) as exc:
            logger.error("[%s] Could not mark tab %s (%s) DONE: %s", session.correlation_id, tab_id, domain, exc)
        return True

    def cancel(self, tab_id: int, domain: str) -> bool:
        """End a live session without touching the gate records."""
        session = self.get(tab_id, domain)
        if session is None:
            return False
        return self._end(session, "cancelled")

    def shutdown(self) -> None:
        """Cancel every live session (process exit)."""
        with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            self._end(session, "cancelled")

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _end(self, session: AutomationSession, reason: str) -> bool:
        """Run cleanup for *session* once; later calls return False."""
        key = (session.tab_id, session.domain)
        with self._lock:
            if session._ended:
                return False
            session._ended = True
            session.end_reason = reason
            if self._sessions.get(key) is session:
                del self._sessions[key]
        if session._timer is not None and reason != "timeout":
            session._timer.cancel()

        if reason in ("completed", "timeout"):
            self._gate.clear_navigation_history(session.tab_id, session.domain)

        logger.info(
            "[%s] Session for tab %s (%s) ended: %s",
            session.correlation_id,
            session.tab_id,
            session.domain,
            reason,
        )
        if self._bus is not None:
            self._bus.emit(
                EventType.SESSION_CLEANUP,
                tab_id=session.tab_id,
                domain=session.domain,
                correlation_id=session.correlation_id,
                data={"reason": reason},
            )
        for callback in self._callbacks:
            try:
                callback(session, reason)
            except Exception as exc:
                logger.warning("Session cleanup callback %r failed: %s", callback, exc)
        return True
