"""Navigation gate: stops automated login flows from looping.

Every automated navigation for a (tab, domain) pair must go through
:meth:`NavigationGate.safe_navigate`. The gate keeps a short history of
recent navigations and trips a persistent block once either rolling window
is saturated:

* short window: at most ``max_short`` navigations per ``short_window_ms``
* long window: at most ``max_long`` navigations per ``long_window_ms``

A blocked key stays blocked until :meth:`NavigationGate.clear_navigation_history`
is called on confirmed login success (or by session cleanup).

The login-attempt counter (``increment_loop_attempts`` and friends) shares
the same block flag, so there is exactly one notion of "stopped" per key.

Store failures never escape a decision method: the gate fails closed and
denies the navigation or action.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from navgate.browser.navigation import Navigator
from navgate.exceptions import StoreError, TabBlockedError
from navgate.gate.locks import KeyedLock
from navgate.gate.notifier import Notifier, format_alert
from navgate.models.records import (
    DenialCode,
    GateDecision,
    LoopAttempts,
    NavigationAttempt,
    NavigationHistory,
    NavigationResult,
    TabStateRecord,
)
from navgate.models.states import GateAction, TabState, guard, is_expected_transition
from navgate.monitoring.event_bus import EventBus, EventType
from navgate.settings.config import GateSettings
from navgate.sites import now_ms
from navgate.store.session_store import SessionStore

logger = logging.getLogger(__name__)


def history_key(tab_id: int, domain: str) -> str:
    return f"nav_history:{tab_id}:{domain}"


def tab_state_key(tab_id: int, domain: str) -> str:
    return f"tab_state:{tab_id}:{domain}"


def loop_attempts_key(tab_id: int, domain: str) -> str:
    return f"loop_attempts:{tab_id}:{domain}"


def _truncate(url: str, limit: int = 80) -> str:
    return url if len(url) <= limit else url[:limit] + "..."


class NavigationGate:
    """Per-tab, per-domain navigation rate limiter and state tracker.

    Args:
        store: Session store holding the gate records.
        navigator: Side effect used by :meth:`safe_navigate`.
        notifier: User-visible block signal (badge + alert).
        limits: Thresholds; defaults to ``get_settings().gate``.
        event_bus: Optional bus receiving gate events.
        clock: Epoch-millisecond clock, injectable for tests.
        badge_text: Badge label shown on a blocked tab.
        badge_color: Badge background colour.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
        *,
        limits: GateSettings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], int] = now_ms,
        badge_text: str | None = None,
        badge_color: str | None = None,
    ) -> None:
        if store is None or notifier is None or limits is None or badge_text is None or badge_color is None:
            from navgate.settings import get_settings

            settings = get_settings()
            if store is None:
                from navgate.store.session_store import build_session_store

                store = build_session_store()
            if notifier is None:
                from navgate.gate.notifier import build_notifier

                notifier = build_notifier()
            limits = limits if limits is not None else settings.gate
            badge_text = badge_text if badge_text is not None else settings.notifier.badge_text
            badge_color = badge_color if badge_color is not None else settings.notifier.badge_color

        self._store = store
        self._navigator = navigator
        self._notifier = notifier
        self._limits = limits
        self._bus = event_bus
        self._clock = clock
        self._badge_text = badge_text
        self._badge_color = badge_color
        self._locks = KeyedLock()

    @property
    def limits(self) -> GateSettings:
        return self._limits

    def now(self) -> int:
        """Current time on the gate clock (epoch ms)."""
        return self._clock()

    # ------------------------------------------------------------------
    # Record access (callers must hold the key lock)
    # ------------------------------------------------------------------

    def _load_history(self, tab_id: int, domain: str) -> NavigationHistory:
        raw = self._store.get(history_key(tab_id, domain))
        return NavigationHistory.model_validate(raw) if raw else NavigationHistory()

    def _save_history(self, tab_id: int, domain: str, history: NavigationHistory) -> None:
        self._store.set(history_key(tab_id, domain), history.model_dump(mode="json"))

    def _load_state(self, tab_id: int, domain: str) -> TabStateRecord:
        raw = self._store.get(tab_state_key(tab_id, domain))
        if raw:
            return TabStateRecord.model_validate(raw)
        return TabStateRecord(created_at=self._clock())

    def _load_loop_attempts(self, tab_id: int, domain: str) -> LoopAttempts | None:
        raw = self._store.get(loop_attempts_key(tab_id, domain))
        return LoopAttempts.model_validate(raw) if raw else None

    def _emit(self, event_type: EventType, tab_id: int, domain: str, correlation_id: str | None = None, **data: Any) -> None:
        if self._bus is not None:
            self._bus.emit(event_type, tab_id=tab_id, domain=domain, correlation_id=correlation_id, data=data)

    def _signal(self, action: str, *args: Any) -> None:
        try:
            getattr(self._notifier, action)(*args)
        except Exception as exc:
            logger.warning("Notifier %s failed: %s", action, exc)

    # ------------------------------------------------------------------
    # Tab state
    # ------------------------------------------------------------------

    def get_tab_state(self, tab_id: int, domain: str) -> TabStateRecord:
        """Return the stored tab state, or a fresh IDLE record.

        Raises:
            StoreError: If the store cannot be read.
        """
        with self._locks.hold(tab_id, domain):
            return self._load_state(tab_id, domain)

    def set_tab_state(self, tab_id: int, domain: str, **updates: Any) -> TabStateRecord:
        """Shallow-merge *updates* into the stored tab state (last write wins).

        A blocked key keeps ``state=BLOCKED`` until
        :meth:`clear_navigation_history` runs.

        Raises:
            TabBlockedError: If *updates* would move a blocked key out of BLOCKED.
            StoreError: If the store cannot be read or written.
            pydantic.ValidationError: If *updates* name unknown fields or bad values.
        """
        with self._locks.hold(tab_id, domain):
            current = self._load_state(tab_id, domain)
            merged = TabStateRecord.model_validate({**current.model_dump(), **updates})
            if merged.state != TabState.BLOCKED:
                history = self._load_history(tab_id, domain)
                if history.blocked:
                    logger.warning(
                        "Tab %s (%s) is blocked, refusing state change to %s",
                        tab_id,
                        domain,
                        merged.state.value,
                    )
                    raise TabBlockedError(tab_id, domain, history.block_reason)
            self._store.set(tab_state_key(tab_id, domain), merged.model_dump(mode="json"))

        before, after = current.state, merged.state
        if is_expected_transition(before, after):
            logger.info("Tab %s (%s) state: %s -> %s", tab_id, domain, before.value, after.value)
        else:
            logger.warning(
                "Tab %s (%s) unexpected state jump: %s -> %s", tab_id, domain, before.value, after.value
            )
        if before != after:
            self._emit(
                EventType.STATE_CHANGED,
                tab_id,
                domain,
                merged.correlation_id,
                old_state=before.value,
                new_state=after.value,
            )
        return merged

    def get_navigation_history(self, tab_id: int, domain: str) -> NavigationHistory:
        """Return the stored navigation history (empty if none).

        Raises:
            StoreError: If the store cannot be read.
        """
        with self._locks.hold(tab_id, domain):
            return self._load_history(tab_id, domain)

    def get_loop_attempts(self, tab_id: int, domain: str) -> LoopAttempts | None:
        """Return the login-attempt counter, or None if never incremented."""
        with self._locks.hold(tab_id, domain):
            return self._load_loop_attempts(tab_id, domain)

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def can_navigate(self, tab_id: int, domain: str, reason: str = "", correlation_id: str | None = None) -> GateDecision:
        """Decide whether one more automated navigation is allowed.

        Saturating either window blocks the key before denying.
        """
        lim = self._limits
        with self._locks.hold(tab_id, domain):
            try:
                history = self._load_history(tab_id, domain)
            except StoreError as exc:
                logger.error("Tab %s (%s) gate read failed, denying: %s", tab_id, domain, exc)
                decision = GateDecision.deny(DenialCode.DENIED_STORE_ERROR, "Navigation state unavailable")
                self._emit(EventType.NAVIGATION_DENIED, tab_id, domain, correlation_id, code=decision.code.value)
                return decision

            if history.blocked:
                logger.error("Tab %s (%s) is BLOCKED, navigation denied (%s)", tab_id, domain, reason)
                decision = GateDecision.deny(
                    DenialCode.DENIED_BLOCKED,
                    f"Tab is blocked due to previous loop detection: {history.block_reason}",
                )
            else:
                now = self._clock()
                recent_short = history.count_within(now, lim.short_window_ms)
                recent_long = history.count_within(now, lim.long_window_ms)
                short_s = lim.short_window_ms // 1000
                long_s = lim.long_window_ms // 1000

                if recent_short >= lim.max_short:
                    logger.error(
                        "Tab %s (%s) exceeded short limit: %d navigations in %ds",
                        tab_id,
                        domain,
                        recent_short,
                        short_s,
                    )
                    self.block_tab(
                        tab_id, domain, correlation_id, f"Exceeded {lim.max_short} navigation(s) per {short_s} seconds"
                    )
                    decision = GateDecision.deny(
                        DenialCode.DENIED_RATE_SHORT, f"Too many navigations in short window ({short_s}s)"
                    )
                elif recent_long >= lim.max_long:
                    logger.error(
                        "Tab %s (%s) exceeded long limit: %d navigations in %ds",
                        tab_id,
                        domain,
                        recent_long,
                        long_s,
                    )
                    self.block_tab(
                        tab_id, domain, correlation_id, f"Exceeded {lim.max_long} navigations per {long_s} seconds"
                    )
                    decision = GateDecision.deny(
                        DenialCode.DENIED_RATE_LONG, f"Too many navigations in long window ({long_s}s)"
                    )
                else:
                    logger.info(
                        "Tab %s (%s) navigation allowed: %d/%d (%ds), %d/%d (%ds)",
                        tab_id,
                        domain,
                        recent_short,
                        lim.max_short,
                        short_s,
                        recent_long,
                        lim.max_long,
                        long_s,
                    )
                    decision = GateDecision.allow()

        if decision.allowed:
            self._emit(EventType.NAVIGATION_ALLOWED, tab_id, domain, correlation_id, reason=reason)
        else:
            self._emit(
                EventType.NAVIGATION_DENIED,
                tab_id,
                domain,
                correlation_id,
                reason=reason,
                code=decision.code.value,
                detail=decision.reason,
            )
        return decision

    def record_navigation(
        self, tab_id: int, domain: str, url: str, reason: str = "", correlation_id: str | None = None
    ) -> bool:
        """Append a navigation attempt, keeping the newest ``history_limit``.

        Returns:
            False if the attempt could not be persisted.
        """
        with self._locks.hold(tab_id, domain):
            try:
                now = self._clock()
                history = self._load_history(tab_id, domain)
                history.append(
                    NavigationAttempt(timestamp=now, url=url, reason=reason, correlation_id=correlation_id),
                    self._limits.history_limit,
                )
                self._save_history(tab_id, domain, history)
                state = self._load_state(tab_id, domain)
                state.last_action_at = now
                self._store.set(tab_state_key(tab_id, domain), state.model_dump(mode="json"))
            except StoreError as exc:
                logger.error("Tab %s (%s) failed to record navigation: %s", tab_id, domain, exc)
                return False

        logger.info("Recorded navigation for tab %s (%s): %s -> %s", tab_id, domain, reason, _truncate(url))
        self._emit(EventType.NAVIGATION_RECORDED, tab_id, domain, correlation_id, url=url, reason=reason)
        return True

    def block_tab(self, tab_id: int, domain: str, correlation_id: str | None, reason: str) -> None:
        """Trip the loop breaker for a key.

        Re-blocking only refreshes the reason and timestamp; the alert is
        shown the first time only.
        """
        first_block = True
        with self._locks.hold(tab_id, domain):
            try:
                history = self._load_history(tab_id, domain)
                first_block = not history.blocked
                history.blocked = True
                history.block_reason = reason
                history.blocked_at = self._clock()
                history.blocked_correlation_id = correlation_id
                self._save_history(tab_id, domain, history)
                self.set_tab_state(tab_id, domain, state=TabState.BLOCKED)
            except StoreError as exc:
                logger.error("Tab %s (%s) block could not be persisted: %s", tab_id, domain, exc)

        logger.error("Tab %s (%s) BLOCKED: %s (correlation=%s)", tab_id, domain, reason, correlation_id)
        self._signal("set_badge", tab_id, self._badge_text, self._badge_color)
        if first_block:
            self._signal("alert", tab_id, format_alert(reason))
        self._emit(EventType.TAB_BLOCKED, tab_id, domain, correlation_id, reason=reason, first_block=first_block)

    def clear_navigation_history(self, tab_id: int, domain: str) -> None:
        """Forget history, tab state and login attempts for a key; clear the badge."""
        with self._locks.hold(tab_id, domain):
            try:
                self._store.delete(
                    history_key(tab_id, domain),
                    tab_state_key(tab_id, domain),
                    loop_attempts_key(tab_id, domain),
                )
            except StoreError as exc:
                logger.error("Tab %s (%s) history could not be cleared: %s", tab_id, domain, exc)
                return
        self._locks.discard(tab_id, domain)

        self._signal("clear_badge", tab_id)
        logger.info("Cleared navigation history for tab %s (%s)", tab_id, domain)
        self._emit(EventType.HISTORY_CLEARED, tab_id, domain)

    def safe_navigate(
        self, tab_id: int, domain: str, url: str, reason: str = "", correlation_id: str | None = None
    ) -> NavigationResult:
        """The only sanctioned way to navigate a tab automatically.

        Checks the gate, records the attempt, then performs the navigation.
        Never raises; denials and navigation errors come back as values.
        """
        logger.info("Navigation request: tab=%s (%s) reason=%s url=%s", tab_id, domain, reason, _truncate(url))
        with self._locks.hold(tab_id, domain):
            decision = self.can_navigate(tab_id, domain, reason, correlation_id)
            if not decision.allowed:
                logger.warning("Navigation denied for tab %s (%s): %s", tab_id, domain, decision.reason)
                return NavigationResult(success=False, error=decision.reason, code=decision.code)

            if not self.record_navigation(tab_id, domain, url, reason, correlation_id):
                return NavigationResult(
                    success=False, error="Navigation could not be recorded", code=DenialCode.DENIED_STORE_ERROR
                )

            if self._navigator is None:
                error = "No navigator configured"
            else:
                try:
                    self._navigator.navigate(tab_id, url)
                except Exception as exc:
                    error = str(exc) or type(exc).__name__
                else:
                    logger.info("Navigation executed for tab %s (%s)", tab_id, domain)
                    return NavigationResult(success=True)

        logger.error("Navigation failed for tab %s (%s): %s", tab_id, domain, error)
        self._emit(EventType.NAVIGATION_FAILED, tab_id, domain, correlation_id, url=url, error=error)
        return NavigationResult(success=False, error=error, code=DenialCode.NAVIGATION_FAILED)

    def should_perform_action(self, tab_id: int, domain: str, action: GateAction | str) -> bool:
        """Guard a non-navigation action against the key's records.

        A blocked history or a stopped login loop counts as BLOCKED whatever
        the stored tab state. The submit cap is checked against the
        login-attempt counter.

        Raises:
            ValueError: If *action* is not a :class:`GateAction`.
        """
        action = GateAction(action)
        with self._locks.hold(tab_id, domain):
            try:
                state = self._load_state(tab_id, domain)
                history = self._load_history(tab_id, domain)
                attempts = self._load_loop_attempts(tab_id, domain)
            except StoreError as exc:
                logger.error("Tab %s (%s) state unavailable, denying %s: %s", tab_id, domain, action.value, exc)
                return False

        stopped = history.blocked or (attempts is not None and attempts.stopped)
        effective = state.model_copy(
            update={
                "state": TabState.BLOCKED if stopped else state.state,
                "attempt_count": attempts.count if attempts is not None else state.attempt_count,
            }
        )
        allowed = guard(effective, action, max_attempts=self._limits.max_login_attempts)
        if not allowed:
            logger.warning(
                "%s denied for tab %s (%s): state=%s attempts=%d",
                action.value,
                tab_id,
                domain,
                effective.state.value,
                effective.attempt_count,
            )
        return allowed

    # ------------------------------------------------------------------
    # Login-attempt breaker
    # ------------------------------------------------------------------

    def increment_loop_attempts(self, tab_id: int, domain: str, correlation_id: str | None = None) -> LoopAttempts:
        """Count one login attempt, restarting the window once it has elapsed.

        The count is mirrored into the tab state's ``attempt_count`` so the
        submit guard and :meth:`should_stop_loop` read the same number.

        Raises:
            StoreError: If the counter cannot be read or written.
        """
        with self._locks.hold(tab_id, domain):
            now = self._clock()
            attempts = self._load_loop_attempts(tab_id, domain) or LoopAttempts(first_attempt=now)
            if now - attempts.first_attempt > self._limits.attempt_window_ms:
                attempts.count = 1
                attempts.first_attempt = now
                attempts.stopped = False
            else:
                attempts.count += 1
            attempts.correlation_id = correlation_id
            self._store.set(loop_attempts_key(tab_id, domain), attempts.model_dump(mode="json"))
            state = self._load_state(tab_id, domain)
            state.attempt_count = attempts.count
            self._store.set(tab_state_key(tab_id, domain), state.model_dump(mode="json"))

        logger.info(
            "[%s] Login attempts for tab %s (%s): %d/%d",
            correlation_id,
            tab_id,
            domain,
            attempts.count,
            self._limits.max_login_attempts,
        )
        return attempts

    def should_stop_loop(self, tab_id: int, domain: str) -> bool:
        """True once the key is stopped, blocked, or out of login attempts."""
        with self._locks.hold(tab_id, domain):
            try:
                attempts = self._load_loop_attempts(tab_id, domain)
                history = self._load_history(tab_id, domain)
            except StoreError as exc:
                logger.error("Tab %s (%s) loop state unavailable, stopping: %s", tab_id, domain, exc)
                return True
        if history.blocked:
            return True
        if attempts is None:
            return False
        return attempts.stopped or attempts.count >= self._limits.max_login_attempts

    def mark_loop_stopped(
        self, tab_id: int, domain: str, correlation_id: str | None = None, reason: str | None = None
    ) -> None:
        """Stop the login loop for a key; this also blocks navigation.

        *reason* becomes the block reason. It defaults to the login-attempt cap.
        """
        reason = reason or f"Exceeded {self._limits.max_login_attempts} login attempts"
        with self._locks.hold(tab_id, domain):
            try:
                attempts = self._load_loop_attempts(tab_id, domain) or LoopAttempts(first_attempt=self._clock())
                attempts.stopped = True
                attempts.correlation_id = correlation_id
                self._store.set(loop_attempts_key(tab_id, domain), attempts.model_dump(mode="json"))
            except StoreError as exc:
                logger.error("Tab %s (%s) stop flag could not be persisted: %s", tab_id, domain, exc)
            self.block_tab(tab_id, domain, correlation_id, reason)
        logger.error("[%s] Login loop stopped for tab %s (%s)", correlation_id, tab_id, domain)
        self._emit(EventType.LOOP_STOPPED, tab_id, domain, correlation_id, reason=reason)
