"""Tab automation state machine and action guard.

The gate does not drive transitions itself; the automation driver calls
``set_tab_state``. The table below records the expected success path so
that unexpected jumps can be logged.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from navgate.models.records import TabStateRecord


class TabState(str, Enum):
    """Per-(tab, domain) automation states."""

    IDLE = "IDLE"
    OPENED_TARGET = "OPENED_TARGET"
    ON_LOGIN_PAGE = "ON_LOGIN_PAGE"
    SUBMITTED_LOGIN = "SUBMITTED_LOGIN"
    WAITING_REDIRECT = "WAITING_REDIRECT"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


class GateAction(str, Enum):
    """Closed set of non-navigation actions the driver asks permission for."""

    SUBMIT_LOGIN = "SUBMIT_LOGIN"
    NAVIGATE = "NAVIGATE"
    FILL_CREDENTIALS = "FILL_CREDENTIALS"
    REPORT_SUCCESS = "REPORT_SUCCESS"


TERMINAL_STATES = {TabState.DONE, TabState.BLOCKED}

# Once in one of these, the login form must not be submitted again.
NO_SUBMIT_STATES = {
    TabState.SUBMITTED_LOGIN,
    TabState.WAITING_REDIRECT,
    TabState.DONE,
    TabState.BLOCKED,
}

# Success path. BLOCKED is reachable from every state in addition to these.
STATE_TRANSITIONS: dict[TabState, list[TabState]] = {
    # IDLE -> DONE happens when success is recorded after the records were cleared.
    TabState.IDLE: [TabState.OPENED_TARGET, TabState.ON_LOGIN_PAGE, TabState.DONE],
    TabState.OPENED_TARGET: [TabState.ON_LOGIN_PAGE],
    TabState.ON_LOGIN_PAGE: [TabState.SUBMITTED_LOGIN],
    TabState.SUBMITTED_LOGIN: [TabState.WAITING_REDIRECT, TabState.DONE],
    TabState.WAITING_REDIRECT: [TabState.DONE],
    TabState.DONE: [],
    TabState.BLOCKED: [],
}


def is_expected_transition(current: TabState, new: TabState) -> bool:
    """Return True if *current* -> *new* follows the expected flow."""
    if current == new or new == TabState.BLOCKED:
        return True
    return new in STATE_TRANSITIONS.get(current, [])


def guard(record: "TabStateRecord", action: GateAction, *, max_attempts: int = 2) -> bool:
    """Decide whether *action* is permitted for a tab in *record*'s state.

    ``SUBMIT_LOGIN`` is refused once a submission is in flight or finished,
    when the tab is blocked, or after ``max_attempts`` login attempts.
    ``NAVIGATE`` is refused only when blocked. Anything else is allowed.
    """
    if action == GateAction.SUBMIT_LOGIN:
        if record.state in NO_SUBMIT_STATES:
            return False
        return record.attempt_count < max_attempts
    if action == GateAction.NAVIGATE:
        return record.state != TabState.BLOCKED
    return True
