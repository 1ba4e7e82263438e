"""Persisted gate records and decision values.

All records are scoped to one (tab_id, domain) key and stored as JSON dicts
in the session store. Timestamps are epoch milliseconds.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from navgate.models.states import TabState


class DenialCode(str, Enum):
    """Why a navigation was refused or failed."""

    DENIED_BLOCKED = "DENIED_BLOCKED"
    DENIED_RATE_SHORT = "DENIED_RATE_SHORT"
    DENIED_RATE_LONG = "DENIED_RATE_LONG"
    DENIED_STORE_ERROR = "DENIED_STORE_ERROR"
    NAVIGATION_FAILED = "NAVIGATION_FAILED"


class NavigationAttempt(BaseModel):
    """One recorded automated navigation."""

    timestamp: int
    url: str
    reason: str = ""
    correlation_id: str | None = None


class NavigationHistory(BaseModel):
    """Recent navigation attempts plus the loop-block flag."""

    attempts: list[NavigationAttempt] = Field(default_factory=list)
    blocked: bool = False
    block_reason: str | None = None
    blocked_at: int | None = None
    blocked_correlation_id: str | None = None

    def count_within(self, now: int, window_ms: int) -> int:
        """Number of attempts whose age is strictly less than *window_ms*."""
        return sum(1 for a in self.attempts if now - a.timestamp < window_ms)

    def append(self, attempt: NavigationAttempt, limit: int) -> None:
        """Add *attempt*, evicting the oldest entries beyond *limit*."""
        self.attempts.append(attempt)
        if len(self.attempts) > limit:
            self.attempts = self.attempts[-limit:]


class TabStateRecord(BaseModel):
    """Automation state for one tab on one domain."""

    model_config = ConfigDict(extra="forbid")

    state: TabState = TabState.IDLE
    correlation_id: str | None = None
    attempt_count: int = 0
    last_action_at: int = 0
    created_at: int = 0


class LoopAttempts(BaseModel):
    """Login-attempt counter within a rolling window."""

    count: int = 0
    first_attempt: int = 0
    stopped: bool = False
    correlation_id: str | None = None


class GateDecision(BaseModel):
    """Outcome of ``can_navigate``."""

    allowed: bool
    reason: str | None = None
    code: DenialCode | None = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: DenialCode, reason: str) -> "GateDecision":
        return cls(allowed=False, code=code, reason=reason)


class NavigationResult(BaseModel):
    """Outcome of ``safe_navigate``."""

    success: bool
    error: str | None = None
    code: DenialCode | None = None
