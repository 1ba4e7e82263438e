"""Scoped automation-session lifetimes with exactly-once cleanup."""

from navgate.session.lifetime import AutomationSession, SessionRegistry

__all__ = ["AutomationSession", "SessionRegistry"]
