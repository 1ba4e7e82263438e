"""navgate store: session-scoped key-value persistence for gate records."""

from __future__ import annotations

from navgate.store.session_store import (
    CachedSessionStore,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store,
)

__all__ = [
    "CachedSessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
    "build_session_store",
]
