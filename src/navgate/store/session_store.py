"""Session-scoped key-value store with pluggable Redis / in-memory backends.

The in-memory backend mirrors a browser session store: it lives as long as
the process and is gone after a restart. The Redis backend lets several
workers share gate state and survive restarts.

Usage::

    from navgate.store import build_session_store

    store = build_session_store()
    store.set("tab_state:7:copart.com", {"state": "IDLE"})
    record = store.get("tab_state:7:copart.com")
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any

from navgate.exceptions import StoreError

logger = logging.getLogger(__name__)


class SessionStore:
    """Abstract-ish store interface implemented by every backend."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the stored dict or ``None`` if unknown."""
        raise NotImplementedError

    def set(self, key: str, data: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        """Create or replace the entry under *key*.

        Args:
            key: Storage key.
            data: JSON-serialisable dict.
            ttl_seconds: Optional time-to-live in seconds (0 = no expiry).
        """
        raise NotImplementedError

    def delete(self, *keys: str) -> None:
        """Remove entries. Missing keys are ignored."""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        """Return True if the key exists."""
        return self.get(key) is not None


class InMemorySessionStore(SessionStore):
    """Thread-safe in-process store; values are copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, data: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        """Store a copy of *data* (TTL ignored in-memory)."""
        with self._lock:
            self._data[key] = copy.deepcopy(data)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Return all stored keys (diagnostics only)."""
        with self._lock:
            return list(self._data)


class RedisSessionStore(SessionStore):
    """Redis-backed store for shared or restart-surviving gate state.

    Keys are stored under a configurable prefix (default ``navgate:``).
    Any Redis failure is re-raised as :class:`~navgate.exceptions.StoreError`.

    Args:
        redis_url: Redis connection string (e.g. ``redis://localhost:6379/0``).
        prefix: Key prefix for all entries.
        default_ttl: Default TTL in seconds (0 = no expiry).
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "navgate:",
        default_ttl: int = 0,
    ) -> None:
        import redis as redis_lib

        self._client = redis_lib.Redis.from_url(redis_url, decode_responses=True)
        self._redis_error = redis_lib.RedisError
        self._prefix = prefix
        self._default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._client.get(self._key(key))
        except self._redis_error as exc:
            raise StoreError("get", key, str(exc)) from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StoreError("get", key, "corrupt JSON payload") from exc

    def set(self, key: str, data: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        """Store *data* as JSON with an optional TTL."""
        effective_ttl = ttl_seconds or self._default_ttl
        payload = json.dumps(data, default=str)
        try:
            if effective_ttl > 0:
                self._client.setex(self._key(key), effective_ttl, payload)
            else:
                self._client.set(self._key(key), payload)
        except self._redis_error as exc:
            raise StoreError("set", key, str(exc)) from exc

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._client.delete(*(self._key(k) for k in keys))
        except self._redis_error as exc:
            raise StoreError("delete", ",".join(keys), str(exc)) from exc


class CachedSessionStore(SessionStore):
    """Read-through cache in front of another store.

    The wrapped store stays the source of truth: every write or delete
    drops the cached entry, so the next read goes back to the store.
    Writes made by other processes are not seen, so only use it when this
    process is the store's only writer.
    """

    def __init__(self, inner: SessionStore) -> None:
        self._inner = inner
        self._cache: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            if key in self._cache:
                return copy.deepcopy(self._cache[key])
        value = self._inner.get(key)
        if value is not None:
            with self._lock:
                self._cache[key] = copy.deepcopy(value)
        return value

    def set(self, key: str, data: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        with self._lock:
            self._cache.pop(key, None)
        self._inner.set(key, data, ttl_seconds=ttl_seconds)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._cache.pop(key, None)
        self._inner.delete(*keys)

    @property
    def cached_keys(self) -> list[str]:
        with self._lock:
            return list(self._cache)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_singleton: SessionStore | None = None


def build_session_store(*, force_new: bool = False) -> SessionStore:
    """Return a session store matching the current navgate settings.

    The instance is cached as a module singleton so all callers share the
    same store (important for the in-memory backend).

    Args:
        force_new: Bypass the singleton cache and create a fresh instance.
    """
    global _singleton  # noqa: PLW0603
    if _singleton is not None and not force_new:
        return _singleton

    from navgate.settings import get_settings

    cfg = get_settings().store

    store: SessionStore
    if cfg.backend == "redis":
        logger.info(
            "Using Redis session store at %s (prefix=%s, ttl=%d)",
            cfg.redis_url,
            cfg.key_prefix,
            cfg.default_ttl_seconds,
        )
        store = RedisSessionStore(
            redis_url=cfg.redis_url,
            prefix=cfg.key_prefix,
            default_ttl=cfg.default_ttl_seconds,
        )
    else:
        logger.info("Using in-memory session store")
        store = InMemorySessionStore()

    if cfg.cache_reads:
        if cfg.backend == "redis":
            logger.warning(
                "cache_reads is on for a Redis store: blocks written by other processes "
                "are not seen until this process writes the same key"
            )
        store = CachedSessionStore(store)

    _singleton = store
    return _singleton
