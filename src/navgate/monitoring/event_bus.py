"""Event bus: decouples the gate from its observers (logs, JSONL files, tests).

* Type-safe event types via ``EventType`` enum.
* Multiple sink pattern: a single bus emits to every registered
  ``EventSink`` (logger, JSONL stream, in-memory buffer).
* A failing sink is logged and skipped; it never breaks the gate.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    """All event types emitted by the gate and session registry."""

    # Navigation gate
    NAVIGATION_ALLOWED = "navigation_allowed"
    NAVIGATION_DENIED = "navigation_denied"
    NAVIGATION_RECORDED = "navigation_recorded"
    NAVIGATION_FAILED = "navigation_failed"
    TAB_BLOCKED = "tab_blocked"
    HISTORY_CLEARED = "history_cleared"
    STATE_CHANGED = "state_changed"
    LOOP_STOPPED = "loop_stopped"

    # Session lifetime
    SESSION_STARTED = "session_started"
    SESSION_CLEANUP = "session_cleanup"


# ---------------------------------------------------------------------------
# Event payload model
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """Structured event emitted by the event bus."""

    event_type: EventType
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    correlation_id: str | None = None
    tab_id: int | None = None
    domain: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    def to_jsonl(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return self.model_dump_json()


# ---------------------------------------------------------------------------
# Sink protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class EventSink(Protocol):
    """Protocol for event consumers."""

    def handle_event(self, event: Event) -> None:
        """Process a single event."""
        ...


# ---------------------------------------------------------------------------
# Built-in sinks
# ---------------------------------------------------------------------------


class LoggingSink:
    """Emit events to the Python logger at DEBUG level."""

    def __init__(self, logger_name: str = "navgate.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def handle_event(self, event: Event) -> None:
        self._logger.debug(
            "[%s] tab=%s domain=%s %s: %s",
            event.correlation_id or "?",
            event.tab_id,
            event.domain,
            event.event_type.value,
            json.dumps(event.data, default=str)[:200],
        )


class InMemorySink:
    """Collect events in a list, useful for testing."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def handle_event(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[Event]:
        """Return collected events of *event_type*."""
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()

    @property
    def count(self) -> int:
        return len(self.events)


class JsonlSink:
    """Write events as JSONL lines to a file-like object.

    Works with ``sys.stdout``, ``sys.stderr``, or an open file handle.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def handle_event(self, event: Event) -> None:
        with self._lock:
            self._stream.write(event.to_jsonl() + "\n")
            if hasattr(self._stream, "flush"):
                self._stream.flush()


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------


class EventBus:
    """Central event dispatcher for gate-to-observer communication."""

    def __init__(self) -> None:
        self._sinks: list[EventSink] = []

    def add_sink(self, sink: EventSink) -> None:
        """Register an event sink."""
        self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        """Remove a previously registered sink."""
        self._sinks = [s for s in self._sinks if s is not sink]

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    def emit(
        self,
        event_type: EventType,
        *,
        tab_id: int | None = None,
        domain: str = "",
        correlation_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event to all registered sinks."""
        event = Event(
            event_type=event_type,
            tab_id=tab_id,
            domain=domain,
            correlation_id=correlation_id,
            data=data or {},
        )
        for sink in self._sinks:
            try:
                sink.handle_event(event)
            except Exception as exc:
                logger.warning("EventBus sink error (%s): %s", type(sink).__name__, exc)
