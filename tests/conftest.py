"""navgate test configuration: shared fixtures for unit tests."""

from __future__ import annotations

import pytest


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.start = start
        self.now = start

    def __call__(self) -> int:
        return self.now

    def at(self, offset_ms: int) -> None:
        """Move to ``start + offset_ms``."""
        self.now = self.start + offset_ms

    def advance(self, delta_ms: int) -> None:
        self.now += delta_ms


# ---------------------------------------------------------------------------
# Settings / singletons
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch: pytest.MonkeyPatch):
    """Clear the settings LRU cache and store singleton between tests."""
    import navgate.store.session_store as store_mod
    from navgate.settings.config import get_settings

    monkeypatch.delenv("NAVGATE_ENV", raising=False)
    monkeypatch.setattr(store_mod, "_singleton", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Gate components
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store():
    from navgate.store.session_store import InMemorySessionStore

    return InMemorySessionStore()


@pytest.fixture()
def notifier():
    from navgate.gate.notifier import InMemoryNotifier

    return InMemoryNotifier()


@pytest.fixture()
def navigator():
    from navgate.browser.navigation import RecordingNavigator

    return RecordingNavigator()


@pytest.fixture()
def sink():
    from navgate.monitoring.event_bus import InMemorySink

    return InMemorySink()


@pytest.fixture()
def event_bus(sink):
    from navgate.monitoring.event_bus import EventBus

    bus = EventBus()
    bus.add_sink(sink)
    return bus


@pytest.fixture()
def limits():
    from navgate.settings.config import GateSettings

    return GateSettings()


@pytest.fixture()
def gate(store, navigator, notifier, limits, event_bus, clock):
    """A gate wired to in-memory collaborators and a fake clock."""
    from navgate.gate import NavigationGate

    return NavigationGate(
        store,
        navigator,
        notifier,
        limits=limits,
        event_bus=event_bus,
        clock=clock,
        badge_text="LOOP",
        badge_color="#dc2626",
    )


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
