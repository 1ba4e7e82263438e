"""User-visible loop signal: a per-tab badge and a one-time alert."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.panel import Panel

logger = logging.getLogger(__name__)

ALERT_TITLE = "Navigation Loop Detected"


def format_alert(reason: str) -> str:
    """Return the alert body shown to the user when a tab is blocked."""
    return (
        f"{ALERT_TITLE}\n\n{reason}\n\n"
        "Automatic navigation has been stopped. Please close this tab and try again."
    )


@runtime_checkable
class Notifier(Protocol):
    """Signalling primitive the gate uses to tell the user a tab is blocked."""

    def set_badge(self, tab_id: int, text: str, color: str) -> None: ...

    def clear_badge(self, tab_id: int) -> None: ...

    def alert(self, tab_id: int, message: str) -> None: ...


class LoggingNotifier:
    """Send badge and alert changes to the log (headless deployments)."""

    def set_badge(self, tab_id: int, text: str, color: str) -> None:
        logger.warning("Badge for tab %s set to %r (%s)", tab_id, text, color)

    def clear_badge(self, tab_id: int) -> None:
        logger.info("Badge for tab %s cleared", tab_id)

    def alert(self, tab_id: int, message: str) -> None:
        logger.error("Alert for tab %s: %s", tab_id, message.replace("\n\n", " | "))


class ConsoleNotifier:
    """Render the badge and alert on a ``rich`` console."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def set_badge(self, tab_id: int, text: str, color: str) -> None:
        self._console.print(f"[bold white on {color}] {text} [/] tab {tab_id}")

    def clear_badge(self, tab_id: int) -> None:
        self._console.print(f"[dim]tab {tab_id}: badge cleared[/dim]")

    def alert(self, tab_id: int, message: str) -> None:
        title, _, body = message.partition("\n\n")
        self._console.print(Panel(body, title=f"tab {tab_id}: {title}", border_style="red"))


class InMemoryNotifier:
    """Keep badges and alerts in memory, useful for testing."""

    def __init__(self) -> None:
        self.badges: dict[int, tuple[str, str]] = {}
        self.alerts: list[tuple[int, str]] = []

    def set_badge(self, tab_id: int, text: str, color: str) -> None:
        self.badges[tab_id] = (text, color)

    def clear_badge(self, tab_id: int) -> None:
        self.badges.pop(tab_id, None)

    def alert(self, tab_id: int, message: str) -> None:
        self.alerts.append((tab_id, message))


def build_notifier() -> Notifier:
    """Return the notifier configured in ``notifier.backend``."""
    from navgate.settings import get_settings

    if get_settings().notifier.backend == "logging":
        return LoggingNotifier()
    return ConsoleNotifier()
