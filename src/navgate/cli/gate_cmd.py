"""CLI commands for inspecting and resetting gate state in the configured store."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from navgate.exceptions import StoreError

gate_app = typer.Typer(help="Inspect and reset navigation-gate state per tab and domain.")
console = Console()


def _build_gate():
    """Gate over the configured shared store; exits if the store is per-process."""
    from navgate.gate import NavigationGate
    from navgate.gate.notifier import LoggingNotifier
    from navgate.settings import get_settings

    backend = get_settings().store.backend
    if backend != "redis":
        console.print(
            f"[red]✗[/red] The {backend} store lives inside each process, so there is no gate "
            "state to reach from here. Set NAVGATE_STORE__BACKEND=redis."
        )
        raise typer.Exit(code=1)
    return NavigationGate(notifier=LoggingNotifier())


@gate_app.command("inspect")
def inspect_tab(
    tab_id: int = typer.Argument(..., help="Browser tab id."),
    domain: str = typer.Argument(..., help="Site domain, e.g. copart.com."),
) -> None:
    """Show navigation history, tab state and login attempts as JSON."""
    gate = _build_gate()
    try:
        history = gate.get_navigation_history(tab_id, domain)
        state = gate.get_tab_state(tab_id, domain)
        attempts = gate.get_loop_attempts(tab_id, domain)
    except StoreError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)

    payload = {
        "tab_id": tab_id,
        "domain": domain,
        "history": history.model_dump(mode="json"),
        "tab_state": state.model_dump(mode="json"),
        "loop_attempts": attempts.model_dump(mode="json") if attempts else None,
    }
    console.print_json(json.dumps(payload, default=str))


@gate_app.command("clear")
def clear_tab(
    tab_id: int = typer.Argument(..., help="Browser tab id."),
    domain: str = typer.Argument(..., help="Site domain, e.g. copart.com."),
) -> None:
    """Clear all gate records for a tab and domain (unblocks it)."""
    gate = _build_gate()
    gate.clear_navigation_history(tab_id, domain)
    console.print(f"[green]✓[/green] Cleared gate state for tab {tab_id} ({domain}).")


@gate_app.command("limits")
def show_limits() -> None:
    """Print the active loop-breaker thresholds."""
    from navgate.settings import get_settings

    lim = get_settings().gate
    table = Table(title="Navigation gate limits")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    for name, value in lim.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)
