"""CLI commands for showing and checking the resolved navgate settings."""

from __future__ import annotations

import json
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

settings_app = typer.Typer(help="Show and check navgate configuration.")
console = Console()

SECTIONS = ("gate", "store", "session", "notifier", "logging")


@settings_app.command("show")
def show_settings(
    section: Optional[str] = typer.Argument(None, help=f"Only show one section: {', '.join(SECTIONS)}."),
) -> None:
    """Print the resolved settings (all TOML layers plus NAVGATE_* env vars) as JSON."""
    from navgate.settings import get_settings

    data = get_settings().model_dump(mode="json")
    if section is not None:
        if section not in SECTIONS:
            console.print(f"[red]✗[/red] Unknown section {section!r}; choose from {', '.join(SECTIONS)}.")
            raise typer.Exit(code=1)
        data = data[section]
    console.print_json(json.dumps(data, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Load the settings, then flag combinations that weaken the loop breaker."""
    from navgate.settings import get_settings

    try:
        settings = get_settings()
    except ValidationError as exc:
        console.print(f"[red]✗[/red] Settings are invalid ({exc.error_count()} error(s)):")
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"])
            console.print(f"  {loc}: {err['msg']}")
        raise typer.Exit(code=1)

    gate, store = settings.gate, settings.store
    console.print(f"[green]✓[/green] Settings are valid ({settings.env}).")
    console.print(
        f"  Short window: {gate.max_short} per {gate.short_window_ms} ms, "
        f"long window: {gate.max_long} per {gate.long_window_ms} ms"
    )
    console.print(f"  Login attempts: {gate.max_login_attempts} per {gate.attempt_window_ms} ms")
    console.print(f"  Store: {store.backend} (cache_reads={store.cache_reads})")
    if store.backend == "redis" and store.cache_reads:
        console.print("[yellow]![/yellow] Redis with cache_reads hides blocks from other workers.")
