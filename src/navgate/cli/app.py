"""Unified CLI entry point for navgate.

Config precedence: settings.default.toml -> settings.local.toml -> env vars (NAVGATE_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError

from navgate.cli.gate_cmd import gate_app
from navgate.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("aas-navgate")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "navgate: navigation-loop gate for automated auction-site logins. "
    "Inspect and reset per-tab gate state. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (NAVGATE_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(gate_app, name="gate")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"navgate {VERSION}")
        raise typer.Exit()

    from navgate.settings import get_settings

    try:
        log_cfg = get_settings().logging
    except ValidationError:
        # `settings validate` reports the details.
        logging.basicConfig(level="DEBUG" if verbose else "INFO")
    else:
        logging.basicConfig(level="DEBUG" if verbose else log_cfg.level.upper(), format=log_cfg.format)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
