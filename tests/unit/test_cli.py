"""Unit tests for the navgate CLI."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from navgate.cli.app import app

runner = CliRunner()


@pytest.fixture()
def shared_store(monkeypatch: pytest.MonkeyPatch):
    """Stand in for a shared Redis store the CLI process can reach."""
    import navgate.store.session_store as store_mod

    monkeypatch.setenv("NAVGATE_STORE__BACKEND", "redis")
    store = store_mod.InMemorySessionStore()
    monkeypatch.setattr(store_mod, "_singleton", store)
    return store


class TestCli:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.startswith("navgate ")

    def test_no_command_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "gate" in result.stdout

    def test_settings_validate(self) -> None:
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "Settings are valid" in result.stdout

    def test_settings_show(self) -> None:
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert '"max_long": 3' in result.stdout

    def test_gate_limits(self) -> None:
        result = runner.invoke(app, ["gate", "limits"])
        assert result.exit_code == 0
        assert "short_window_ms" in result.stdout

    def test_inspect_and_clear(self, shared_store) -> None:
        from navgate.gate import NavigationGate
        from navgate.gate.notifier import InMemoryNotifier

        gate = NavigationGate(shared_store, notifier=InMemoryNotifier())
        gate.block_tab(3, "copart.com", "run-1", "loop")

        result = runner.invoke(app, ["gate", "inspect", "3", "copart.com"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["history"]["blocked"] is True
        assert payload["tab_state"]["state"] == "BLOCKED"
        assert payload["loop_attempts"] is None

        result = runner.invoke(app, ["gate", "clear", "3", "copart.com"])
        assert result.exit_code == 0
        assert gate.can_navigate(3, "copart.com").allowed is True

    @pytest.mark.parametrize("command", ["inspect", "clear"])
    def test_state_commands_refused_on_memory_backend(self, command: str) -> None:
        result = runner.invoke(app, ["gate", command, "3", "copart.com"])
        assert result.exit_code == 1
        assert "NAVGATE_STORE__BACKEND=redis" in result.stdout


class TestSettingsCommands:
    def test_show_one_section(self) -> None:
        result = runner.invoke(app, ["settings", "show", "gate"])
        assert result.exit_code == 0
        assert '"max_login_attempts": 2' in result.stdout
        assert "redis_url" not in result.stdout

    def test_show_unknown_section(self) -> None:
        result = runner.invoke(app, ["settings", "show", "llm"])
        assert result.exit_code == 1
        assert "Unknown section" in result.stdout

    def test_validate_reports_limits(self) -> None:
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "1 per 15000 ms" in result.stdout
        assert "cache_reads" in result.stdout

    def test_validate_flags_cached_shared_store(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NAVGATE_STORE__BACKEND", "redis")
        monkeypatch.setenv("NAVGATE_STORE__CACHE_READS", "true")
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "hides blocks from other workers" in result.stdout

    def test_validate_reports_errors(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NAVGATE_GATE__MAX_SHORT", "0")
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 1
        assert "Settings are invalid" in result.stdout
        assert "max_short" in result.stdout
