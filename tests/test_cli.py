"""Tests for CLI commands."""

import pytest

from northstar.cli.app import app


@pytest.fixture
def invoke(cli_runner, cli_config_path, fake_cli_embedder):
    """Run a command against the temporary config."""

    def _invoke(*args: str, input: str | None = None):
        return cli_runner.invoke(app, [*args, "--config", str(cli_config_path)], input=input)

    return _invoke


class TestRecordCommand:
    """Tests for 'northstar record'."""

    def test_records_and_persists(self, invoke, cli_config_path):
        result = invoke("record", "user", "I want to build a login page")
        assert result.exit_code == 0
        assert "Recorded user message msg-" in result.stdout
        assert "1 entities extracted" in result.stdout
        assert (cli_config_path.parent / "cli-data" / "nodes.jsonl").exists()

    def test_invalid_role(self, invoke):
        result = invoke("record", "robot", "beep")
        assert result.exit_code == 1
        assert "Invalid role" in result.stdout

    def test_missing_config(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["record", "user", "hi", "--config", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_config(self, cli_runner, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text('[storage]\nbackend = "redis"\n')
        result = cli_runner.invoke(app, ["record", "user", "hi", "--config", str(bad)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestRetrieveCommand:
    """Tests for 'northstar retrieve'."""

    def test_empty_session(self, invoke):
        result = invoke("retrieve", "anything")
        assert result.exit_code == 0
        assert "No relevant context" in result.stdout

    def test_returns_recorded_context(self, invoke):
        invoke("record", "user", "I want to build a login page")
        invoke("record", "assistant", "Let's use JWT")

        result = invoke("retrieve", "login")
        assert result.exit_code == 0
        assert "build a login page" in result.stdout

    def test_zero_budget(self, invoke):
        invoke("record", "user", "I want to build a login page")
        result = invoke("retrieve", "login", "--budget", "0")
        assert result.exit_code == 0
        assert "No relevant context" in result.stdout


class TestHandoffCommand:
    """Tests for 'northstar handoff'."""

    def test_prints_handoff(self, invoke):
        invoke("record", "user", "I want to build a login page")
        result = invoke("handoff", "gemini")
        assert result.exit_code == 0
        assert "# North Star Context" in result.stdout
        assert "## Current Objectives" in result.stdout
        assert "tokens for gemini" in result.stdout

    def test_preview_does_not_switch(self, invoke):
        invoke("handoff", "gemini")
        result = invoke("stats")
        assert "Provider: claude" in result.stdout

    def test_switch_persists_provider(self, invoke):
        result = invoke("handoff", "gemini", "--switch")
        assert result.exit_code == 0
        assert "tokens for gemini" in result.stdout

        result = invoke("stats")
        assert "Provider: gemini" in result.stdout

    def test_switch_to_current_provider(self, invoke):
        result = invoke("handoff", "claude", "--switch")
        assert result.exit_code == 0
        assert "Already using claude" in result.stdout


class TestStatsCommand:
    """Tests for 'northstar stats'."""

    def test_counts(self, invoke):
        invoke("record", "user", "I want to build a login page")
        result = invoke("stats")
        assert result.exit_code == 0
        assert "Session Graph" in result.stdout
        assert "Intent" in result.stdout
        assert "Messages: 1" in result.stdout
        assert "Vectors: 1" in result.stdout


class TestClearCommand:
    """Tests for 'northstar clear'."""

    def test_force(self, invoke):
        invoke("record", "user", "I want to build a login page")
        result = invoke("clear", "--force")
        assert result.exit_code == 0
        assert "Session cleared" in result.stdout

        result = invoke("stats")
        assert "Messages: 0" in result.stdout

    def test_declined(self, invoke):
        invoke("record", "user", "I want to build a login page")
        result = invoke("clear", input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.stdout

        result = invoke("stats")
        assert "Messages: 1" in result.stdout


def test_help_lists_commands(cli_runner):
    result = cli_runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("record", "retrieve", "handoff", "stats", "clear"):
        assert command in result.stdout
